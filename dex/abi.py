"""
Minimal ABIs for the flash-loan facility contracts.
"""

LENDING_POOL_ADDRESSES_PROVIDER_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getLendingPool",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

LENDING_POOL_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "_receiver", "type": "address"},
            {"name": "_reserve", "type": "address"},
            {"name": "_amount", "type": "uint256"},
            {"name": "_params", "type": "bytes"},
        ],
        "name": "flashLoan",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

# Inner instructions decoded by the receiver: buy/sell routers and amount
TRADE_INSTRUCTION_TYPES = ["address", "address", "uint256"]

# Borrow-callback payload: routers, amount, token, inner instructions
FLASH_LOAN_PARAMS_TYPES = ["address", "address", "uint256", "address", "bytes"]
