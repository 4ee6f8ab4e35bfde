"""
Constants and enums for the flash-loan arbitrage system.

Centralizes endpoint defaults, contract addresses and tunable defaults so
config parsing and tests read the same values.
"""

from enum import Enum


class AbortReason(Enum):
    """Why the execution guard declined to commit capital."""

    PROFIT_DECAYED = "profit_decayed"
    RECHECK_FAILED = "recheck_failed"
    STALE_SNAPSHOT = "stale_snapshot"
    GAS_ESTIMATION_FAILED = "gas_estimation_failed"
    SUBMISSION_FAILED = "submission_failed"


class ScanTrigger(Enum):
    """What started a scan cycle."""

    TIMER = "timer"
    FEED = "feed"
    MANUAL = "manual"


# Default trading parameters
DEFAULT_TRADE_AMOUNT = "10"
DEFAULT_TRADING_FEE_RATE = "0.003"  # 0.3% per leg
DEFAULT_FIXED_GAS_FEE_ESTIMATE = "0.01"
DEFAULT_MIN_PROFIT_THRESHOLD = "0.5"
DEFAULT_TOKEN_DECIMALS = 18

# Timing defaults (milliseconds)
DEFAULT_SCAN_INTERVAL_MS = 1000
DEFAULT_RECONNECT_DELAY_MS = 1000
DEFAULT_RECONNECT_MAX_DELAY_MS = 60_000
DEFAULT_RECONNECT_BACKOFF_MULTIPLIER = 1.0

# Aave V2 LendingPoolAddressesProvider (Ethereum mainnet)
DEFAULT_ADDRESSES_PROVIDER = "0xB53C1a33016B2DC2fF3653530bfF1848a515c8c5"

# Subgraph and streaming endpoints, ordered: the order fixes scan enumeration
DEFAULT_SOURCES = [
    {
        "id": "uniswap",
        "query_url": "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v2",
        "stream_url": "wss://mainnet.infura.io/ws/v3/${INFURA_PROJECT_ID}",
        "router_address": "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
    },
    {
        "id": "sushiswap",
        "query_url": "https://api.thegraph.com/subgraphs/name/sushiswap/exchange",
        "stream_url": "wss://mainnet.infura.io/ws/v3/${INFURA_PROJECT_ID}",
        "router_address": "0xd9e1cE17f2641f24aE83637ab66a2cca9C378B9F",
    },
    {
        "id": "pancakeswap",
        "query_url": "https://api.thegraph.com/subgraphs/name/pancakeswap/exchange-v2",
        "stream_url": "wss://bsc-ws-node.nariox.org:443",
        "router_address": "0x10ED43C718714eb63d5aA57B78B54704E256024E",
    },
]

# JSON-RPC
JSONRPC_VERSION = "2.0"
SUBSCRIBE_METHOD = "subscribe"
