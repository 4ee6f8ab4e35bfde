"""
Ledger client wrapping web3 for the flash-loan executor.

Owns the signing account. ``submit`` is the only path that reads a nonce
and sends a transaction, and it is serialized, so concurrent executions
never race on the account nonce. No nonce is cached locally: the node's
pending count is read inside the lock on every submission.
"""

import asyncio
import functools
from typing import Any, Callable, Dict, List

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.types import TxParams, Wei

from flash_arbitrage.exceptions import ConfigurationError
from flash_arbitrage.utils import get_logger

logger = get_logger(__name__)


class ChainClient:
    """
    Async facade over a synchronous web3 instance.

    Blocking RPC calls run in the default thread pool so they suspend only
    the awaiting task.
    """

    def __init__(self, web3: Web3, account: LocalAccount):
        self.web3 = web3
        self.account = account
        self._submit_lock = asyncio.Lock()

    @classmethod
    def from_url(cls, rpc_url: str, private_key: str) -> "ChainClient":
        """
        Connect to an HTTP(S) RPC endpoint and load the signing key.

        Raises:
            ConfigurationError: Missing/invalid RPC URL or private key
        """
        if not rpc_url or not rpc_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid RPC URL: {rpc_url!r}")
        if not private_key:
            raise ConfigurationError("PRIVATE_KEY is required for execution")

        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Failed to load private key: {e}") from e

        web3 = Web3(Web3.HTTPProvider(rpc_url))
        logger.info(f"Loaded account: {account.address}")
        return cls(web3, account)

    @property
    def address(self) -> str:
        return self.account.address

    async def _run(self, func: Callable, *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def contract(self, address: str, abi: List[Dict[str, Any]]):
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    async def call(self, fn) -> Any:
        """Read-only contract call against the latest block."""
        return await self._run(fn.call)

    async def estimate_gas(self, fn) -> int:
        """Estimate gas for a contract call sent from the account."""
        return await self._run(fn.estimate_gas, {"from": self.address})

    async def gas_price(self) -> Wei:
        return await self._run(lambda: self.web3.eth.gas_price)

    async def submit(self, fn, gas: int, gas_price: int) -> str:
        """
        Build, sign and send a contract call transaction.

        Serialized: the pending nonce is read and consumed under the lock.

        Returns:
            Transaction hash as 0x-prefixed hex
        """
        async with self._submit_lock:
            nonce = await self._run(
                self.web3.eth.get_transaction_count, self.address, "pending"
            )
            chain_id = await self._run(lambda: self.web3.eth.chain_id)

            tx: TxParams = await self._run(
                fn.build_transaction,
                {
                    "from": self.address,
                    "gas": gas,
                    "gasPrice": gas_price,
                    "nonce": nonce,
                    "chainId": chain_id,
                },
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = await self._run(
                self.web3.eth.send_raw_transaction, signed.raw_transaction
            )

        return self.web3.to_hex(tx_hash)

