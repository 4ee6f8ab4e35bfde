"""
Flash-loan backed trade executor.

Handles:
- Resolving the lending pool from the addresses provider on every call
- Encoding the buy-low/sell-high instructions as the borrow-callback payload
- Gas estimation (a revert here aborts the trade, never a fixed gas limit)
- Submission through the serialized chain client
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from eth_abi import encode
from web3 import Web3

from flash_arbitrage.exceptions import (
    ConfigurationError,
    GasEstimationFailed,
    SubmissionFailed,
)
from flash_arbitrage.utils import get_logger

from .abi import (
    FLASH_LOAN_PARAMS_TYPES,
    LENDING_POOL_ABI,
    LENDING_POOL_ADDRESSES_PROVIDER_ABI,
    TRADE_INSTRUCTION_TYPES,
)
from .chain import ChainClient
from .types import Source, TradeOrder, TradeReceipt

logger = get_logger(__name__)


@dataclass
class ExecutionConfig:
    """
    Configuration for flash-loan execution.

    Attributes:
        addresses_provider: Loan facility's addresses provider contract
        receiver_address: Contract receiving the loan (defaults to the account)
        token_decimals: Decimals of the borrowed token
        dry_run: If True, estimate gas but never submit
        gas_limit_cap: Reject trades whose estimate exceeds this
        max_gas_price_gwei: Ceiling applied to the network gas price
    """

    addresses_provider: str
    receiver_address: Optional[str] = None
    token_decimals: int = 18
    dry_run: bool = False
    gas_limit_cap: Optional[int] = None
    max_gas_price_gwei: Optional[float] = None


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to integer base units (truncating dust)."""
    return int(amount * (Decimal(10) ** decimals))


def encode_flash_loan_params(
    router_a: str, router_b: str, amount_wei: int, token_address: str
) -> bytes:
    """
    Encode the borrow-callback payload.

    Inner instructions ``(routerA, routerB, amount)`` are nested inside
    ``(routerA, routerB, amount, token, inner)``.
    """
    router_a = Web3.to_checksum_address(router_a)
    router_b = Web3.to_checksum_address(router_b)
    token = Web3.to_checksum_address(token_address)

    inner = encode(TRADE_INSTRUCTION_TYPES, [router_a, router_b, amount_wei])
    return encode(
        FLASH_LOAN_PARAMS_TYPES, [router_a, router_b, amount_wei, token, inner]
    )


class FlashLoanExecutor:
    """
    Builds and submits the flash-loan transaction for a confirmed opportunity.

    One ``execute`` call submits at most one transaction. Success means the
    transaction was accepted by the node, not that it settled.
    """

    def __init__(
        self, chain: ChainClient, config: ExecutionConfig, sources: Dict[str, Source]
    ):
        self.chain = chain
        self.config = config
        self.sources = sources

        self.executions_attempted = 0
        self.executions_submitted = 0

    def _router(self, source_id: str) -> str:
        source = self.sources.get(source_id)
        if source is None or not source.router_address:
            raise ConfigurationError(f"No router address configured for {source_id}")
        return source.router_address

    def build_order(
        self, token_address: str, amount: Decimal, source_a: str, source_b: str
    ) -> TradeOrder:
        """Encode a single-use TradeOrder for the given source pair."""
        amount_wei = to_base_units(amount, self.config.token_decimals)
        params = encode_flash_loan_params(
            self._router(source_a), self._router(source_b), amount_wei, token_address
        )
        return TradeOrder(
            token_address=Web3.to_checksum_address(token_address),
            amount=amount,
            amount_wei=amount_wei,
            source_a=source_a,
            source_b=source_b,
            params=params,
        )

    async def resolve_lending_pool(self) -> str:
        """Current lending pool; the facility may reassign it at any time."""
        provider = self.chain.contract(
            self.config.addresses_provider, LENDING_POOL_ADDRESSES_PROVIDER_ABI
        )
        pool = await self.chain.call(provider.functions.getLendingPool())
        return Web3.to_checksum_address(pool)

    async def _gas_price(self) -> int:
        gas_price = await self.chain.gas_price()
        if self.config.max_gas_price_gwei is not None:
            ceiling = Web3.to_wei(self.config.max_gas_price_gwei, "gwei")
            if gas_price > ceiling:
                logger.debug(
                    f"Gas price {Web3.from_wei(gas_price, 'gwei')} gwei capped at "
                    f"{self.config.max_gas_price_gwei} gwei"
                )
                gas_price = ceiling
        return gas_price

    async def execute(
        self, token_address: str, amount: Decimal, source_a: str, source_b: str
    ) -> TradeReceipt:
        """
        Borrow ``amount`` of ``token_address`` and trade it across the pair.

        Args:
            token_address: Token to borrow
            amount: Trade amount in token units
            source_a: Venue to sell on (higher price)
            source_b: Venue to buy on (lower price)

        Returns:
            TradeReceipt with the transaction hash (None in dry run)

        Raises:
            GasEstimationFailed: Estimation reverted or exceeded gas_limit_cap
            SubmissionFailed: Pool resolution, signing or sending failed
        """
        self.executions_attempted += 1
        pair = (source_a, source_b)
        order = self.build_order(token_address, amount, source_a, source_b)

        try:
            pool_address = await self.resolve_lending_pool()
        except Exception as e:
            raise SubmissionFailed(
                f"Could not resolve lending pool: {e}", source_pair=pair
            ) from e

        pool = self.chain.contract(pool_address, LENDING_POOL_ABI)
        receiver = self.config.receiver_address or self.chain.address
        flash_loan = pool.functions.flashLoan(
            Web3.to_checksum_address(receiver),
            order.token_address,
            order.amount_wei,
            order.params,
        )

        try:
            gas = await self.chain.estimate_gas(flash_loan)
        except Exception as e:
            raise GasEstimationFailed(
                f"Gas estimation reverted for {source_a}->{source_b}: {e}",
                source_pair=pair,
            ) from e

        if self.config.gas_limit_cap is not None and gas > self.config.gas_limit_cap:
            raise GasEstimationFailed(
                f"Gas estimate {gas} exceeds cap {self.config.gas_limit_cap}",
                source_pair=pair,
                details={"gas": gas, "cap": self.config.gas_limit_cap},
            )

        try:
            gas_price = await self._gas_price()
        except Exception as e:
            raise SubmissionFailed(
                f"Could not fetch gas price: {e}", source_pair=pair
            ) from e

        if self.config.dry_run:
            logger.info(
                f"[DRY RUN] Would borrow {amount} via {pool_address} for "
                f"{source_a}->{source_b} (gas {gas} @ {gas_price} wei)"
            )
            return TradeReceipt(
                order=order,
                tx_hash=None,
                gas_limit=gas,
                gas_price=gas_price,
                lending_pool=pool_address,
                dry_run=True,
            )

        try:
            tx_hash = await self.chain.submit(flash_loan, gas, gas_price)
        except Exception as e:
            raise SubmissionFailed(
                f"Submission failed for {source_a}->{source_b}: {e}", source_pair=pair
            ) from e

        self.executions_submitted += 1
        logger.info(f"Flash loan submitted: {tx_hash}")

        return TradeReceipt(
            order=order,
            tx_hash=tx_hash,
            gas_limit=gas,
            gas_price=gas_price,
            lending_pool=pool_address,
        )

    def get_stats(self) -> Dict:
        """Get execution statistics."""
        return {
            "executions_attempted": self.executions_attempted,
            "executions_submitted": self.executions_submitted,
        }
