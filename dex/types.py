"""
Core data types for cross-DEX flash-loan arbitrage.
"""

import itertools
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

from flash_arbitrage.constants import AbortReason

_snapshot_ids = itertools.count(1)


def next_snapshot_id() -> int:
    """Process-wide, strictly increasing snapshot id."""
    return next(_snapshot_ids)


@dataclass(frozen=True)
class Source:
    """
    A liquidity venue exposing a query endpoint and a push endpoint.

    Attributes:
        id: Unique name of the venue (e.g., "uniswap")
        query_url: GraphQL endpoint used for request/response price queries
        stream_url: WebSocket endpoint for push price updates (None disables)
        router_address: Address encoded into the flash-loan trade instructions
    """

    id: str
    query_url: str
    stream_url: Optional[str] = None
    router_address: Optional[str] = None


@dataclass(frozen=True)
class PriceSnapshot:
    """
    Point-in-time prices across sources.

    Never mutated; a later snapshot supersedes it. ``snapshot_id`` orders
    snapshots, so "taken after" is an id comparison rather than a clock one.
    """

    prices: Mapping[str, Decimal]
    captured_at: float = field(default_factory=time.time)
    snapshot_id: int = field(default_factory=next_snapshot_id)

    def __post_init__(self):
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    @property
    def source_ids(self) -> Tuple[str, ...]:
        return tuple(self.prices.keys())

    def price(self, source_id: str) -> Decimal:
        return self.prices[source_id]

    def __len__(self) -> int:
        return len(self.prices)


@dataclass(frozen=True)
class OpportunityCandidate:
    """
    A detected, not yet confirmed, cross-source price gap.

    Attributes:
        source_a: Venue quoting the higher price
        source_b: Venue quoting the lower price
        price_a: Price at source_a when detected
        price_b: Price at source_b when detected
        trade_amount: Fixed trade size in token units
        gross_profit: (price_a - price_b) * trade_amount
        expected_net_profit: Gross profit after fees and gas estimate
        snapshot_id: Id of the snapshot the candidate was derived from
    """

    source_a: str
    source_b: str
    price_a: Decimal
    price_b: Decimal
    trade_amount: Decimal
    gross_profit: Decimal
    expected_net_profit: Decimal
    snapshot_id: int

    @property
    def pair_key(self) -> Tuple[str, str]:
        """Order-independent key for the source pair."""
        return tuple(sorted((self.source_a, self.source_b)))

    def describe(self) -> str:
        return (
            f"{self.source_a}@{self.price_a} > {self.source_b}@{self.price_b} "
            f"(net {self.expected_net_profit})"
        )


class SubscriptionState(Enum):
    """Push connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


@dataclass
class Subscription:
    """
    State of one push connection attempt.

    A new instance is created for every connect attempt; a closed one is
    discarded and never reused.
    """

    source_id: str
    generation: int
    state: SubscriptionState = SubscriptionState.DISCONNECTED
    opened_at: float = field(default_factory=time.time)
    updates_received: int = 0
    messages_dropped: int = 0


@dataclass(frozen=True)
class TradeOrder:
    """
    Parameters handed to the loan facility for one committed execution.

    Attributes:
        token_address: Token to borrow
        amount: Trade amount in token units
        amount_wei: Trade amount in the token's base units
        source_a: Venue to sell on (higher price)
        source_b: Venue to buy on (lower price)
        params: ABI-encoded borrow-callback payload
    """

    token_address: str
    amount: Decimal
    amount_wei: int
    source_a: str
    source_b: str
    params: bytes


@dataclass(frozen=True)
class TradeReceipt:
    """
    Submission result. Reports submission only, never settlement.
    """

    order: TradeOrder
    tx_hash: Optional[str]
    gas_limit: int
    gas_price: int
    lending_pool: str
    dry_run: bool = False


@dataclass(frozen=True)
class Committed:
    order: TradeOrder
    receipt: TradeReceipt

    committed = True


@dataclass(frozen=True)
class Aborted:
    reason: AbortReason
    detail: str = ""

    committed = False


ExecutionOutcome = Union[Committed, Aborted]
