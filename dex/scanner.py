"""
Cross-source opportunity scanning.

Enumerates every unordered source pair of a snapshot in ascending index
order and emits a candidate for each pair whose net profit clears the
threshold.
"""

from itertools import combinations
from typing import List

from flash_arbitrage.utils import get_logger

from .opportunity_math import ProfitParams, compute_profit
from .types import OpportunityCandidate, PriceSnapshot

logger = get_logger(__name__)


def scan_snapshot(
    snapshot: PriceSnapshot, params: ProfitParams
) -> List[OpportunityCandidate]:
    """
    Scan a snapshot for profitable cross-source gaps.

    For each unordered pair the higher-priced source becomes ``source_a``;
    equal prices are skipped, so a pair yields at most one candidate.
    Output order is deterministic for a given snapshot.

    Args:
        snapshot: Prices to compare
        params: Trade size, fee rate, gas estimate and profit threshold

    Returns:
        Candidates with net profit strictly greater than ``params.min_profit``
    """
    candidates: List[OpportunityCandidate] = []
    entries = list(snapshot.prices.items())

    for (id_i, price_i), (id_j, price_j) in combinations(entries, 2):
        if price_i == price_j:
            continue

        if price_i > price_j:
            high_id, high, low_id, low = id_i, price_i, id_j, price_j
        else:
            high_id, high, low_id, low = id_j, price_j, id_i, price_i

        breakdown = compute_profit(
            high,
            low,
            params.trade_amount,
            params.trading_fee_rate,
            params.fixed_gas_fee_estimate,
        )
        if breakdown.net_profit > params.min_profit:
            candidates.append(
                OpportunityCandidate(
                    source_a=high_id,
                    source_b=low_id,
                    price_a=high,
                    price_b=low,
                    trade_amount=params.trade_amount,
                    gross_profit=breakdown.gross_profit,
                    expected_net_profit=breakdown.net_profit,
                    snapshot_id=snapshot.snapshot_id,
                )
            )

    return candidates


class OpportunityScanner:
    """Scanner bound to a fixed set of profit parameters."""

    def __init__(self, params: ProfitParams):
        self.params = params

    def scan(self, snapshot: PriceSnapshot) -> List[OpportunityCandidate]:
        candidates = scan_snapshot(snapshot, self.params)
        for candidate in candidates:
            logger.info(
                f"Opportunity between {candidate.source_a} and {candidate.source_b}: "
                f"{candidate.price_a} vs {candidate.price_b}, "
                f"net profit {candidate.expected_net_profit}"
            )
        return candidates
