"""
Recheck-then-commit execution guard.

The only defense against price drift between detection and submission:
every candidate is re-priced from a brand-new snapshot of its two sources
immediately before capital is committed. The candidate's own prices are
never trusted for the commit decision.
"""

import asyncio
from typing import Dict, Optional, Tuple

from flash_arbitrage.constants import AbortReason
from flash_arbitrage.exceptions import (
    AggregationFailed,
    GasEstimationFailed,
    SubmissionFailed,
)
from flash_arbitrage.metrics import ArbitrageMetrics
from flash_arbitrage.utils import get_logger

from .aggregator import PriceAggregator
from .executor import FlashLoanExecutor
from .opportunity_math import ProfitParams, compute_profit
from .types import Aborted, Committed, ExecutionOutcome, OpportunityCandidate

logger = get_logger(__name__)


class ExecutionGuard:
    """
    Re-validates candidates and hands confirmed ones to the executor.

    Args:
        aggregator: Used for the fresh two-source recheck snapshot
        executor: Flash-loan executor invoked on confirmation
        params: Same profit parameters the scanner used
        token_address: Token to borrow
        pair_id: Pair identifier passed to the price sources
        serialize_pairs: Hold a per-source-pair lock across recheck and
            execution so concurrent scans cannot both execute the same edge
        metrics: Optional metrics sink
    """

    def __init__(
        self,
        aggregator: PriceAggregator,
        executor: FlashLoanExecutor,
        params: ProfitParams,
        token_address: str,
        pair_id: str,
        serialize_pairs: bool = False,
        metrics: Optional[ArbitrageMetrics] = None,
    ):
        self.aggregator = aggregator
        self.executor = executor
        self.params = params
        self.token_address = token_address
        self.pair_id = pair_id
        self.serialize_pairs = serialize_pairs
        self.metrics = metrics
        self._pair_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def _abort(self, reason: AbortReason, detail: str) -> Aborted:
        if self.metrics:
            self.metrics.record_abort(reason.value)
        return Aborted(reason=reason, detail=detail)

    async def guarded_execute(self, candidate: OpportunityCandidate) -> ExecutionOutcome:
        """
        Recheck a candidate and execute it only if it is still profitable.

        Returns:
            Committed(order, receipt) on submission, otherwise Aborted(reason).
            Never raises for price, gas or submission failures.
        """
        if not self.serialize_pairs:
            return await self._recheck_and_execute(candidate)

        lock = self._pair_locks.setdefault(candidate.pair_key, asyncio.Lock())
        async with lock:
            return await self._recheck_and_execute(candidate)

    async def _recheck_and_execute(
        self, candidate: OpportunityCandidate
    ) -> ExecutionOutcome:
        try:
            fresh = await self.aggregator.snapshot(
                self.pair_id, (candidate.source_a, candidate.source_b)
            )
        except AggregationFailed as e:
            logger.warning(f"Recheck failed for {candidate.describe()}: {e}")
            return self._abort(AbortReason.RECHECK_FAILED, str(e))

        if fresh.snapshot_id <= candidate.snapshot_id:
            logger.warning(
                f"Recheck snapshot #{fresh.snapshot_id} is not newer than "
                f"#{candidate.snapshot_id}; refusing to execute"
            )
            return self._abort(AbortReason.STALE_SNAPSHOT, "recheck snapshot not newer")

        price_a = fresh.price(candidate.source_a)
        price_b = fresh.price(candidate.source_b)
        breakdown = compute_profit(
            price_a,
            price_b,
            self.params.trade_amount,
            self.params.trading_fee_rate,
            self.params.fixed_gas_fee_estimate,
        )

        if breakdown.net_profit < self.params.min_profit:
            logger.info(
                f"Profit potential decreased, transaction aborted: "
                f"{candidate.source_a}@{price_a} vs {candidate.source_b}@{price_b}, "
                f"net {breakdown.net_profit} < {self.params.min_profit}"
            )
            return self._abort(
                AbortReason.PROFIT_DECAYED,
                f"net {breakdown.net_profit} < {self.params.min_profit}",
            )

        logger.info(
            f"Recheck confirmed {candidate.source_a}->{candidate.source_b}: "
            f"net {breakdown.net_profit} (was {candidate.expected_net_profit})"
        )

        try:
            receipt = await self.executor.execute(
                self.token_address,
                candidate.trade_amount,
                candidate.source_a,
                candidate.source_b,
            )
        except GasEstimationFailed as e:
            logger.error(f"Execution aborted: {e}")
            return self._abort(AbortReason.GAS_ESTIMATION_FAILED, str(e))
        except SubmissionFailed as e:
            logger.error(f"Execution failed: {e}")
            return self._abort(AbortReason.SUBMISSION_FAILED, str(e))

        if self.metrics:
            self.metrics.record_commit(candidate.source_a, candidate.source_b)
        return Committed(order=receipt.order, receipt=receipt)
