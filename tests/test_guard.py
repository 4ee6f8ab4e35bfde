"""
Tests for the recheck-then-commit execution guard.
"""

import asyncio
from decimal import Decimal

import pytest
from prometheus_client import CollectorRegistry

from dex.guard import ExecutionGuard
from dex.opportunity_math import ProfitParams
from dex.scanner import scan_snapshot
from dex.types import (
    Aborted,
    Committed,
    OpportunityCandidate,
    PriceSnapshot,
    TradeOrder,
    TradeReceipt,
)
from flash_arbitrage.constants import AbortReason
from flash_arbitrage.exceptions import (
    AggregationFailed,
    GasEstimationFailed,
    SourceUnavailable,
    SubmissionFailed,
)
from flash_arbitrage.metrics import ArbitrageMetrics

TOKEN = "0x6B175474E89094C44Da98b954EedeAC495271d0F"

PARAMS = ProfitParams(
    trade_amount=Decimal("10"),
    trading_fee_rate=Decimal("0.003"),
    fixed_gas_fee_estimate=Decimal("0.01"),
    min_profit=Decimal("0.5"),
)


class FakeAggregator:
    """Serves queued recheck prices as brand-new snapshots."""

    def __init__(self, *price_sets, error=None):
        self.price_sets = list(price_sets)
        self.error = error
        self.calls = []

    async def snapshot(self, pair_id, source_ids=None):
        self.calls.append((pair_id, tuple(source_ids)))
        if self.error is not None:
            raise self.error
        prices = self.price_sets.pop(0)
        return PriceSnapshot(prices={k: Decimal(v) for k, v in prices.items()})


class FakeExecutor:
    def __init__(self, error=None, delay=0):
        self.error = error
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(self, token_address, amount, source_a, source_b):
        self.calls.append((token_address, amount, source_a, source_b))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            order = TradeOrder(
                token_address=token_address,
                amount=amount,
                amount_wei=int(amount * 10**18),
                source_a=source_a,
                source_b=source_b,
                params=b"",
            )
            return TradeReceipt(
                order=order,
                tx_hash="0x" + "ab" * 32,
                gas_limit=300000,
                gas_price=10**9,
                lending_pool="0x" + "11" * 20,
            )
        finally:
            self.in_flight -= 1


def detected_candidate(price_a="100.2", price_b="100"):
    snap = PriceSnapshot(prices={"uniswap": Decimal(price_a), "sushiswap": Decimal(price_b)})
    (candidate,) = scan_snapshot(snap, PARAMS)
    return candidate


def make_guard(aggregator, executor, **kwargs):
    return ExecutionGuard(
        aggregator, executor, PARAMS, token_address=TOKEN, pair_id="0xpair", **kwargs
    )


@pytest.mark.asyncio
async def test_confirmed_candidate_executes_once():
    candidate = detected_candidate()
    aggregator = FakeAggregator({"uniswap": "100.2", "sushiswap": "100"})
    executor = FakeExecutor()

    outcome = await make_guard(aggregator, executor).guarded_execute(candidate)

    assert isinstance(outcome, Committed)
    assert outcome.committed
    assert outcome.receipt.tx_hash.startswith("0x")
    assert executor.calls == [(TOKEN, Decimal("10"), "uniswap", "sushiswap")]
    assert aggregator.calls == [("0xpair", ("uniswap", "sushiswap"))]


@pytest.mark.asyncio
async def test_decayed_profit_aborts_without_executing(caplog):
    candidate = detected_candidate()
    aggregator = FakeAggregator({"uniswap": "100.04", "sushiswap": "100"})
    executor = FakeExecutor()

    with caplog.at_level("INFO", logger="dex.guard"):
        outcome = await make_guard(aggregator, executor).guarded_execute(candidate)

    assert isinstance(outcome, Aborted)
    assert not outcome.committed
    assert outcome.reason is AbortReason.PROFIT_DECAYED
    assert executor.calls == []
    assert "Profit potential decreased, transaction aborted" in caplog.text


@pytest.mark.asyncio
async def test_reversed_gap_aborts():
    candidate = detected_candidate("105", "100")
    aggregator = FakeAggregator({"uniswap": "100", "sushiswap": "105"})
    executor = FakeExecutor()

    outcome = await make_guard(aggregator, executor).guarded_execute(candidate)

    assert outcome.reason is AbortReason.PROFIT_DECAYED
    assert executor.calls == []


@pytest.mark.asyncio
async def test_candidate_prices_are_not_trusted():
    """A stale candidate showing a huge gap still needs fresh confirmation."""
    candidate = detected_candidate("200", "100")
    aggregator = FakeAggregator({"uniswap": "100", "sushiswap": "100"})
    executor = FakeExecutor()

    outcome = await make_guard(aggregator, executor).guarded_execute(candidate)

    assert outcome.reason is AbortReason.PROFIT_DECAYED
    assert executor.calls == []


@pytest.mark.asyncio
async def test_recheck_fetch_failure_aborts():
    error = AggregationFailed(
        "1/2 sources failed", failed_sources={"uniswap": SourceUnavailable("down")}
    )
    executor = FakeExecutor()

    outcome = await make_guard(FakeAggregator(error=error), executor).guarded_execute(
        detected_candidate()
    )

    assert outcome.reason is AbortReason.RECHECK_FAILED
    assert executor.calls == []


@pytest.mark.asyncio
async def test_stale_recheck_snapshot_aborts():
    class StaleAggregator:
        async def snapshot(self, pair_id, source_ids=None):
            return PriceSnapshot(
                prices={"uniswap": Decimal("105"), "sushiswap": Decimal("100")},
                snapshot_id=0,
            )

    executor = FakeExecutor()
    outcome = await make_guard(StaleAggregator(), executor).guarded_execute(
        detected_candidate()
    )

    assert outcome.reason is AbortReason.STALE_SNAPSHOT
    assert executor.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error,reason",
    [
        (GasEstimationFailed("execution reverted"), AbortReason.GAS_ESTIMATION_FAILED),
        (SubmissionFailed("nonce too low"), AbortReason.SUBMISSION_FAILED),
    ],
)
async def test_executor_failures_become_aborts(error, reason):
    aggregator = FakeAggregator({"uniswap": "100.2", "sushiswap": "100"})
    executor = FakeExecutor(error=error)

    outcome = await make_guard(aggregator, executor).guarded_execute(
        detected_candidate()
    )

    assert outcome.reason is reason
    assert len(executor.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_guards_may_both_execute_by_default():
    """Without the pair lock two overlapping scans can both commit one edge."""
    aggregator = FakeAggregator(
        {"uniswap": "100.2", "sushiswap": "100"},
        {"uniswap": "100.2", "sushiswap": "100"},
    )
    executor = FakeExecutor(delay=0.02)
    guard = make_guard(aggregator, executor)

    outcomes = await asyncio.gather(
        guard.guarded_execute(detected_candidate()),
        guard.guarded_execute(detected_candidate()),
    )

    assert all(o.committed for o in outcomes)
    assert executor.max_in_flight == 2


@pytest.mark.asyncio
async def test_pair_lock_serializes_same_edge():
    aggregator = FakeAggregator(
        {"uniswap": "100.2", "sushiswap": "100"},
        {"uniswap": "100.04", "sushiswap": "100"},
    )
    executor = FakeExecutor(delay=0.02)
    guard = make_guard(aggregator, executor, serialize_pairs=True)

    outcomes = await asyncio.gather(
        guard.guarded_execute(detected_candidate()),
        guard.guarded_execute(detected_candidate()),
    )

    assert executor.max_in_flight == 1
    assert [o.committed for o in outcomes] == [True, False]
    assert outcomes[1].reason is AbortReason.PROFIT_DECAYED


@pytest.mark.asyncio
async def test_outcomes_are_recorded_in_metrics():
    registry = CollectorRegistry()
    metrics = ArbitrageMetrics(registry)
    aggregator = FakeAggregator(
        {"uniswap": "100.2", "sushiswap": "100"},
        {"uniswap": "100", "sushiswap": "100"},
    )
    guard = make_guard(aggregator, FakeExecutor(), metrics=metrics)

    await guard.guarded_execute(detected_candidate())
    await guard.guarded_execute(detected_candidate())

    assert (
        registry.get_sample_value(
            "flash_arbitrage_executions_committed_total",
            {"source_a": "uniswap", "source_b": "sushiswap"},
        )
        == 1
    )
    assert (
        registry.get_sample_value(
            "flash_arbitrage_executions_aborted_total",
            {"reason": AbortReason.PROFIT_DECAYED.value},
        )
        == 1
    )


def test_pair_key_is_order_independent():
    a = detected_candidate("105", "100")
    b = OpportunityCandidate(
        source_a="sushiswap",
        source_b="uniswap",
        price_a=Decimal("105"),
        price_b=Decimal("100"),
        trade_amount=Decimal("10"),
        gross_profit=Decimal("50"),
        expected_net_profit=Decimal("49.69"),
        snapshot_id=1,
    )
    assert a.pair_key == b.pair_key == ("sushiswap", "uniswap")
