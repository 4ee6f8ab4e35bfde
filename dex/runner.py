"""
Scan orchestration for the flash-loan arbitrage bot.

Two independent triggers start scan cycles: a fixed-period timer and
every price update pushed by a feed. Each trigger spawns a detached cycle
task, so cycles may overlap; nothing here serializes them.
"""

import asyncio
import time
from decimal import Decimal
from typing import List, Optional, Set

import aiohttp

from flash_arbitrage.constants import ScanTrigger
from flash_arbitrage.exceptions import AggregationFailed
from flash_arbitrage.metrics import ArbitrageMetrics
from flash_arbitrage.utils import format_duration, get_logger
from flash_arbitrage.version import get_version

from .adapters.graph import GraphPriceSource
from .aggregator import PriceAggregator
from .chain import ChainClient
from .config import DexConfig
from .executor import FlashLoanExecutor
from .feed import FeedManager, aiohttp_connector
from .guard import ExecutionGuard
from .scanner import OpportunityScanner
from .types import ExecutionOutcome

logger = get_logger(__name__)


class ArbitrageRunner:
    """
    Drives scan cycles from the timer and the push feeds.

    Args:
        config: Validated DexConfig
        aggregator: Price aggregator for the configured sources
        scanner: Opportunity scanner
        guard: Execution guard; None runs scan-only
        feed_manager: Push feed manager; None disables feed triggers
        metrics: Optional metrics sink
    """

    def __init__(
        self,
        config: DexConfig,
        aggregator: PriceAggregator,
        scanner: OpportunityScanner,
        guard: Optional[ExecutionGuard] = None,
        feed_manager: Optional[FeedManager] = None,
        metrics: Optional[ArbitrageMetrics] = None,
    ):
        self.config = config
        self.aggregator = aggregator
        self.scanner = scanner
        self.guard = guard
        self.feed_manager = feed_manager
        self.metrics = metrics

        self.scan_count = 0
        self.failed_scans = 0
        self.opportunities_found = 0
        self.committed = 0
        self.aborted = 0

        self._cycle_tasks: Set[asyncio.Task] = set()
        self._stop_event: Optional[asyncio.Event] = None

    async def scan_cycle(
        self, trigger: str = ScanTrigger.MANUAL.value
    ) -> List[ExecutionOutcome]:
        """
        Run one snapshot -> scan -> guarded execution cycle.

        A failed snapshot skips the cycle. Candidates are handed to the guard
        one at a time in scan order. Never raises except on cancellation.

        Returns:
            Outcomes of the guarded executions (empty when skipped)
        """
        self.scan_count += 1
        scan_num = self.scan_count
        start = time.perf_counter()
        if self.metrics:
            self.metrics.record_scan(trigger.split(":", 1)[0])

        outcomes: List[ExecutionOutcome] = []
        try:
            try:
                snapshot = await self.aggregator.snapshot(self.config.pair_id)
            except AggregationFailed as e:
                self.failed_scans += 1
                if self.metrics:
                    self.metrics.record_scan_failure()
                logger.warning(f"Scan {scan_num} ({trigger}) skipped: {e}")
                return outcomes

            candidates = self.scanner.scan(snapshot)
            self.opportunities_found += len(candidates)
            if not candidates:
                logger.debug(f"Scan {scan_num} ({trigger}): no opportunities")

            for candidate in candidates:
                if self.metrics:
                    self.metrics.record_opportunity(candidate.source_a, candidate.source_b)
                if self.guard is None:
                    continue

                outcome = await self.guard.guarded_execute(candidate)
                outcomes.append(outcome)
                if outcome.committed:
                    self.committed += 1
                    logger.info(
                        f"Committed {candidate.describe()}: {outcome.receipt.tx_hash}"
                    )
                else:
                    self.aborted += 1
                    logger.info(
                        f"Aborted {candidate.describe()}: {outcome.reason.value}"
                    )
        except Exception as e:
            self.failed_scans += 1
            if self.metrics:
                self.metrics.record_scan_failure()
            logger.error(f"Scan {scan_num} ({trigger}) failed: {e}", exc_info=True)
        finally:
            elapsed = time.perf_counter() - start
            if self.metrics:
                self.metrics.record_scan_duration(elapsed)
            logger.debug(f"Scan {scan_num} finished in {format_duration(elapsed)}")

        return outcomes

    def spawn_cycle(self, trigger: str) -> asyncio.Task:
        """Start a detached scan cycle."""
        task = asyncio.create_task(self.scan_cycle(trigger), name=f"scan:{trigger}")
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
        return task

    async def on_price_update(self, source_id: str, price: Decimal) -> None:
        """Feed callback: every pushed price triggers a full scan."""
        logger.debug(f"Price update from {source_id}: {price}; triggering scan")
        self.spawn_cycle(f"{ScanTrigger.FEED.value}:{source_id}")

    async def _timer_loop(self) -> None:
        interval = self.config.scan_interval_sec
        while True:
            self.spawn_cycle(ScanTrigger.TIMER.value)
            await asyncio.sleep(interval)

    def print_banner(self) -> None:
        cfg = self.config
        logger.info("=" * 60)
        logger.info(f"FLASH LOAN ARBITRAGE v{get_version()}")
        logger.info(
            f"Sources: {', '.join(s.id for s in cfg.sources)} | "
            f"Pair: {cfg.pair_id} | Interval: {cfg.scan_interval_sec}s"
        )
        logger.info(
            f"Trade: {cfg.trade_amount} | Fee: {cfg.trading_fee_rate} | "
            f"Gas: {cfg.fixed_gas_fee_estimate} | Min profit: {cfg.min_profit_threshold}"
        )
        if self.guard is None:
            mode = "SCAN ONLY"
        elif cfg.dry_run:
            mode = "DRY RUN"
        else:
            mode = "LIVE"
        feeds = "on" if self.feed_manager and self.feed_manager.sources else "off"
        logger.info(f"Mode: {mode} | Feeds: {feeds}")
        logger.info("=" * 60)

    async def run(self, once: bool = False) -> None:
        """
        Run until stop() is called (or a single cycle if ``once``).
        """
        self.print_banner()

        if once:
            await self.scan_cycle(ScanTrigger.MANUAL.value)
            return

        self._stop_event = asyncio.Event()
        if self.feed_manager:
            self.feed_manager.start()
        timer = asyncio.create_task(self._timer_loop(), name="scan-timer")

        try:
            await self._stop_event.wait()
        finally:
            timer.cancel()
            await asyncio.gather(timer, return_exceptions=True)
            if self.feed_manager:
                await self.feed_manager.stop()
            pending = list(self._cycle_tasks)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(
                f"Stopped after {self.scan_count} scans: "
                f"{self.opportunities_found} opportunities, "
                f"{self.committed} committed, {self.aborted} aborted"
            )

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()


def build_runner(
    config: DexConfig,
    session: aiohttp.ClientSession,
    metrics: Optional[ArbitrageMetrics] = None,
    enable_feeds: bool = True,
) -> ArbitrageRunner:
    """
    Wire sources, scanner, guard, executor and feeds from config.

    Without a private key the runner scans but never executes.

    Raises:
        ConfigurationError: Invalid RPC URL or private key
    """
    sources = list(config.sources)
    fetcher = GraphPriceSource(session, timeout_sec=config.request_timeout_sec)
    aggregator = PriceAggregator(fetcher, sources)
    params = config.profit_params
    scanner = OpportunityScanner(params)

    guard = None
    if config.private_key:
        chain = ChainClient.from_url(config.rpc_url, config.private_key)
        executor = FlashLoanExecutor(
            chain, config.execution_config, config.sources_by_id
        )
        guard = ExecutionGuard(
            aggregator,
            executor,
            params,
            token_address=config.token_address,
            pair_id=config.pair_id,
            serialize_pairs=config.execution_lock,
            metrics=metrics,
        )
    else:
        logger.warning("No PRIVATE_KEY configured; running in scan-only mode")

    runner = ArbitrageRunner(config, aggregator, scanner, guard, metrics=metrics)

    if enable_feeds and config.feeds_enabled:
        runner.feed_manager = FeedManager(
            sources,
            config.token_address,
            runner.on_price_update,
            aiohttp_connector(session),
            policy=config.reconnect_policy,
            metrics=metrics,
        )

    return runner
