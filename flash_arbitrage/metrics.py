"""
Prometheus Metrics for Flash-Loan Arbitrage

Exposes scan, guard, execution and feed metrics for monitoring and alerting.
"""

import logging
from typing import Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class ArbitrageMetrics:
    """
    Metrics collection and exposure for the arbitrage pipeline

    Provides Prometheus-compatible metrics for:
    - Scan cycles by trigger and their failures
    - Detected opportunities and guard outcomes
    - Push feed connects, updates and dropped messages
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

        # Server components
        self._runner = None
        self._site = None

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === SCAN METRICS ===
        self.scans_total = Counter(
            "flash_arbitrage_scans_total",
            "Total number of scan cycles started",
            ["trigger"],
            registry=self.registry,
        )

        self.scan_failures_total = Counter(
            "flash_arbitrage_scan_failures_total",
            "Scan cycles skipped because a snapshot could not be built",
            registry=self.registry,
        )

        self.scan_duration_seconds = Histogram(
            "flash_arbitrage_scan_duration_seconds",
            "Duration of a full scan cycle including guarded executions",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
            registry=self.registry,
        )

        # === OPPORTUNITY METRICS ===
        self.opportunities_total = Counter(
            "flash_arbitrage_opportunities_total",
            "Candidates clearing the minimum profit threshold",
            ["source_a", "source_b"],
            registry=self.registry,
        )

        self.executions_aborted_total = Counter(
            "flash_arbitrage_executions_aborted_total",
            "Candidates the execution guard declined",
            ["reason"],
            registry=self.registry,
        )

        self.executions_committed_total = Counter(
            "flash_arbitrage_executions_committed_total",
            "Flash-loan transactions submitted (or simulated in dry run)",
            ["source_a", "source_b"],
            registry=self.registry,
        )

        # === FEED METRICS ===
        self.feed_connects_total = Counter(
            "flash_arbitrage_feed_connects_total",
            "Push feed connection attempts",
            ["source"],
            registry=self.registry,
        )

        self.feed_price_updates_total = Counter(
            "flash_arbitrage_feed_price_updates_total",
            "Price updates received from push feeds",
            ["source"],
            registry=self.registry,
        )

        self.feed_messages_dropped_total = Counter(
            "flash_arbitrage_feed_messages_dropped_total",
            "Push feed messages without a usable price",
            ["source"],
            registry=self.registry,
        )

        self.feed_subscribed = Gauge(
            "flash_arbitrage_feed_subscribed",
            "1 while the source's push subscription is active",
            ["source"],
            registry=self.registry,
        )

    # === Recording helpers ===

    def record_scan(self, trigger: str):
        self.scans_total.labels(trigger=trigger).inc()

    def record_scan_failure(self):
        self.scan_failures_total.inc()

    def record_scan_duration(self, duration_seconds: float):
        self.scan_duration_seconds.observe(duration_seconds)

    def record_opportunity(self, source_a: str, source_b: str):
        self.opportunities_total.labels(source_a=source_a, source_b=source_b).inc()

    def record_abort(self, reason: str):
        self.executions_aborted_total.labels(reason=reason).inc()

    def record_commit(self, source_a: str, source_b: str):
        self.executions_committed_total.labels(
            source_a=source_a, source_b=source_b
        ).inc()

    def record_feed_connect(self, source: str):
        self.feed_connects_total.labels(source=source).inc()

    def record_feed_update(self, source: str):
        self.feed_price_updates_total.labels(source=source).inc()

    def record_feed_drop(self, source: str):
        self.feed_messages_dropped_total.labels(source=source).inc()

    def set_feed_subscribed(self, source: str, subscribed: bool):
        self.feed_subscribed.labels(source=source).set(1 if subscribed else 0)

    # === HTTP server ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ) -> bool:
        """Start Prometheus metrics HTTP server"""
        try:
            app = web.Application()
            app.router.add_get(path, self._metrics_handler)
            app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Prometheus metrics server started on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self):
        """Stop the metrics server"""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._site = None
        self._runner = None
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        """Handle metrics endpoint requests"""
        metrics_output = generate_latest(self.registry)
        # aiohttp rejects a content_type that carries a charset
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(text=metrics_output.decode("utf-8"), content_type=content_type)

    async def _health_handler(self, request):
        """Handle health check endpoint"""
        return web.json_response({"status": "healthy", "service": "flash_arbitrage"})


# Global metrics instance (singleton pattern)
_global_metrics: Optional[ArbitrageMetrics] = None


def get_metrics() -> ArbitrageMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = ArbitrageMetrics()
    return _global_metrics

