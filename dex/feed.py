"""
Push price feed lifecycle and reconnection.

Each source with a stream endpoint gets one long-lived task running

    DISCONNECTED -> CONNECTING -> SUBSCRIBED -> (close) -> DISCONNECTED -> ...

Errors are only logged; the end of the connection is what schedules the
next attempt, and each task schedules exactly one attempt per close, so
there is never more than one reconnect pending per source. Retries are
unbounded for the life of the process.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import (
    Any,
    AsyncContextManager,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Set,
)

import aiohttp

from flash_arbitrage.exceptions import SubscriptionClosed
from flash_arbitrage.metrics import ArbitrageMetrics
from flash_arbitrage.utils import format_duration, get_logger

from .adapters.stream import PriceUpdate, build_subscribe_request, parse_message
from .types import Source, Subscription, SubscriptionState

logger = get_logger(__name__)

PriceCallback = Callable[[str, Decimal], Awaitable[None]]
Connector = Callable[[Source], AsyncContextManager[Any]]


@dataclass(frozen=True)
class ReconnectPolicy:
    """
    Backoff before reconnecting a closed feed.

    ``multiplier == 1`` gives a fixed delay; larger values back off
    exponentially up to ``max_delay``. There is no retry limit.
    """

    base_delay: float = 1.0
    multiplier: float = 1.0
    max_delay: float = 60.0

    def delay(self, attempt: int) -> float:
        """Delay in seconds before reconnect ``attempt`` (0-based)."""
        return min(self.base_delay * (self.multiplier**attempt), self.max_delay)


def aiohttp_connector(session: aiohttp.ClientSession, heartbeat: float = 30.0) -> Connector:
    """Connector opening a WebSocket to the source's stream endpoint."""

    def connect(source: Source):
        return session.ws_connect(source.stream_url, heartbeat=heartbeat)

    return connect


class FeedManager:
    """
    Owns every push subscription and dispatches price events.

    Args:
        sources: Configured sources; those without a stream_url are skipped
        token_address: Token passed in the subscribe request
        callback: Awaited as an independent task for every price update
        connector: Opens a connection for a source (async context manager
            yielding an object with ``send_json`` and async iteration)
        policy: Reconnect backoff policy
        sleep: Sleep function, injectable for tests
        metrics: Optional metrics sink
    """

    def __init__(
        self,
        sources: List[Source],
        token_address: str,
        callback: PriceCallback,
        connector: Connector,
        policy: Optional[ReconnectPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: Optional[ArbitrageMetrics] = None,
    ):
        self.sources = [s for s in sources if s.stream_url]
        self.token_address = token_address
        self.callback = callback
        self.connector = connector
        self.policy = policy or ReconnectPolicy()
        self._sleep = sleep
        self.metrics = metrics

        self.connect_count: Dict[str, int] = defaultdict(int)
        self.reconnects_scheduled: Dict[str, int] = defaultdict(int)
        self.current: Dict[str, Subscription] = {}

        self._tasks: Dict[str, asyncio.Task] = {}
        self._dispatch_tasks: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    def start(self) -> None:
        """Start one feed task per streaming source."""
        for source in self.sources:
            if source.id in self._tasks and not self._tasks[source.id].done():
                continue
            self._tasks[source.id] = asyncio.create_task(
                self._run_source(source), name=f"feed:{source.id}"
            )
        logger.info(f"Started {len(self._tasks)} price feed(s)")

    async def stop(self) -> None:
        """Cancel all feed and in-flight dispatch tasks."""
        tasks = list(self._tasks.values()) + list(self._dispatch_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._dispatch_tasks.clear()

    async def _run_source(self, source: Source) -> None:
        attempt = 0
        while True:
            try:
                await self._connect_once(source)
            except SubscriptionClosed as e:
                if e.details.get("subscribed"):
                    attempt = 0
                logger.warning(str(e))

            delay = self.policy.delay(attempt)
            attempt += 1
            self.reconnects_scheduled[source.id] += 1
            logger.info(f"Reconnecting to {source.id} in {format_duration(delay)}")
            await self._sleep(delay)

    async def _connect_once(self, source: Source) -> None:
        """
        Run one subscription to completion.

        Always ends by raising SubscriptionClosed, whether the peer closed,
        the transport failed, or the connect itself failed.
        """
        self.connect_count[source.id] += 1
        sub = Subscription(
            source_id=source.id,
            generation=self.connect_count[source.id],
            state=SubscriptionState.CONNECTING,
        )
        self.current[source.id] = sub
        if self.metrics:
            self.metrics.record_feed_connect(source.id)

        try:
            async with self.connector(source) as ws:
                await ws.send_json(
                    build_subscribe_request(self.token_address, request_id=sub.generation)
                )
                sub.state = SubscriptionState.SUBSCRIBED
                if self.metrics:
                    self.metrics.set_feed_subscribed(source.id, True)
                logger.info(f"Connected to {source.id} WebSocket (#{sub.generation})")

                async for msg in ws:
                    if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                        self._handle_message(source, sub, msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        # Closure, not the error, drives reconnection
                        logger.error(f"WebSocket error on {source.id}: {msg.data}")
                    elif msg.type in (
                        aiohttp.WSMsgType.CLOSE,
                        aiohttp.WSMsgType.CLOSING,
                        aiohttp.WSMsgType.CLOSED,
                    ):
                        break
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"WebSocket error on {source.id}: {e!r}")
        except Exception:
            logger.exception(f"Unexpected failure in {source.id} feed")
        finally:
            was_subscribed = sub.state is SubscriptionState.SUBSCRIBED
            sub.state = SubscriptionState.DISCONNECTED
            if self.metrics:
                self.metrics.set_feed_subscribed(source.id, False)

        raise SubscriptionClosed(
            f"WebSocket connection to {source.id} closed",
            source=source.id,
            details={"generation": sub.generation, "subscribed": was_subscribed},
        )

    def _handle_message(self, source: Source, sub: Subscription, data: Any) -> None:
        message = parse_message(data)
        if not isinstance(message, PriceUpdate):
            sub.messages_dropped += 1
            if self.metrics:
                self.metrics.record_feed_drop(source.id)
            logger.debug(f"Dropped message from {source.id}: {message.reason}")
            return

        sub.updates_received += 1
        if self.metrics:
            self.metrics.record_feed_update(source.id)
        logger.debug(f"Real-time price update from {source.id}: {message.price}")

        task = asyncio.create_task(self.callback(source.id, message.price))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, task: asyncio.Task) -> None:
        self._dispatch_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Price callback failed: {task.exception()!r}")
