"""
Concurrent multi-source price aggregation.

Fans a price request out to every source, joins all results, and builds a
PriceSnapshot only when every source answered. A snapshot missing a source
cannot be compared pairwise against it, so any failure fails the whole call.
"""

import asyncio
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from flash_arbitrage.exceptions import AggregationFailed, ConfigurationError
from flash_arbitrage.utils import get_logger

from .types import PriceSnapshot, Source

logger = get_logger(__name__)


class PriceFetcher(Protocol):
    async def fetch_price(self, source: Source, pair_id: str) -> Decimal: ...


class PriceAggregator:
    """
    Builds fresh snapshots across the configured sources.

    Args:
        fetcher: Per-source price client (e.g., GraphPriceSource)
        sources: Configured sources; their order is the snapshot's key order
    """

    def __init__(self, fetcher: PriceFetcher, sources: List[Source]):
        if not sources:
            raise ConfigurationError("PriceAggregator needs at least one source")
        self.fetcher = fetcher
        self.sources = list(sources)
        self._by_id: Dict[str, Source] = {s.id: s for s in self.sources}

    def resolve(self, source_ids: Iterable[str]) -> List[Source]:
        """Map ids back to configured sources, keeping configured order."""
        wanted = set(source_ids)
        unknown = wanted - set(self._by_id)
        if unknown:
            raise ConfigurationError(f"Unknown source ids: {sorted(unknown)}")
        return [s for s in self.sources if s.id in wanted]

    async def snapshot(
        self, pair_id: str, source_ids: Optional[Iterable[str]] = None
    ) -> PriceSnapshot:
        """
        Fetch every (or the given subset of) source concurrently.

        Args:
            pair_id: Pair identifier passed to each source
            source_ids: Restrict the snapshot to these sources

        Returns:
            A new PriceSnapshot keyed by source id

        Raises:
            AggregationFailed: One or more sources failed; carries the errors
        """
        sources = self.sources if source_ids is None else self.resolve(source_ids)

        results = await asyncio.gather(
            *(self.fetcher.fetch_price(s, pair_id) for s in sources),
            return_exceptions=True,
        )

        prices: Dict[str, Decimal] = {}
        failed: Dict[str, Exception] = {}
        for source, result in zip(sources, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                failed[source.id] = result
            else:
                prices[source.id] = result

        if failed:
            summary = ", ".join(f"{sid}: {err}" for sid, err in failed.items())
            raise AggregationFailed(
                f"{len(failed)}/{len(sources)} sources failed ({summary})",
                failed_sources=failed,
            )

        snapshot = PriceSnapshot(prices=prices)
        logger.debug(
            f"Snapshot #{snapshot.snapshot_id}: "
            + ", ".join(f"{sid}={p}" for sid, p in snapshot.prices.items())
        )
        return snapshot
