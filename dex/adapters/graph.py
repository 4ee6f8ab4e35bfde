"""
Subgraph (GraphQL over HTTP) price adapter for constant-product pairs.

Fetches a pair's reserves with one request/response query and derives the
spot price as reserve1 / reserve0 (quote over base).
"""

import asyncio
from decimal import Decimal, DecimalException
from typing import Any, Dict, Optional

import aiohttp

from flash_arbitrage.exceptions import MalformedResponse, ParseError, SourceUnavailable
from flash_arbitrage.utils import get_logger, parse_decimal

from ..types import Source

logger = get_logger(__name__)

PAIR_QUERY = """
{
  pair(id: "%s") {
    token0 {
      id
    }
    token1 {
      id
    }
    reserve0
    reserve1
  }
}
"""


def build_pair_query(pair_id: str) -> Dict[str, str]:
    """Build the GraphQL request body for a pair. Ids are lowercased."""
    return {"query": PAIR_QUERY % pair_id.lower()}


def price_from_pair(pair: Optional[Dict[str, Any]], source_id: str) -> Decimal:
    """
    Derive the price from a subgraph pair record.

    Args:
        pair: The ``data.pair`` record (None when the pair does not exist)
        source_id: Source name for error context

    Returns:
        reserve1 / reserve0 as Decimal

    Raises:
        MalformedResponse: Pair absent, reserves missing, not positive, or
            too extreme to divide
        ParseError: Reserves present but not numeric
    """
    if not pair:
        raise MalformedResponse(f"No pair record from {source_id}", source=source_id)
    if not isinstance(pair, dict):
        raise MalformedResponse(
            f"Pair record from {source_id} is not an object", source=source_id
        )

    if "reserve0" not in pair or "reserve1" not in pair:
        raise MalformedResponse(
            f"Pair record from {source_id} has no reserves",
            source=source_id,
            details={"keys": sorted(pair.keys())},
        )

    r0 = parse_decimal(pair["reserve0"])
    r1 = parse_decimal(pair["reserve1"])
    if r0 is None or r1 is None:
        raise ParseError(
            f"Non-numeric reserves from {source_id}",
            source=source_id,
            details={"reserve0": pair["reserve0"], "reserve1": pair["reserve1"]},
        )

    if r0 <= 0 or r1 <= 0:
        raise MalformedResponse(
            f"Reserves must be positive from {source_id}: r0={r0}, r1={r1}",
            source=source_id,
            details={"reserve0": str(r0), "reserve1": str(r1)},
        )

    try:
        return r1 / r0
    except DecimalException as e:
        raise MalformedResponse(
            f"Reserves out of range from {source_id}: r0={r0}, r1={r1}",
            source=source_id,
        ) from e


class GraphPriceSource:
    """
    Request/response price client for subgraph endpoints.

    Shares one aiohttp session across all sources; each ``fetch_price`` is a
    single POST with no retry.
    """

    def __init__(
        self, session: aiohttp.ClientSession, timeout_sec: Optional[float] = None
    ):
        self.session = session
        self.timeout = (
            aiohttp.ClientTimeout(total=timeout_sec) if timeout_sec is not None else None
        )

    async def fetch_price(self, source: Source, pair_id: str) -> Decimal:
        """
        Fetch the current price of ``pair_id`` at ``source``.

        Raises:
            SourceUnavailable: Transport error, timeout or HTTP error status
            MalformedResponse: Body not JSON, GraphQL errors, or no pair record
            ParseError: Reserves are not numeric
        """
        kwargs = {"json": build_pair_query(pair_id)}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        try:
            async with self.session.post(source.query_url, **kwargs) as resp:
                resp.raise_for_status()
                try:
                    payload = await resp.json(content_type=None)
                except (ValueError, RecursionError) as e:
                    raise MalformedResponse(
                        f"Invalid JSON from {source.id}: {e}", source=source.id
                    ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(
                f"Failed to query {source.id}: {e!r}",
                source=source.id,
                details={"url": source.query_url},
            ) from e

        if not isinstance(payload, dict):
            raise MalformedResponse(
                f"Unexpected response shape from {source.id}", source=source.id
            )
        if payload.get("errors"):
            raise MalformedResponse(
                f"GraphQL errors from {source.id}",
                source=source.id,
                details={"errors": payload["errors"]},
            )

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise MalformedResponse(
                f"Unexpected data field from {source.id}", source=source.id
            )
        price = price_from_pair(data.get("pair"), source.id)
        logger.debug(f"{source.id} price for {pair_id.lower()}: {price}")
        return price
