"""
Push price feed message codec (JSON-RPC shaped).

Incoming messages are parsed defensively into a tagged variant; nothing in
this module raises on bad input.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Union

from flash_arbitrage.constants import JSONRPC_VERSION, SUBSCRIBE_METHOD
from flash_arbitrage.utils import parse_decimal, safe_json_load


@dataclass(frozen=True)
class PriceUpdate:
    """A message carrying a usable price."""

    price: Decimal


@dataclass(frozen=True)
class Unrecognized:
    """Anything else: acks, heartbeats, garbage."""

    reason: str


FeedMessage = Union[PriceUpdate, Unrecognized]


def build_subscribe_request(token_address: str, request_id: int = 1) -> Dict[str, Any]:
    """Subscribe request for a token's price stream."""
    return {
        "method": SUBSCRIBE_METHOD,
        "params": [token_address],
        "id": request_id,
        "jsonrpc": JSONRPC_VERSION,
    }


def parse_message(raw: Union[str, bytes, Dict[str, Any]]) -> FeedMessage:
    """
    Parse one push message.

    Returns PriceUpdate when ``params.result.price`` holds a finite positive
    number, otherwise Unrecognized with the reason.
    """
    data = raw if isinstance(raw, dict) else safe_json_load(raw)
    if not isinstance(data, dict):
        return Unrecognized("not a JSON object")

    params = data.get("params")
    if not isinstance(params, dict):
        return Unrecognized("no params")

    result = params.get("result")
    if not isinstance(result, dict):
        return Unrecognized("no params.result")

    if "price" not in result:
        return Unrecognized("no price field")

    price = parse_decimal(result["price"])
    if price is None:
        return Unrecognized(f"non-numeric price: {result['price']!r}")
    if price <= 0:
        return Unrecognized(f"non-positive price: {price}")

    return PriceUpdate(price)
