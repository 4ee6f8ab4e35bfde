"""
Price source adapters: subgraph polling and push feed codec.
"""

from .graph import GraphPriceSource, build_pair_query, price_from_pair
from .stream import (
    PriceUpdate,
    Unrecognized,
    build_subscribe_request,
    parse_message,
)

__all__ = [
    "GraphPriceSource",
    "build_pair_query",
    "price_from_pair",
    "PriceUpdate",
    "Unrecognized",
    "build_subscribe_request",
    "parse_message",
]
