"""
Tests for the subgraph price adapter.

Uses a fake aiohttp session so no network is touched.
"""

import asyncio
import json
from decimal import Decimal

import aiohttp
import pytest

from dex.adapters.graph import GraphPriceSource, build_pair_query, price_from_pair
from dex.types import Source
from flash_arbitrage.exceptions import (
    MalformedResponse,
    ParseError,
    PriceSourceError,
    SourceUnavailable,
)

SOURCE = Source(id="uniswap", query_url="https://graph.example.org/uniswap")
PAIR_ID = "0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11"


class FakeResponse:
    def __init__(self, payload=None, status=200, body_error=None):
        self.payload = payload
        self.status = status
        self.body_error = body_error

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                request_info=None, history=(), status=self.status, message="error"
            )

    async def json(self, content_type="application/json"):
        if self.body_error is not None:
            raise self.body_error
        return self.payload


class FakeRequest:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records POSTs and replays a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return FakeRequest(self.response, self.error)


def pair_payload(reserve0, reserve1):
    return {"data": {"pair": {"reserve0": reserve0, "reserve1": reserve1}}}


class TestPriceFromPair:
    def test_price_is_reserve1_over_reserve0(self):
        assert price_from_pair({"reserve0": "1000", "reserve1": "105000"}, "x") == Decimal(
            "105"
        )

    def test_missing_pair(self):
        with pytest.raises(MalformedResponse):
            price_from_pair(None, "uniswap")

    def test_missing_reserves(self):
        with pytest.raises(MalformedResponse):
            price_from_pair({"reserve0": "1"}, "uniswap")

    def test_non_numeric_reserves(self):
        with pytest.raises(ParseError) as exc_info:
            price_from_pair({"reserve0": "abc", "reserve1": "1"}, "uniswap")
        assert exc_info.value.source == "uniswap"

    def test_reserves_too_extreme_to_divide(self):
        with pytest.raises(MalformedResponse) as exc_info:
            price_from_pair(
                {"reserve0": "1e-999999", "reserve1": "1e999999"}, "uniswap"
            )
        assert exc_info.value.source == "uniswap"

    @pytest.mark.parametrize("r0,r1", [("0", "100"), ("100", "0"), ("-5", "100")])
    def test_non_positive_reserves(self, r0, r1):
        with pytest.raises(MalformedResponse):
            price_from_pair({"reserve0": r0, "reserve1": r1}, "uniswap")


class TestBuildPairQuery:
    def test_pair_id_is_lowercased(self):
        body = build_pair_query(PAIR_ID)
        assert PAIR_ID.lower() in body["query"]
        assert PAIR_ID not in body["query"]
        assert "reserve0" in body["query"]
        assert "reserve1" in body["query"]


class TestGraphPriceSource:
    @pytest.mark.asyncio
    async def test_fetch_price(self):
        session = FakeSession(FakeResponse(pair_payload("2000", "210000")))
        price = await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)

        assert price == Decimal("105")
        url, kwargs = session.calls[0]
        assert url == SOURCE.query_url
        assert kwargs["json"] == build_pair_query(PAIR_ID)
        assert "timeout" not in kwargs

    @pytest.mark.asyncio
    async def test_timeout_is_passed(self):
        session = FakeSession(FakeResponse(pair_payload("1", "1")))
        await GraphPriceSource(session, timeout_sec=5).fetch_price(SOURCE, PAIR_ID)

        timeout = session.calls[0][1]["timeout"]
        assert isinstance(timeout, aiohttp.ClientTimeout)
        assert timeout.total == 5

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(SourceUnavailable) as exc_info:
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)
        assert exc_info.value.source == "uniswap"

    @pytest.mark.asyncio
    async def test_timeout_error(self):
        session = FakeSession(error=asyncio.TimeoutError())
        with pytest.raises(SourceUnavailable):
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        session = FakeSession(FakeResponse(status=502))
        with pytest.raises(SourceUnavailable):
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        error = json.JSONDecodeError("Expecting value", "<html>", 0)
        session = FakeSession(FakeResponse(body_error=error))
        with pytest.raises(MalformedResponse):
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)

    @pytest.mark.asyncio
    async def test_graphql_errors(self):
        payload = {"errors": [{"message": "indexing error"}]}
        session = FakeSession(FakeResponse(payload))
        with pytest.raises(MalformedResponse) as exc_info:
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)
        assert exc_info.value.details["errors"] == payload["errors"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload", [{"data": {"pair": None}}, {"data": None}, {}, [], "pair"]
    )
    async def test_missing_pair(self, payload):
        session = FakeSession(FakeResponse(payload))
        with pytest.raises(MalformedResponse):
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)

    @pytest.mark.asyncio
    async def test_non_numeric_reserves(self):
        session = FakeSession(FakeResponse(pair_payload("n/a", "100")))
        with pytest.raises(ParseError):
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)

    @pytest.mark.asyncio
    async def test_all_failures_are_price_source_errors(self):
        session = FakeSession(error=aiohttp.ServerDisconnectedError())
        with pytest.raises(PriceSourceError):
            await GraphPriceSource(session).fetch_price(SOURCE, PAIR_ID)
