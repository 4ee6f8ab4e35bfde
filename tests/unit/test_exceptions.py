"""Tests for the exceptions module."""

import pytest
from flash_arbitrage.exceptions import (
    FlashArbitrageError,
    ConfigurationError,
    PriceSourceError,
    SourceUnavailable,
    MalformedResponse,
    ParseError,
    AggregationFailed,
    ExecutionError,
    GasEstimationFailed,
    SubmissionFailed,
    SubscriptionClosed,
)


def test_base_exception():
    """Test the base exception class."""
    error = FlashArbitrageError("Test error")
    assert str(error) == "Test error"
    assert error.details == {}

    error_with_details = FlashArbitrageError("Test error", {"key": "value"})
    assert error_with_details.details == {"key": "value"}


def test_configuration_error():
    """Test configuration error."""
    error = ConfigurationError("Config error", {"config_file": "test.yaml"})
    assert str(error) == "Config error"
    assert error.details["config_file"] == "test.yaml"
    assert isinstance(error, FlashArbitrageError)


def test_price_source_errors():
    """Test per-source price errors carry the source id."""
    for cls in (SourceUnavailable, MalformedResponse, ParseError):
        error = cls("bad source", source="uniswap")
        assert str(error) == "bad source"
        assert error.source == "uniswap"
        assert isinstance(error, PriceSourceError)
        assert isinstance(error, FlashArbitrageError)


def test_aggregation_failed():
    """Test aggregation failure keeps the per-source errors."""
    cause = SourceUnavailable("timeout", source="sushiswap")
    error = AggregationFailed("1/3 sources failed", failed_sources={"sushiswap": cause})
    assert error.failed_sources["sushiswap"] is cause
    assert AggregationFailed("x").failed_sources == {}


def test_execution_errors():
    """Test execution errors carry the source pair."""
    error = GasEstimationFailed("reverted", source_pair=("uniswap", "sushiswap"))
    assert error.source_pair == ("uniswap", "sushiswap")
    assert isinstance(error, ExecutionError)

    error = SubmissionFailed("nonce too low", details={"nonce": 7})
    assert error.source_pair is None
    assert error.details["nonce"] == 7
    assert isinstance(error, ExecutionError)


def test_subscription_closed():
    """Test subscription closed exception."""
    error = SubscriptionClosed("closed", source="pancakeswap", details={"generation": 2})
    assert error.source == "pancakeswap"
    assert error.details["generation"] == 2


def test_exception_hierarchy():
    """Test that all exceptions inherit from base exception."""
    exceptions = [
        ConfigurationError("test"),
        SourceUnavailable("test"),
        MalformedResponse("test"),
        ParseError("test"),
        AggregationFailed("test"),
        GasEstimationFailed("test"),
        SubmissionFailed("test"),
        SubscriptionClosed("test"),
    ]

    for exc in exceptions:
        assert isinstance(exc, FlashArbitrageError)
        assert isinstance(exc, Exception)


def test_exception_raising():
    """Test that exceptions can be raised and caught properly."""
    with pytest.raises(PriceSourceError):
        raise ParseError("not numeric", source="uniswap")

    with pytest.raises(FlashArbitrageError):
        raise SubmissionFailed("rejected")
