"""
Flash-Loan Cross-DEX Arbitrage System.

Watches the price of a token across several decentralized exchanges, detects
cross-exchange gaps that stay profitable after fees, and executes them with a
flash loan borrowed and repaid inside a single transaction.
"""

PROJECT_NAME = "Flashloan-Cross-DEX-Arbitrage"

from flash_arbitrage.version import __version__ as VERSION

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

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "FlashArbitrageError",
    "ConfigurationError",
    "PriceSourceError",
    "SourceUnavailable",
    "MalformedResponse",
    "ParseError",
    "AggregationFailed",
    "ExecutionError",
    "GasEstimationFailed",
    "SubmissionFailed",
    "SubscriptionClosed",
]
