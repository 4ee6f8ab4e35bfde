"""
Exception hierarchy for the flash-loan arbitrage system.

Provides specific exception types for each failure category of the price
pipeline and the execution path so callers can decide what is fatal to a
scan cycle, what is fatal to a single execution, and what only triggers a
reconnect.
"""

from typing import Any, Dict, Optional, Tuple


class FlashArbitrageError(Exception):
    """Base exception for all flash-loan arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(FlashArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


class PriceSourceError(FlashArbitrageError):
    """Base class for failures fetching a price from a single source."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source


class SourceUnavailable(PriceSourceError):
    """Transport-level failure: connection refused, timeout, HTTP error status."""

    pass


class MalformedResponse(PriceSourceError):
    """The response is missing the pair record or carries unusable reserves."""

    pass


class ParseError(PriceSourceError):
    """Reserves are present but not numeric."""

    pass


class AggregationFailed(FlashArbitrageError):
    """Raised when one or more sources failed while building a snapshot."""

    def __init__(
        self,
        message: str,
        failed_sources: Optional[Dict[str, Exception]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.failed_sources = failed_sources or {}


class ExecutionError(FlashArbitrageError):
    """Raised when building or submitting a flash-loan trade fails."""

    def __init__(
        self,
        message: str,
        source_pair: Optional[Tuple[str, str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source_pair = source_pair


class GasEstimationFailed(ExecutionError):
    """Gas estimation reverted; the trade would most likely fail on-chain."""

    pass


class SubmissionFailed(ExecutionError):
    """The signed transaction could not be submitted to the network."""

    pass


class SubscriptionClosed(FlashArbitrageError):
    """A push feed connection ended. Triggers a reconnect, never surfaced."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source
