"""
Common utilities and helper functions for the flash-loan arbitrage system.

This module provides centralized helpers for duration formatting, JSON and
numeric parsing of untrusted payloads, and structured logger construction.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


# Parsing utilities
def safe_json_load(json_str: Union[str, bytes]) -> Any:
    """
    Safely load JSON string with error handling.

    Args:
        json_str: JSON string to parse

    Returns:
        Parsed data or None if parsing fails (including oversized integers
        and nesting too deep to decode)
    """
    try:
        return json.loads(json_str)
    except (ValueError, TypeError, RecursionError) as e:
        logging.getLogger(__name__).debug(f"Failed to parse JSON: {e}")
        return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a numeric value from an untrusted payload into a finite Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Booleans, NaN and
    infinities are rejected.

    Returns:
        Decimal value, or None if the value is not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    # Set level if not already set
    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    # Add structured formatter if no handlers exist
    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger
