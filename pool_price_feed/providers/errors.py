"""
Error types and error handling utilities for the price feed.

This module provides the exception taxonomy shared by the provider layer,
the descriptor resolver, the converter and the pollers, plus a small
ErrorHandler used to classify, log and back off on failures.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Base exception for price feed operations."""

    kind = "price_feed"

    def __init__(self, message: str, pool_address: Optional[str] = None):
        self.message = message
        self.pool_address = pool_address
        if pool_address:
            message = f"{message} (pool={pool_address})"
        super().__init__(message)


class ProviderConnectionError(PriceFeedError):
    """Raised when an RPC endpoint is unreachable or times out on connect."""

    kind = "connection"

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class ResolutionError(PriceFeedError):
    """Raised when a pool's immutable metadata cannot be read."""

    kind = "resolution"


class StateReadError(PriceFeedError):
    """Raised when reading a pool's current state fails."""

    kind = "state_read"


class ConversionError(PriceFeedError):
    """Raised when a raw pool state cannot be turned into a price."""

    kind = "conversion"


class SinkError(PriceFeedError):
    """Raised when a sink cannot deliver a price (connection lost or timed out)."""

    kind = "sink"


class UnsupportedPoolVersion(PriceFeedError):
    """Raised for pools whose on-chain layout has no price formula here."""

    kind = "unsupported_version"

    def __init__(self, version: int, pool_address: Optional[str] = None):
        super().__init__(f"Unsupported pool version: {version}", pool_address)
        self.version = version


# Errors a poller survives; the next tick is attempted as usual
TRANSIENT_ERRORS = (StateReadError, ConversionError, SinkError)


class ErrorHandler:
    """
    Centralized error handling for provider and poller operations.

    Provides classification, logging, and retry delays for the
    failures encountered while talking to an RPC node.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def classify_error(self, error: Exception) -> str:
        """
        Classify an error into a category for appropriate handling.

        Args:
            error: Exception to classify

        Returns:
            Error category string
        """
        if isinstance(error, (asyncio.TimeoutError, ProviderConnectionError, SinkError)):
            return "network"

        if isinstance(error, (ConversionError, UnsupportedPoolVersion)):
            return "validation"

        error_str = str(error).lower()

        if any(keyword in error_str for keyword in ["rate limit", "too many requests", "429"]):
            return "rate_limit"

        if any(keyword in error_str for keyword in ["connection", "timeout", "timed out", "network", "dns"]):
            return "network"

        if any(keyword in error_str for keyword in ["revert", "execution reverted", "out of gas"]):
            return "contract"

        if any(keyword in error_str for keyword in ["invalid", "bad request", "400"]):
            return "validation"

        return "unknown"

    def should_retry(self, error: Exception, attempt: int, max_retries: int) -> bool:
        """
        Determine if an error should trigger a retry.

        Args:
            error: Exception that occurred
            attempt: Current attempt number (0-based)
            max_retries: Maximum number of attempts allowed

        Returns:
            True if operation should be retried
        """
        if attempt + 1 >= max_retries:
            return False

        return self.classify_error(error) in ("network", "rate_limit", "unknown")

    def get_retry_delay(self, error: Exception, attempt: int) -> float:
        """
        Calculate retry delay based on error type and attempt.

        Args:
            error: Exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds before retry
        """
        error_category = self.classify_error(error)

        # Base exponential backoff, capped at 60 seconds
        base_delay = min(2 ** attempt, 60)

        if error_category == "rate_limit":
            return base_delay * 2

        if error_category == "network":
            return base_delay

        return base_delay * 1.5

    def log_error(self, error: Exception, context: Dict[str, Any]):
        """
        Log error with appropriate level and context.

        Args:
            error: Exception to log
            context: Additional context for logging (pool address, tick, ...)
        """
        error_category = self.classify_error(error)

        log_data = {
            "error_type": type(error).__name__,
            "error_kind": getattr(error, "kind", error_category),
            "error_category": error_category,
            "error_message": str(error),
            **context,
        }
        where = context.get("pool_address") or context.get("endpoint") or "-"
        message = f"{log_data['error_kind']} failure [{where}]: {error}"

        if error_category == "contract":
            self.logger.error(message, extra=log_data)
        elif error_category == "rate_limit":
            self.logger.info(message, extra=log_data)
        else:
            self.logger.warning(message, extra=log_data)
