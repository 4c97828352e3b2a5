"""
Tests for the error taxonomy and ErrorHandler.
"""

import asyncio
import logging

import pytest

from ..errors import (
    TRANSIENT_ERRORS,
    ConversionError,
    ErrorHandler,
    PriceFeedError,
    ProviderConnectionError,
    ResolutionError,
    SinkError,
    StateReadError,
    UnsupportedPoolVersion,
)

POOL = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"


class TestErrorTaxonomy:
    """Test error types carry their diagnostic context."""

    @pytest.mark.parametrize(
        "error_cls,kind",
        [
            (ResolutionError, "resolution"),
            (StateReadError, "state_read"),
            (ConversionError, "conversion"),
            (SinkError, "sink"),
        ],
    )
    def test_kind_and_pool(self, error_cls, kind):
        error = error_cls("boom", POOL)

        assert isinstance(error, PriceFeedError)
        assert error.kind == kind
        assert error.pool_address == POOL
        assert error.message == "boom"
        assert str(error) == f"boom (pool={POOL})"

    def test_connection_error_keeps_endpoint(self):
        error = ProviderConnectionError("unreachable", "http://node:8545")
        assert error.endpoint == "http://node:8545"
        assert error.kind == "connection"

    def test_unsupported_version(self):
        error = UnsupportedPoolVersion(4, POOL)
        assert error.version == 4
        assert "4" in str(error)
        assert POOL in str(error)

    def test_transient_errors(self):
        assert StateReadError in TRANSIENT_ERRORS
        assert ConversionError in TRANSIENT_ERRORS
        assert SinkError in TRANSIENT_ERRORS
        assert ResolutionError not in TRANSIENT_ERRORS
        assert UnsupportedPoolVersion not in TRANSIENT_ERRORS


class TestErrorHandler:
    """Test classification, retry policy and logging."""

    @pytest.fixture
    def handler(self):
        return ErrorHandler(logging.getLogger("test.errors"))

    @pytest.mark.parametrize(
        "error,category",
        [
            (asyncio.TimeoutError(), "network"),
            (ProviderConnectionError("down"), "network"),
            (SinkError("publish timed out"), "network"),
            (ConversionError("zero"), "validation"),
            (UnsupportedPoolVersion(2), "validation"),
            (Exception("429 Too Many Requests"), "rate_limit"),
            (Exception("Connection reset by peer"), "network"),
            (Exception("execution reverted"), "contract"),
            (Exception("invalid params"), "validation"),
            (Exception("something odd"), "unknown"),
        ],
    )
    def test_classify(self, handler, error, category):
        assert handler.classify_error(error) == category

    def test_should_retry_respects_attempts(self, handler):
        error = ProviderConnectionError("down")
        assert handler.should_retry(error, 0, 3)
        assert handler.should_retry(error, 1, 3)
        assert not handler.should_retry(error, 2, 3)

    def test_no_retry_for_contract_errors(self, handler):
        assert not handler.should_retry(Exception("execution reverted"), 0, 3)

    def test_retry_delay(self, handler):
        assert handler.get_retry_delay(ProviderConnectionError("down"), 0) == 1
        assert handler.get_retry_delay(ProviderConnectionError("down"), 3) == 8
        assert handler.get_retry_delay(Exception("rate limit"), 1) == 4
        assert handler.get_retry_delay(Exception("something odd"), 1) == 3
        assert handler.get_retry_delay(ProviderConnectionError("down"), 10) == 60

    def test_log_error_includes_pool_and_kind(self, handler, caplog):
        with caplog.at_level(logging.WARNING, logger="test.errors"):
            handler.log_error(StateReadError("slot0() failed", POOL), {"pool_address": POOL, "tick": 3})

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "state_read" in record.getMessage()
        assert POOL in record.getMessage()
        assert record.tick == 3
        assert record.error_type == "StateReadError"

    def test_log_error_contract_is_error_level(self, handler, caplog):
        with caplog.at_level(logging.WARNING, logger="test.errors"):
            handler.log_error(Exception("execution reverted"), {"endpoint": "http://node"})

        assert caplog.records[-1].levelno == logging.ERROR
        assert "http://node" in caplog.records[-1].getMessage()
