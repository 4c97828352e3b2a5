"""
Tests for poller result bookkeeping.
"""

from ..base import PollerResult, PollerStatus

POOL = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"


class TestPollerResult:
    def test_lifecycle(self):
        result = PollerResult(POOL)
        assert result.status == PollerStatus.PENDING
        assert not result.is_complete
        assert result.duration is None

        result.mark_started()
        assert result.status == PollerStatus.RUNNING

        result.mark_completed()
        assert result.is_complete
        assert result.success
        assert result.duration is not None

    def test_failure_keeps_error(self):
        result = PollerResult(POOL)
        result.mark_started()
        result.mark_failed("Unsupported pool version: 4")

        assert not result.success
        assert result.error == "Unsupported pool version: 4"

    def test_cancelled_counts_as_clean_exit(self):
        result = PollerResult(POOL)
        result.mark_started()
        result.mark_cancelled()

        assert result.success
        assert result.status == PollerStatus.CANCELLED

    def test_to_dict(self):
        result = PollerResult(POOL, ticks=5, emitted=4, failures=1, metadata={"pair": "USDC/WETH"})
        result.mark_started()
        result.mark_completed()

        data = result.to_dict()

        assert data["status"] == "completed"
        assert data["ticks"] == 5
        assert data["emitted"] == 4
        assert data["failures"] == 1
        assert data["metadata"] == {"pair": "USDC/WETH"}
        assert data["duration_seconds"] >= 0
