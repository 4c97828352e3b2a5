"""
Base classes and types for the price feed orchestrator.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PollerStatus(Enum):
    """Poller lifecycle status as reported by the orchestrator."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PollerState(Enum):
    """What a running poller is doing right now."""
    RESOLVING = "resolving"
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    TERMINATED = "terminated"


@dataclass
class PollerResult:
    """Outcome of one poller's run."""
    pool_address: str
    status: PollerStatus = PollerStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    ticks: int = 0
    emitted: int = 0
    failures: int = 0
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> Optional[timedelta]:
        """Calculate poller run duration."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return None

    @property
    def success(self) -> bool:
        """Check if the poller finished without a terminal error."""
        return self.status in (PollerStatus.COMPLETED, PollerStatus.CANCELLED)

    @property
    def is_complete(self) -> bool:
        """Check if the poller is in a final state."""
        return self.status in (
            PollerStatus.COMPLETED,
            PollerStatus.FAILED,
            PollerStatus.CANCELLED,
        )

    def mark_started(self) -> None:
        self.status = PollerStatus.RUNNING
        self.start_time = utcnow()

    def mark_completed(self) -> None:
        self.status = PollerStatus.COMPLETED
        self.end_time = utcnow()

    def mark_failed(self, error: str) -> None:
        self.status = PollerStatus.FAILED
        self.end_time = utcnow()
        self.error = error

    def mark_cancelled(self) -> None:
        self.status = PollerStatus.CANCELLED
        self.end_time = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary representation."""
        return {
            'pool_address': self.pool_address,
            'status': self.status.value,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'ticks': self.ticks,
            'emitted': self.emitted,
            'failures': self.failures,
            'error': self.error,
            'metadata': self.metadata,
            'duration_seconds': self.duration.total_seconds() if self.duration else None
        }
