"""
Mutable retry and batch-limit state owned by a delivery queue.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from telemetry_shipper.retry.backoff import BackoffPolicy


@dataclass
class RetryState:
    """
    Consecutive failure counter and pause window.

    Attributes:
        retry_count: Consecutive retryable failures since the last success
        paused_until: Absolute UTC time before which no flush is attempted,
            or None when not paused
    """

    retry_count: int = 0
    paused_until: Optional[datetime] = None

    def is_paused(self, now: datetime) -> bool:
        return self.paused_until is not None and now < self.paused_until

    def record_failure(self, now: datetime, backoff: "BackoffPolicy") -> timedelta:
        """Count one more retryable failure and pause accordingly."""
        self.retry_count += 1
        delay = backoff.next_delay(self.retry_count)
        self.paused_until = now + delay
        return delay

    def reset(self) -> None:
        self.retry_count = 0
        self.paused_until = None


@dataclass
class AdjustedLimits:
    """
    Runtime batch limits, seeded from configuration.

    Halved on every payload-too-large response and never restored to the
    configured values. Both stay >= 1.
    """

    max_batch_size: int
    flush_at: int

    def __post_init__(self) -> None:
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        if self.flush_at < 1:
            raise ValueError("flush_at must be >= 1")

    def shrink(self) -> None:
        self.max_batch_size = max(1, self.max_batch_size // 2)
        self.flush_at = max(1, self.flush_at // 2)
