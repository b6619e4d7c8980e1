"""
Backoff policy and status-code classification for failed batch sends.

The delay schedule is deliberately linear and capped:

    next_delay(n) = min(n * base_delay, max_delay)

With the defaults (5s step, 30s cap) consecutive failures pause the queue
for 5, 10, 15, 20, 25, 30, 30, ... seconds.

Classification of a failed send:
    0 (no response)        -> RETRY
    300-399                -> RETRY
    413                    -> SHRINK (halve batch limits, then retry)
    400-499 except 413     -> DROP
    500-599                -> RETRY
    anything else          -> RETRY
"""

from datetime import timedelta

from telemetry_shipper.config import Settings
from telemetry_shipper.models.enums import FailureClass

PAYLOAD_TOO_LARGE = 413


def classify_status(status_code: int) -> FailureClass:
    """
    Classify the status code of a failed send.

    Args:
        status_code: HTTP status, or 0 for transport-level failures

    Returns:
        FailureClass telling the queue whether to retry, drop or shrink
    """
    if status_code == PAYLOAD_TOO_LARGE:
        return FailureClass.SHRINK
    if 400 <= status_code < 500:
        return FailureClass.DROP
    return FailureClass.RETRY


class BackoffPolicy:
    """
    Capped linear backoff.

    Stateless: the queue owns the retry counter and asks for the delay that
    matches it.
    """

    def __init__(self, base_delay_seconds: float = 5, max_delay_seconds: float = 30):
        """
        Initialize backoff policy.

        Args:
            base_delay_seconds: Delay added per consecutive failure
            max_delay_seconds: Upper bound for any single pause
        """
        if base_delay_seconds <= 0 or max_delay_seconds <= 0:
            raise ValueError("Backoff delays must be positive")
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffPolicy":
        return cls(settings.RETRY_DELAY_SECONDS, settings.MAX_RETRY_DELAY_SECONDS)

    def next_delay_seconds(self, retry_count: int) -> float:
        """Pause length after the retry_count-th consecutive failure."""
        if retry_count < 1:
            return 0
        return min(retry_count * self.base_delay_seconds, self.max_delay_seconds)

    def next_delay(self, retry_count: int) -> timedelta:
        return timedelta(seconds=self.next_delay_seconds(retry_count))

    def classify(self, status_code: int) -> FailureClass:
        return classify_status(status_code)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"base_delay={self.base_delay_seconds}s, "
            f"max_delay={self.max_delay_seconds}s)"
        )
