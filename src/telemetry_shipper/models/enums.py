"""
Enumerations for delivery outcomes and stream names.
"""

from enum import Enum


class FailureClass(str, Enum):
    """
    Classification of a failed batch send.

    RETRY keeps the batch and pauses the queue, DROP deletes the batch,
    SHRINK halves the adjusted batch limits and then behaves like RETRY.
    """

    RETRY = "retry"
    DROP = "drop"
    SHRINK = "shrink"


class StreamName(str, Enum):
    """Delivery streams sharing the queue core (used as metric/log labels)."""

    EVENTS = "events"
    REPLAY = "replay"


class DropReason(str, Enum):
    """Why a record left the queue without being delivered."""

    EVICTED = "evicted"
    PERMANENT_FAILURE = "permanent_failure"
    CORRUPT = "corrupt"
    WRITE_FAILED = "write_failed"
