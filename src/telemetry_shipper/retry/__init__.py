"""
Retry scheduling for failed batch sends.

A failed send is classified by status code (retry, drop, shrink). Retryable
failures pause the queue for a capped linear delay; the pause and the
consecutive-failure counter are cleared by the next successful send.

Main Components:
    - BackoffPolicy: delay schedule and status classification
    - RetryState: retry counter and pause window
    - AdjustedLimits: batch limits halved on payload-too-large
    - Clock / SystemClock: injectable time source

Usage:
    >>> from telemetry_shipper.retry import BackoffPolicy
    >>> BackoffPolicy().next_delay_seconds(3)
    15
"""

from telemetry_shipper.retry.backoff import BackoffPolicy, classify_status
from telemetry_shipper.retry.clock import Clock, SystemClock
from telemetry_shipper.retry.state import AdjustedLimits, RetryState

__all__ = [
    "AdjustedLimits",
    "BackoffPolicy",
    "Clock",
    "RetryState",
    "SystemClock",
    "classify_status",
]
