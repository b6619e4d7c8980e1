"""
Durable batching delivery queues.

Main Components:
    - BatchingQueue: persisted FIFO with single-flight batch delivery
    - EventQueue: capture events for {host}/batch
    - ReplayQueue: replay snapshots for {host}/s/
"""

from telemetry_shipper.queue.base import BatchingQueue, always_reachable
from telemetry_shipper.queue.event_queue import EventQueue
from telemetry_shipper.queue.replay_queue import ReplayQueue

__all__ = [
    "BatchingQueue",
    "EventQueue",
    "ReplayQueue",
    "always_reachable",
]
