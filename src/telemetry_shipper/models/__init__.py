"""
Data models for queued records and wire payloads.

Components:
- events: CaptureEvent, SnapshotEvent, BatchPayload (pydantic)
- enums: FailureClass, StreamName, DropReason
- identifiers: UUIDv7 generation for time-ordered record ids
"""

from telemetry_shipper.models.enums import DropReason, FailureClass, StreamName
from telemetry_shipper.models.events import BatchPayload, CaptureEvent, SnapshotEvent
from telemetry_shipper.models.identifiers import uuid7

__all__ = [
    "BatchPayload",
    "CaptureEvent",
    "SnapshotEvent",
    "DropReason",
    "FailureClass",
    "StreamName",
    "uuid7",
]
