"""
Record and payload models for the delivery streams.

Records are persisted one per file as JSON (model_dump_json) and read back
with model_validate_json; a body that fails validation is treated as corrupt.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from telemetry_shipper import __version__
from telemetry_shipper.models.identifiers import uuid7

LIBRARY_NAME = "telemetry-shipper-python"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class CaptureEvent(BaseModel):
    """
    A single analytics event queued for the /batch endpoint.

    The uuid doubles as the storage record id; UUIDv7 keeps ids
    time-sortable.
    """
    model_config = ConfigDict(frozen=True)

    uuid: str = Field(default_factory=uuid7, description="UUIDv7 record id")
    event: str = Field(..., min_length=1, description="Event name (e.g. '$pageview')")
    distinct_id: str = Field(..., min_length=1, description="Id of the user who triggered the event")
    timestamp: str = Field(default_factory=utc_now_iso, description="ISO-8601 time of occurrence")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Event properties")


class BatchPayload(BaseModel):
    """Body POSTed to {host}/batch."""
    model_config = ConfigDict(frozen=True)

    api_key: str
    batch: List[CaptureEvent] = Field(default_factory=list)
    sent_at: str = Field(default_factory=utc_now_iso)


class SnapshotEvent(BaseModel):
    """
    A session replay snapshot queued for the /s/ endpoint.

    snapshot_data holds already-encoded rrweb events; building them is the
    capture side's job, not the shipper's.
    """
    model_config = ConfigDict(frozen=True)

    uuid: str = Field(default_factory=uuid7)
    distinct_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    timestamp: str = Field(default_factory=utc_now_iso)
    snapshot_data: List[Dict[str, Any]] = Field(..., min_length=1)

    def to_wire(self, api_key: str) -> Dict[str, Any]:
        """Render as a $snapshot event for the replay endpoint."""
        return {
            "uuid": self.uuid,
            "event": "$snapshot",
            "distinct_id": self.distinct_id,
            "timestamp": self.timestamp,
            "api_key": api_key,
            "properties": {
                "$snapshot_source": "mobile",
                "$session_id": self.session_id,
                "$snapshot_data": self.snapshot_data,
                "$lib": LIBRARY_NAME,
                "$lib_version": __version__,
            },
        }
