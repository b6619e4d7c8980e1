"""
Unit tests for record and payload models.
"""

import pytest
from pydantic import ValidationError

from telemetry_shipper.models.events import BatchPayload, CaptureEvent, SnapshotEvent


def test_capture_event_defaults():
    event = CaptureEvent(event="$pageview", distinct_id="user-1")

    assert event.properties == {}
    assert event.uuid
    assert event.timestamp


def test_capture_event_rejects_empty_name():
    with pytest.raises(ValidationError):
        CaptureEvent(event="", distinct_id="user-1")


def test_capture_event_is_frozen():
    event = CaptureEvent(event="$pageview", distinct_id="user-1")

    with pytest.raises(ValidationError):
        event.event = "other"


def test_stored_body_parses_back():
    event = CaptureEvent(event="signup", distinct_id="user-1", properties={"plan": "pro"})

    assert CaptureEvent.model_validate_json(event.model_dump_json()) == event


def test_batch_payload_wire_shape():
    event = CaptureEvent(event="signup", distinct_id="user-1")

    body = BatchPayload(api_key="phc_test_key", batch=[event]).model_dump()

    assert set(body) == {"api_key", "batch", "sent_at"}
    assert set(body["batch"][0]) == {"uuid", "event", "distinct_id", "timestamp", "properties"}


def test_snapshot_requires_data():
    with pytest.raises(ValidationError):
        SnapshotEvent(distinct_id="user-1", session_id="s", snapshot_data=[])
