"""Unit test fixtures (fakes and mocks).

Provides in-memory stand-ins for the network and the clock so queue
behaviour can be tested deterministically.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest

from telemetry_shipper.models.events import CaptureEvent
from telemetry_shipper.queue.event_queue import EventQueue
from telemetry_shipper.storage.file_provider import FileStorageProvider
from telemetry_shipper.transport.base_client import BaseTransportClient, SendResult


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeTransport(BaseTransportClient):
    """Records payloads and answers with scripted status codes (200 when empty).

    Set `gate` to an asyncio.Event to hold every send until it is set.
    """

    def __init__(self):
        super().__init__("https://ingest.test")
        self.payloads: list[Any] = []
        self.statuses: list[int] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def send(self, payload: Any) -> SendResult:
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        status = self.statuses.pop(0) if self.statuses else 200
        return SendResult(success=200 <= status < 300, status_code=status)

    async def close(self) -> None:
        self.closed = True


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll predicate on the event loop until true or fail after timeout."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    """Async poller: `await wait_until(lambda: queue.count() == 0)`."""
    return _wait_until


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def replay_transport() -> FakeTransport:
    """Second fake transport for the replay stream."""
    return FakeTransport()


@pytest.fixture
def file_storage(tmp_path):
    """File storage in a temporary directory, closed after the test."""
    storage = FileStorageProvider(tmp_path / "events")
    yield storage
    storage.close()


@pytest.fixture
def make_event():
    """Factory for capture events with sequential names."""
    counter = {"n": 0}

    def _make(event: Optional[str] = None, **kwargs) -> CaptureEvent:
        counter["n"] += 1
        return CaptureEvent(
            event=event or f"event_{counter['n']}",
            distinct_id=kwargs.pop("distinct_id", "user-1"),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_event_queue(file_storage, fake_transport, manual_clock):
    """Factory for EventQueue wired to file storage, fake transport and manual clock."""

    def _make(**overrides) -> EventQueue:
        options = {
            "api_key": "phc_test_key",
            "max_queue_size": 1000,
            "max_batch_size": 50,
            "flush_at": 20,
            "flush_interval_seconds": 3600,
            "clock": manual_clock,
            "metrics_enabled": False,
        }
        options.update(overrides)
        storage = options.pop("storage", file_storage)
        transport = options.pop("transport", fake_transport)
        return EventQueue(storage, transport, **options)

    return _make


@pytest.fixture
def mock_redis():
    """Mock Redis client for unit tests (sync)."""
    mock = MagicMock()
    mock.set = MagicMock(return_value=True)
    mock.get = MagicMock(return_value=None)
    mock.delete = MagicMock(return_value=1)
    mock.zadd = MagicMock(return_value=1)
    mock.zrange = MagicMock(return_value=[])
    return mock
