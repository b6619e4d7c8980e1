"""
Unit tests for the TelemetryClient facade.
"""

from unittest.mock import patch

import pytest

from telemetry_shipper.client import TelemetryClient
from telemetry_shipper.storage.file_provider import FileStorageProvider
from telemetry_shipper.storage.redis_provider import RedisStorageProvider
from telemetry_shipper.transport.http_client import HttpTransportClient

SNAPSHOT = [{"type": 3, "data": {"source": 2}}]


@pytest.fixture
def client(test_settings, fake_transport, replay_transport, manual_clock):
    return TelemetryClient(
        test_settings,
        clock=manual_clock,
        event_transport=fake_transport,
        replay_transport=replay_transport,
        configure_logs=False,
    )


def test_builds_file_storage_per_stream(client, test_settings):
    assert isinstance(client.event_storage, FileStorageProvider)
    assert isinstance(client.replay_storage, FileStorageProvider)
    assert client.event_storage.base_path.name == "events"
    assert client.replay_storage.base_path.name == "replay"


def test_builds_http_transports(test_settings):
    client = TelemetryClient(test_settings, configure_logs=False)

    assert isinstance(client.event_transport, HttpTransportClient)
    assert client.event_transport.url == "https://ingest.test/batch"
    assert client.event_transport.timeout == 10
    assert client.replay_transport.url == "https://ingest.test/s/"
    assert client.replay_transport.timeout == 30
    assert client.replay_transport.gzip_threshold_bytes == 1024


def test_replay_disabled(test_settings):
    settings = test_settings.model_copy(update={"REPLAY_ENABLED": False})

    client = TelemetryClient(settings, configure_logs=False)

    assert client.replay is None
    assert client.queues == [client.events]
    client.capture_snapshot(SNAPSHOT, distinct_id="user-1", session_id="session-1")


def test_redis_backend(test_settings, mock_redis):
    settings = test_settings.model_copy(update={"STORAGE_BACKEND": "redis", "REDIS_KEY_PREFIX": "app"})

    with patch("telemetry_shipper.client.RedisClient") as redis_client:
        redis_client.get_client.return_value = mock_redis
        client = TelemetryClient(settings, configure_logs=False)

    assert isinstance(client.event_storage, RedisStorageProvider)
    assert client.event_storage.key_prefix == "app:events"
    assert client.replay_storage.key_prefix == "app:replay"


def test_capture_queues_event(client):
    event_id = client.capture("$pageview", distinct_id="user-1", properties={"path": "/"})

    assert event_id is not None
    assert client.events.count() == 1
    assert client.event_storage.list_record_ids() == [event_id]


def test_capture_invalid_event_not_queued(client):
    assert client.capture("", distinct_id="user-1") is None
    assert client.events.count() == 0


def test_capture_invalid_event_with_default_logging(test_settings, fake_transport):
    """Test the rejection path logs without raising once structlog is configured."""
    client = TelemetryClient(test_settings, event_transport=fake_transport)

    assert client.capture("", distinct_id="user-1") is None
    assert client.events.count() == 0


def test_capture_unserializable_properties_not_queued(client):
    """Test that a record the queue could not encode is reported as not queued."""
    event_id = client.capture("signup", distinct_id="user-1", properties={"handle": object()})

    assert event_id is None
    assert client.events.count() == 0


def test_capture_snapshot_queues_replay(client):
    client.capture_snapshot(SNAPSHOT, distinct_id="user-1", session_id="session-1")

    assert client.replay.count() == 1


def test_opt_out_clears_and_blocks_capture(client, test_settings):
    client.capture("$pageview", distinct_id="user-1")
    client.capture_snapshot(SNAPSHOT, distinct_id="user-1", session_id="session-1")

    client.opt_out()

    assert client.is_opted_out
    assert client.events.count() == 0
    assert client.replay.count() == 0
    assert client.capture("$pageview", distinct_id="user-1") is None
    assert client.events.count() == 0


def test_opt_out_survives_restart(client, test_settings, fake_transport):
    client.opt_out()
    client.event_storage.close()

    restarted = TelemetryClient(test_settings, event_transport=fake_transport, configure_logs=False)
    assert restarted.is_opted_out

    restarted.opt_in()
    assert restarted.capture("$pageview", distinct_id="user-1") is not None


def test_persist_makes_queued_records_durable(client):
    event_id = client.capture("$pageview", distinct_id="user-1")

    client.persist()

    assert (client.event_storage.queue_path / f"{event_id}.json").exists()


@pytest.mark.asyncio
async def test_flush_now_delivers_both_streams(client, fake_transport, replay_transport):
    await client.start()
    client.capture("$pageview", distinct_id="user-1")
    client.capture_snapshot(SNAPSHOT, distinct_id="user-1", session_id="session-1")

    await client.flush_now()

    assert len(fake_transport.payloads) == 1
    assert len(replay_transport.payloads) == 1
    assert replay_transport.payloads[0][0]["event"] == "$snapshot"
    await client.shutdown()


@pytest.mark.asyncio
async def test_shutdown_flushes_and_closes(client, fake_transport):
    await client.start()
    client.capture("$pageview", distinct_id="user-1")

    await client.shutdown()

    assert len(fake_transport.payloads) == 1
    assert client.events.count() == 0
    assert fake_transport.closed
    assert not client.events.is_running


@pytest.mark.asyncio
async def test_async_context_manager(test_settings, fake_transport):
    async with TelemetryClient(
        test_settings, event_transport=fake_transport, configure_logs=False
    ) as client:
        assert client.events.is_running
        client.capture("$pageview", distinct_id="user-1")

    assert len(fake_transport.payloads) == 1


@pytest.mark.asyncio
async def test_shutdown_closes_redis_pool(test_settings, mock_redis, fake_transport):
    settings = test_settings.model_copy(update={"STORAGE_BACKEND": "redis", "REPLAY_ENABLED": False})

    with patch("telemetry_shipper.client.RedisClient") as redis_client:
        redis_client.get_client.return_value = mock_redis
        client = TelemetryClient(settings, event_transport=fake_transport, configure_logs=False)
        await client.shutdown()

    redis_client.close_pool.assert_called_once()
