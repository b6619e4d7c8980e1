"""
Unit tests for FileStorageProvider.

Tests the storage contract: synchronous index visibility with background
writes, the pending-write barrier, failed-write and corrupt-load removal,
index reload from disk, and state blobs.
"""

import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from telemetry_shipper.models.identifiers import uuid7
from telemetry_shipper.storage.file_provider import FileStorageProvider


@pytest.fixture
def storage(tmp_path):
    provider = FileStorageProvider(tmp_path)
    yield provider
    provider.close()


def test_creates_queue_and_state_directories(tmp_path):
    provider = FileStorageProvider(tmp_path / "nested" / "base")

    assert (tmp_path / "nested" / "base" / "queue").is_dir()
    assert (tmp_path / "nested" / "base" / "state").is_dir()
    provider.close()


def test_save_is_visible_before_write_completes(tmp_path):
    """Test that the id is indexed on return even while the file write waits."""
    release = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1)
    executor.submit(release.wait)  # Occupy the only worker
    provider = FileStorageProvider(tmp_path, executor=executor)
    record_id = uuid7()

    provider.save_record(record_id, '{"n": 1}')

    assert provider.count() == 1
    assert provider.list_record_ids() == [record_id]
    assert not (tmp_path / "queue" / f"{record_id}.json").exists()

    release.set()
    assert provider.load_record(record_id) == '{"n": 1}'
    executor.shutdown(wait=True)


def test_flush_pending_writes_makes_records_durable(storage, tmp_path):
    ids = [uuid7() for _ in range(10)]
    for i, record_id in enumerate(ids):
        storage.save_record(record_id, f'{{"n": {i}}}')

    storage.flush_pending_writes()

    for record_id in ids:
        assert (tmp_path / "queue" / f"{record_id}.json").exists()
    assert not list((tmp_path / "queue").glob("*.tmp"))


def test_list_record_ids_sorted_oldest_first(storage):
    ids = [uuid7() for _ in range(5)]
    for record_id in reversed(ids):
        storage.save_record(record_id, "{}")

    assert storage.list_record_ids() == ids


def test_delete_record(storage, tmp_path):
    record_id = uuid7()
    storage.save_record(record_id, "{}")

    storage.delete_record(record_id)

    assert storage.count() == 0
    assert not (tmp_path / "queue" / f"{record_id}.json").exists()


def test_delete_missing_record_is_noop(storage):
    storage.delete_record(uuid7())

    assert storage.count() == 0


def test_load_missing_file_removes_id(storage, tmp_path):
    record_id = uuid7()
    storage.save_record(record_id, "{}")
    storage.flush_pending_writes()
    (tmp_path / "queue" / f"{record_id}.json").unlink()

    assert storage.load_record(record_id) is None
    assert storage.count() == 0


def test_load_undecodable_file_deletes_record(storage, tmp_path):
    record_id = uuid7()
    storage.save_record(record_id, "{}")
    storage.flush_pending_writes()
    path = tmp_path / "queue" / f"{record_id}.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    assert storage.load_record(record_id) is None
    assert storage.count() == 0
    assert not path.exists()


def test_failed_write_removes_id_and_notifies(storage, tmp_path):
    """Test that a write that cannot reach disk drops the record."""
    on_write_failed = MagicMock()
    storage.on_write_failed = on_write_failed
    shutil.rmtree(tmp_path / "queue")
    record_id = uuid7()

    storage.save_record(record_id, "{}")
    storage.flush_pending_writes()

    assert storage.count() == 0
    on_write_failed.assert_called_once_with(record_id)


def test_reload_index_from_disk(tmp_path):
    """Test records survive a restart and interrupted writes are cleaned up."""
    first = FileStorageProvider(tmp_path)
    ids = [uuid7() for _ in range(3)]
    for record_id in ids:
        first.save_record(record_id, "{}")
    first.close()
    (tmp_path / "queue" / "leftover.json.tmp").write_text("{", encoding="utf-8")

    second = FileStorageProvider(tmp_path)

    assert second.list_record_ids() == ids
    assert not (tmp_path / "queue" / "leftover.json.tmp").exists()
    second.close()


def test_clear_waits_for_writes_then_deletes(storage, tmp_path):
    for _ in range(5):
        storage.save_record(uuid7(), "{}")

    storage.clear()

    assert storage.count() == 0
    assert not list((tmp_path / "queue").glob("*.json"))


def test_clear_keeps_state(storage):
    storage.save_state("opt_out", "true")
    storage.save_record(uuid7(), "{}")

    storage.clear()

    assert storage.load_state("opt_out") == "true"


# ============================================================================
# State blobs
# ============================================================================


def test_state_roundtrip(storage, tmp_path):
    storage.save_state("session", '{"id": "abc"}')

    assert storage.load_state("session") == '{"id": "abc"}'
    assert (tmp_path / "state" / "session.json").exists()


def test_load_missing_state_returns_none(storage):
    assert storage.load_state("missing") is None


def test_delete_state(storage):
    storage.save_state("session", "{}")

    storage.delete_state("session")

    assert storage.load_state("session") is None
