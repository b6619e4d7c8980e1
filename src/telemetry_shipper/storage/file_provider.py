"""
File-based storage provider.

One file per record for crash resilience:
- {base}/queue/{id}.json holds a record body
- {base}/state/{key}.json holds a keyed state blob

Record writes run on a background thread pool so enqueue never blocks on
disk I/O. Every in-flight write is tracked as a Future keyed by record id;
loads and deletes of that id wait for it, and flush_pending_writes() waits
for all of them (call it before shutdown or app backgrounding).
"""

import bisect
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import partial
from pathlib import Path
from typing import Optional

import structlog

from telemetry_shipper.exceptions import StorageError
from telemetry_shipper.storage.base import StorageProvider

logger = structlog.get_logger(__name__)


class FileStorageProvider(StorageProvider):
    """
    Durable record store backed by one JSON file per record.

    The id index lives in memory and is rebuilt from the queue directory on
    construction (file names sorted, UUIDv7 ids are time-sortable). It is
    updated synchronously on save so counts are immediately accurate, while
    the file itself is written in the background.

    Record files are written to a temporary sibling and moved into place
    with os.replace, so a crash mid-write never leaves a truncated
    {id}.json behind.
    """

    QUEUE_DIR = "queue"
    STATE_DIR = "state"
    SUFFIX = ".json"
    TMP_SUFFIX = ".json.tmp"

    def __init__(
        self,
        base_path: str | os.PathLike,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the provider and load the record index from disk.

        Args:
            base_path: Root directory; queue/ and state/ are created under it
            executor: Thread pool for record writes (default: one private
                worker thread, shut down by close())
        """
        self.base_path = Path(base_path)
        self.queue_path = self.base_path / self.QUEUE_DIR
        self.state_path = self.base_path / self.STATE_DIR

        self._lock = threading.Lock()
        self._record_ids: list[str] = []
        self._pending_writes: dict[str, Future] = {}

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="telemetry-write"
        )

        try:
            self.queue_path.mkdir(parents=True, exist_ok=True)
            self.state_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Failed to create storage directories",
                base_path=str(self.base_path),
                error=str(e),
            )

        self._load_index()

    def _load_index(self) -> None:
        with self._lock:
            self._record_ids = []
            try:
                if not self.queue_path.is_dir():
                    return
                # Leftovers of writes interrupted by a crash
                for tmp in self.queue_path.glob(f"*{self.TMP_SUFFIX}"):
                    self._try_delete(tmp)
                self._record_ids = sorted(
                    path.name[: -len(self.SUFFIX)]
                    for path in self.queue_path.glob(f"*{self.SUFFIX}")
                )
                logger.debug("Loaded record index from disk", records=len(self._record_ids))
            except OSError as e:
                logger.error("Failed to load record index", error=str(e))

    # === Records ===

    def save_record(self, record_id: str, body: str) -> None:
        path = self._record_path(record_id)
        with self._lock:
            position = bisect.bisect_left(self._record_ids, record_id)
            if position == len(self._record_ids) or self._record_ids[position] != record_id:
                self._record_ids.insert(position, record_id)
            future = self._executor.submit(self._write_record, record_id, path, body)
            self._pending_writes[record_id] = future
        # Runs inline if the write already finished
        future.add_done_callback(partial(self._on_write_done, record_id))

    def _write_record(self, record_id: str, path: Path, body: str) -> None:
        try:
            self._write_file(path, body)
        except StorageError as e:
            # Unindexed before the future completes
            with self._lock:
                if record_id in self._record_ids:
                    self._record_ids.remove(record_id)
            logger.error(
                "Record write failed, record dropped",
                record_id=record_id,
                error=e.message,
                details=e.details,
            )
            self._notify_write_failed(record_id)
            raise

    def _write_file(self, path: Path, body: str) -> None:
        tmp_path = path.with_name(path.name[: -len(self.SUFFIX)] + self.TMP_SUFFIX)
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(body)
            os.replace(tmp_path, path)
        except OSError as e:
            self._try_delete(tmp_path)
            raise StorageError(
                f"Failed to write {path.name}",
                details={"path": str(path), "error": str(e)},
            ) from e

    def _on_write_done(self, record_id: str, future: Future) -> None:
        with self._lock:
            if self._pending_writes.get(record_id) is future:
                del self._pending_writes[record_id]

    def _wait_for_pending_write(self, record_id: str) -> None:
        with self._lock:
            future = self._pending_writes.get(record_id)
        if future is not None:
            # A failed write is logged and unindexed by _write_record
            wait([future])

    def load_record(self, record_id: str) -> Optional[str]:
        self._wait_for_pending_write(record_id)

        path = self._record_path(record_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            with self._lock:
                if record_id in self._record_ids:
                    self._record_ids.remove(record_id)
            logger.debug("Record file missing, removed from index", record_id=record_id)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to load record", record_id=record_id, error=str(e))
            with self._lock:
                if record_id in self._record_ids:
                    self._record_ids.remove(record_id)
                self._try_delete(path)
            return None

    def delete_record(self, record_id: str) -> None:
        self._wait_for_pending_write(record_id)

        with self._lock:
            self._try_delete(self._record_path(record_id))
            if record_id in self._record_ids:
                self._record_ids.remove(record_id)
        logger.debug("Deleted record", record_id=record_id)

    def list_record_ids(self) -> list[str]:
        with self._lock:
            return list(self._record_ids)

    def count(self) -> int:
        with self._lock:
            return len(self._record_ids)

    def clear(self) -> None:
        self.flush_pending_writes()

        with self._lock:
            for record_id in self._record_ids:
                self._try_delete(self._record_path(record_id))
            self._record_ids.clear()
        logger.debug("Cleared all records")

    def flush_pending_writes(self) -> None:
        with self._lock:
            pending = list(self._pending_writes.values())
        if not pending:
            return

        logger.debug("Waiting for pending writes", pending=len(pending))
        done, _ = wait(pending)
        failures = sum(1 for future in done if future.exception() is not None)
        if failures:
            logger.warning("Some pending writes failed", failures=failures)

    # === State ===

    def save_state(self, key: str, blob: str) -> None:
        try:
            self._state_path(key).write_text(blob, encoding="utf-8")
            logger.debug("Saved state", key=key)
        except OSError as e:
            logger.error("Failed to save state", key=key, error=str(e))

    def load_state(self, key: str) -> Optional[str]:
        path = self._state_path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to load state", key=key, error=str(e))
            return None

    def delete_state(self, key: str) -> None:
        self._try_delete(self._state_path(key))
        logger.debug("Deleted state", key=key)

    def close(self) -> None:
        self.flush_pending_writes()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # === Helpers ===

    def _record_path(self, record_id: str) -> Path:
        return self.queue_path / f"{record_id}{self.SUFFIX}"

    def _state_path(self, key: str) -> Path:
        return self.state_path / f"{key}{self.SUFFIX}"

    @staticmethod
    def _try_delete(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to delete file", path=str(path), error=str(e))
