"""
Abstract storage provider for queued records and keyed state blobs.

Defines the contract both backends (file, Redis) adhere to. The delivery
queue only ever talks to this interface, so a backend can be swapped
without touching flush or retry logic.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


class StorageProvider(ABC):
    """
    Ordered record store plus an independent key-value state store.

    Responsibilities:
    - Persist record bodies durably across process restarts
    - Keep an in-memory index of record ids ordered by id (time-ordered)
    - Coordinate reads/deletes with writes still in flight

    Contract:
    - save_record may write asynchronously, but the id MUST be visible to
      list_record_ids()/count() when it returns.
    - load_record/delete_record on an id with a write in flight MUST wait for
      that write first.
    - A failed write removes the id from the index (the record is lost).
    - A failed or unreadable load removes the record; it never resurfaces.

    Does NOT handle:
    - Queue size limits or eviction (that's the queue's job)
    - Decoding record bodies (bodies are opaque strings here)
    """

    # Called with the record id after a write failed and the id was unindexed
    on_write_failed: Optional[Callable[[str], None]] = None

    def _notify_write_failed(self, record_id: str) -> None:
        if self.on_write_failed is not None:
            self.on_write_failed(record_id)

    @abstractmethod
    def save_record(self, record_id: str, body: str) -> None:
        """Persist a record body and register its id in the index."""

    @abstractmethod
    def load_record(self, record_id: str) -> Optional[str]:
        """
        Return the stored body, or None if missing or unreadable.

        Unreadable records are removed from storage before returning None.
        """

    @abstractmethod
    def delete_record(self, record_id: str) -> None:
        """Remove a record body and its id. Deleting a missing id is a no-op."""

    @abstractmethod
    def list_record_ids(self) -> list[str]:
        """Snapshot of record ids, oldest first."""

    def count(self) -> int:
        """Number of record ids currently indexed."""
        return len(self.list_record_ids())

    @abstractmethod
    def clear(self) -> None:
        """Delete every record. State blobs are left untouched."""

    def flush_pending_writes(self) -> None:
        """
        Block until every in-flight record write has completed.

        Default implementation does nothing (for backends that write
        synchronously).
        """

    @abstractmethod
    def save_state(self, key: str, blob: str) -> None:
        """Persist a small keyed blob (identity, session, flags...)."""

    @abstractmethod
    def load_state(self, key: str) -> Optional[str]:
        """Return a keyed blob, or None if absent or unreadable."""

    @abstractmethod
    def delete_state(self, key: str) -> None:
        """Remove a keyed blob."""

    def close(self) -> None:
        """
        Release resources held by the backend.

        Default implementation waits for pending writes. Subclasses holding
        executors or connections should extend it.
        """
        self.flush_pending_writes()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(records={self.count()})"
