"""
Redis-backed storage provider.

For hosts without a usable local filesystem (containers with read-only
roots, sandboxed runtimes). Key layout:
- {prefix}:record:{id}  -> record body (string)
- {prefix}:records      -> sorted set of ids, all scored 0 so members come
                           back in lexicographic (= creation) order
- {prefix}:state:{key}  -> state blob (string)

Writes are synchronous, so there is never a pending write to wait for.
"""

import bisect
import threading
from typing import Optional

import structlog
from redis import Redis, RedisError

from telemetry_shipper.storage.base import StorageProvider

logger = structlog.get_logger(__name__)


class RedisStorageProvider(StorageProvider):
    """
    Record store on top of a Redis client.

    The id index is mirrored in memory (loaded from the sorted set on
    construction) so count() and eviction keep working from memory and
    do not cost a round trip.
    """

    DEFAULT_MAX_RECORD_BYTES = 50_000

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: str = "telemetry",
        max_record_bytes: int = DEFAULT_MAX_RECORD_BYTES,
    ):
        """
        Initialize provider.

        Args:
            redis_client: Redis client (decode_responses=True)
            key_prefix: Namespace for all keys written by this provider
            max_record_bytes: Size above which a record is logged as oversized
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.max_record_bytes = max_record_bytes
        self.index_key = f"{key_prefix}:records"

        self._lock = threading.Lock()
        self._record_ids: list[str] = []
        self._load_index()

    def _load_index(self) -> None:
        with self._lock:
            try:
                self._record_ids = sorted(self.redis.zrange(self.index_key, 0, -1))
                logger.debug("Loaded record index from Redis", records=len(self._record_ids))
            except RedisError as e:
                self._record_ids = []
                logger.error("Failed to load record index from Redis", error=str(e))

    def _record_key(self, record_id: str) -> str:
        return f"{self.key_prefix}:record:{record_id}"

    def _state_key(self, key: str) -> str:
        return f"{self.key_prefix}:state:{key}"

    def _forget(self, record_id: str) -> None:
        """Drop an id from the in-memory index (caller holds the lock)."""
        if record_id in self._record_ids:
            self._record_ids.remove(record_id)

    # === Records ===

    def save_record(self, record_id: str, body: str) -> None:
        size = len(body.encode("utf-8"))
        if size > self.max_record_bytes:
            logger.warning(
                "Record exceeds max size",
                record_id=record_id,
                size=size,
                max_record_bytes=self.max_record_bytes,
            )

        with self._lock:
            try:
                pipe = self.redis.pipeline()
                pipe.set(self._record_key(record_id), body)
                pipe.zadd(self.index_key, {record_id: 0})
                pipe.execute()
            except RedisError as e:
                self._forget(record_id)
                logger.error("Record write failed, record dropped", record_id=record_id, error=str(e))
                self._notify_write_failed(record_id)
                return

            position = bisect.bisect_left(self._record_ids, record_id)
            if position == len(self._record_ids) or self._record_ids[position] != record_id:
                self._record_ids.insert(position, record_id)

    def load_record(self, record_id: str) -> Optional[str]:
        with self._lock:
            try:
                body = self.redis.get(self._record_key(record_id))
            except RedisError as e:
                logger.error("Failed to load record", record_id=record_id, error=str(e))
                self._forget(record_id)
                self._try_delete(record_id)
                return None

            if body is None:
                self._forget(record_id)
                self._try_delete(record_id)
                logger.debug("Record body missing, removed from index", record_id=record_id)
            return body

    def delete_record(self, record_id: str) -> None:
        with self._lock:
            self._try_delete(record_id)
            self._forget(record_id)
        logger.debug("Deleted record", record_id=record_id)

    def _try_delete(self, record_id: str) -> None:
        try:
            pipe = self.redis.pipeline()
            pipe.delete(self._record_key(record_id))
            pipe.zrem(self.index_key, record_id)
            pipe.execute()
        except RedisError as e:
            logger.warning("Failed to delete record from Redis", record_id=record_id, error=str(e))

    def list_record_ids(self) -> list[str]:
        with self._lock:
            return list(self._record_ids)

    def count(self) -> int:
        with self._lock:
            return len(self._record_ids)

    def clear(self) -> None:
        with self._lock:
            try:
                keys = [self._record_key(record_id) for record_id in self._record_ids]
                pipe = self.redis.pipeline()
                if keys:
                    pipe.delete(*keys)
                pipe.delete(self.index_key)
                pipe.execute()
            except RedisError as e:
                logger.error("Failed to clear records in Redis", error=str(e))
            self._record_ids.clear()
        logger.debug("Cleared all records")

    # === State ===

    def save_state(self, key: str, blob: str) -> None:
        try:
            self.redis.set(self._state_key(key), blob)
            logger.debug("Saved state", key=key)
        except RedisError as e:
            logger.error("Failed to save state", key=key, error=str(e))

    def load_state(self, key: str) -> Optional[str]:
        try:
            return self.redis.get(self._state_key(key))
        except RedisError as e:
            logger.error("Failed to load state", key=key, error=str(e))
            return None

    def delete_state(self, key: str) -> None:
        try:
            self.redis.delete(self._state_key(key))
            logger.debug("Deleted state", key=key)
        except RedisError as e:
            logger.error("Failed to delete state", key=key, error=str(e))
