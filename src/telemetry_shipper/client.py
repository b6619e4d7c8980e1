"""
Telemetry client facade.

Wires configuration, storage, transports and the delivery queues together
and exposes the producer-facing API. Producers never see delivery or
storage errors: capture() validates input and hands the record to the
queue, everything else happens in flush cycles on the event loop the
client was started on.

Typical lifecycle:
    >>> client = TelemetryClient(Settings(API_KEY="phc_..."))
    >>> await client.start()
    >>> client.capture("$pageview", distinct_id="user-1")
    >>> client.persist()          # app going to background
    >>> await client.shutdown()   # final flush + durability barrier
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import ValidationError

from telemetry_shipper.config import Settings
from telemetry_shipper.logging_config import configure_logging
from telemetry_shipper.models.events import CaptureEvent
from telemetry_shipper.queue.base import always_reachable
from telemetry_shipper.queue.event_queue import EventQueue
from telemetry_shipper.queue.replay_queue import ReplayQueue
from telemetry_shipper.retry.clock import Clock
from telemetry_shipper.storage.base import StorageProvider
from telemetry_shipper.storage.file_provider import FileStorageProvider
from telemetry_shipper.storage.redis_client import RedisClient
from telemetry_shipper.storage.redis_provider import RedisStorageProvider
from telemetry_shipper.transport.base_client import BaseTransportClient
from telemetry_shipper.transport.http_client import HttpTransportClient

logger = structlog.get_logger(__name__)

OPT_OUT_STATE_KEY = "opt_out"
REPLAY_GZIP_THRESHOLD_BYTES = 1024


class TelemetryClient:
    """
    Owns one EventQueue and, when replay is enabled, one ReplayQueue.

    Each stream gets its own storage namespace ("events" / "replay") and its
    own transport. Any collaborator can be injected for tests; the rest is
    built from settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Optional[Clock] = None,
        is_network_reachable: Callable[[], bool] = always_reachable,
        event_storage: Optional[StorageProvider] = None,
        replay_storage: Optional[StorageProvider] = None,
        event_transport: Optional[BaseTransportClient] = None,
        replay_transport: Optional[BaseTransportClient] = None,
        configure_logs: bool = True,
    ):
        """
        Initialize client.

        Args:
            settings: Settings (default: loaded from environment / .env)
            clock: Time source for retry pauses
            is_network_reachable: Predicate checked before every flush cycle
            event_storage: Storage for capture events (default from settings)
            replay_storage: Storage for replay snapshots (default from settings)
            event_transport: Transport for {host}/batch
            replay_transport: Transport for {host}/s/
            configure_logs: Install structlog configuration from settings

        Raises:
            pydantic.ValidationError: If settings are loaded here and invalid
        """
        self.settings = settings or Settings()
        if configure_logs:
            configure_logging(self.settings.LOG_LEVEL, self.settings.ENVIRONMENT)

        self._uses_redis = self.settings.STORAGE_BACKEND == "redis" and (
            event_storage is None or (self.settings.REPLAY_ENABLED and replay_storage is None)
        )

        self.event_storage = event_storage or self._build_storage("events")
        self.event_transport = event_transport or HttpTransportClient(
            base_url=self.settings.HOST,
            path="/batch",
            timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
        )
        self.events = EventQueue.from_settings(
            self.settings,
            self.event_storage,
            self.event_transport,
            clock=clock,
            is_network_reachable=is_network_reachable,
        )

        self.replay_storage: Optional[StorageProvider] = None
        self.replay_transport: Optional[BaseTransportClient] = None
        self.replay: Optional[ReplayQueue] = None
        if self.settings.REPLAY_ENABLED:
            self.replay_storage = replay_storage or self._build_storage("replay")
            self.replay_transport = replay_transport or HttpTransportClient(
                base_url=self.settings.HOST,
                path="/s/",
                timeout=self.settings.REPLAY_REQUEST_TIMEOUT_SECONDS,
                gzip_threshold_bytes=REPLAY_GZIP_THRESHOLD_BYTES,
            )
            self.replay = ReplayQueue.from_settings(
                self.settings,
                self.replay_storage,
                self.replay_transport,
                clock=clock,
                is_network_reachable=is_network_reachable,
            )

        self._opted_out = self.event_storage.load_state(OPT_OUT_STATE_KEY) == "true"

        logger.info(
            "Telemetry client initialized",
            host=self.settings.HOST,
            storage_backend=self.settings.STORAGE_BACKEND,
            replay_enabled=self.settings.REPLAY_ENABLED,
            queued=self.events.count(),
            opted_out=self._opted_out,
        )

    def _build_storage(self, namespace: str) -> StorageProvider:
        if self.settings.STORAGE_BACKEND == "redis":
            return RedisStorageProvider(
                RedisClient.get_client(self.settings),
                key_prefix=f"{self.settings.REDIS_KEY_PREFIX}:{namespace}",
            )
        return FileStorageProvider(Path(self.settings.STORAGE_PATH) / namespace)

    @property
    def queues(self) -> list:
        return [queue for queue in (self.events, self.replay) if queue is not None]

    @property
    def is_opted_out(self) -> bool:
        return self._opted_out

    # === Capture ===

    def capture(
        self,
        event: str,
        distinct_id: str,
        properties: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Queue a capture event.

        Returns:
            The event uuid, or None if the event was not queued (opted out,
            invalid input, unserializable properties or a storage failure)
        """
        if self._opted_out:
            return None

        try:
            record = CaptureEvent(
                event=event,
                distinct_id=distinct_id,
                properties=properties or {},
            )
        except ValidationError as e:
            logger.warning("Invalid event, not queued", event_name=event, errors=e.error_count())
            return None

        if not self.events.enqueue(record):
            return None
        return record.uuid

    def capture_snapshot(
        self,
        snapshot_data: List[Dict[str, Any]],
        distinct_id: str,
        session_id: str,
    ) -> None:
        """Queue replay snapshot data. No-op when replay is disabled."""
        if self._opted_out or self.replay is None:
            return
        self.replay.enqueue_snapshot(snapshot_data, distinct_id, session_id)

    # === Delivery ===

    def flush(self) -> None:
        """Schedule a flush of every stream (non-blocking)."""
        for queue in self.queues:
            queue.flush()

    async def flush_now(self) -> None:
        """Run one flush cycle per stream and wait for it."""
        for queue in self.queues:
            await queue.flush_now()

    def persist(self) -> None:
        """
        App is going to background: schedule flushes and block until every
        pending record write is on storage.
        """
        for queue in self.queues:
            queue.persist()

    # === Consent ===

    def opt_out(self) -> None:
        """Stop capturing and drop everything still queued."""
        self._opted_out = True
        for queue in self.queues:
            queue.clear()
        self.event_storage.save_state(OPT_OUT_STATE_KEY, "true")
        logger.info("Telemetry opted out, queues cleared")

    def opt_in(self) -> None:
        self._opted_out = False
        self.event_storage.delete_state(OPT_OUT_STATE_KEY)
        logger.info("Telemetry opted in")

    # === Lifecycle ===

    async def start(self) -> None:
        """Start the flush timers on the running event loop."""
        for queue in self.queues:
            await queue.start()
        logger.debug("Telemetry client started")

    async def shutdown(self) -> None:
        """
        Stop timers, run a final flush per stream, wait for pending writes
        and release transports and storage.
        """
        logger.info("Telemetry client shutting down")
        for queue in self.queues:
            await queue.shutdown(final_flush=True)

        for transport in (self.event_transport, self.replay_transport):
            if transport is not None:
                await transport.close()

        for storage in (self.event_storage, self.replay_storage):
            if storage is not None:
                storage.close()

        if self._uses_redis:
            RedisClient.close_pool()
        logger.info("Telemetry client shut down", remaining=self.events.count())

    async def __aenter__(self) -> "TelemetryClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"host={self.settings.HOST}, "
            f"events={self.events.count()}, "
            f"replay={'on' if self.replay is not None else 'off'})"
        )
