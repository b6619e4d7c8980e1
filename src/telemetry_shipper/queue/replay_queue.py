"""
Session replay stream: SnapshotEvent records delivered to {host}/s/.

Snapshots are large, so the defaults keep batches and the queue small
(10 per batch, 100 queued) and the transport gzips bodies over 1 KiB.
The wire body is a bare JSON array of $snapshot events, each carrying the
api key.
"""

from typing import Any, Callable, Dict, List, Optional

import structlog

from telemetry_shipper.config import Settings
from telemetry_shipper.models.enums import StreamName
from telemetry_shipper.models.events import SnapshotEvent
from telemetry_shipper.queue.base import BatchingQueue, always_reachable
from telemetry_shipper.retry.backoff import BackoffPolicy
from telemetry_shipper.retry.clock import Clock
from telemetry_shipper.storage.base import StorageProvider
from telemetry_shipper.transport.base_client import BaseTransportClient

logger = structlog.get_logger(__name__)


class ReplayQueue(BatchingQueue[SnapshotEvent]):
    """Batches replay snapshots into $snapshot event arrays."""

    record_model = SnapshotEvent
    stream = StreamName.REPLAY

    def __init__(self, storage: StorageProvider, transport: BaseTransportClient, *, api_key: str, **kwargs: Any):
        super().__init__(storage, transport, **kwargs)
        self.api_key = api_key

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: StorageProvider,
        transport: BaseTransportClient,
        clock: Optional[Clock] = None,
        is_network_reachable: Callable[[], bool] = always_reachable,
    ) -> "ReplayQueue":
        return cls(
            storage,
            transport,
            api_key=settings.API_KEY,
            max_queue_size=settings.REPLAY_MAX_QUEUE_SIZE,
            max_batch_size=settings.REPLAY_MAX_BATCH_SIZE,
            flush_at=settings.REPLAY_FLUSH_AT,
            flush_interval_seconds=settings.REPLAY_FLUSH_INTERVAL_SECONDS,
            backoff=BackoffPolicy.from_settings(settings),
            clock=clock,
            is_network_reachable=is_network_reachable,
            metrics_enabled=settings.METRICS_ENABLED,
        )

    def enqueue_snapshot(
        self,
        snapshot_data: List[Dict[str, Any]],
        distinct_id: str,
        session_id: str,
    ) -> None:
        """Queue one snapshot; empty data or a missing session is skipped."""
        if not snapshot_data:
            logger.debug("Empty snapshot data, skipping", stream=self.stream.value)
            return
        if not session_id or not distinct_id:
            logger.warning("Snapshot without session or distinct id, skipping", stream=self.stream.value)
            return
        self.enqueue(
            SnapshotEvent(
                distinct_id=distinct_id,
                session_id=session_id,
                snapshot_data=snapshot_data,
            )
        )

    def build_payload(self, records: list[SnapshotEvent]) -> List[Dict[str, Any]]:
        return [record.to_wire(self.api_key) for record in records]
