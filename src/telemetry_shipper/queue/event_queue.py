"""
Capture event stream: CaptureEvent records delivered to {host}/batch.
"""

from typing import Any, Callable, Optional

from telemetry_shipper.config import Settings
from telemetry_shipper.models.enums import StreamName
from telemetry_shipper.models.events import BatchPayload, CaptureEvent
from telemetry_shipper.queue.base import BatchingQueue, always_reachable
from telemetry_shipper.retry.backoff import BackoffPolicy
from telemetry_shipper.retry.clock import Clock
from telemetry_shipper.storage.base import StorageProvider
from telemetry_shipper.transport.base_client import BaseTransportClient


class EventQueue(BatchingQueue[CaptureEvent]):
    """Batches capture events into BatchPayload bodies."""

    record_model = CaptureEvent
    stream = StreamName.EVENTS

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
    ) -> "EventQueue":
        return cls(
            storage,
            transport,
            api_key=settings.API_KEY,
            max_queue_size=settings.MAX_QUEUE_SIZE,
            max_batch_size=settings.MAX_BATCH_SIZE,
            flush_at=settings.FLUSH_AT,
            flush_interval_seconds=settings.FLUSH_INTERVAL_SECONDS,
            backoff=BackoffPolicy.from_settings(settings),
            clock=clock,
            is_network_reachable=is_network_reachable,
            metrics_enabled=settings.METRICS_ENABLED,
        )

    def build_payload(self, records: list[CaptureEvent]) -> BatchPayload:
        return BatchPayload(api_key=self.api_key, batch=records)
