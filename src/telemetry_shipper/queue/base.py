"""
Durable batching delivery queue.

BatchingQueue owns every piece of mutable delivery state for one stream:
the persisted record index (through a StorageProvider), the single-flight
flushing flag, the retry counter and pause window, and the adjusted batch
limits. Producers only call enqueue(); delivery happens in flush cycles
scheduled on the queue's event loop.

Flush cycle:
    1. Skip the whole cycle while paused or while the network is unreachable
    2. Take up to max_batch_size oldest ids (FIFO)
    3. Load bodies off the event loop; corrupt records are deleted and skipped
    4. Send the batch
    5. Success: delete the batch, reset retry state, continue with next batch
    6. Failure: DROP deletes the batch, RETRY pauses the queue, SHRINK halves
       the batch limits then pauses; any failure ends the cycle

Triggers: queue depth reaching flush_at on enqueue, the periodic timer
(when the queue is non-empty) and explicit flush calls. Redundant triggers
are no-ops while a cycle is running.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Coroutine, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from telemetry_shipper.exceptions import CorruptRecordError
from telemetry_shipper.models.enums import DropReason, FailureClass, StreamName
from telemetry_shipper.monitoring.metrics import (
    batches_total,
    queue_depth,
    records_dropped_total,
    records_enqueued_total,
    records_sent_total,
    send_latency_seconds,
)
from telemetry_shipper.retry.backoff import BackoffPolicy
from telemetry_shipper.retry.clock import Clock, SystemClock
from telemetry_shipper.retry.state import AdjustedLimits, RetryState
from telemetry_shipper.storage.base import StorageProvider
from telemetry_shipper.transport.base_client import BaseTransportClient

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def always_reachable() -> bool:
    return True


class BatchingQueue(ABC, Generic[RecordT]):
    """
    Persisted FIFO of records with single-flight batch delivery.

    Subclasses set record_model and stream, and build the wire payload for
    a list of records. Records must expose a time-ordered `uuid` used as the
    storage id.

    Attributes:
        storage: Record persistence backend
        transport: Batch sender (never raises)
        backoff: Delay schedule and status classification
        clock: Time source for pause windows
        limits: Adjusted max_batch_size / flush_at
        retry_state: Retry counter and pause window
    """

    record_model: ClassVar[type[BaseModel]]
    stream: ClassVar[StreamName]

    def __init__(
        self,
        storage: StorageProvider,
        transport: BaseTransportClient,
        *,
        max_queue_size: int,
        max_batch_size: int,
        flush_at: int,
        flush_interval_seconds: float,
        backoff: Optional[BackoffPolicy] = None,
        clock: Optional[Clock] = None,
        is_network_reachable: Callable[[], bool] = always_reachable,
        metrics_enabled: bool = True,
    ):
        """
        Initialize queue.

        Args:
            storage: Record persistence backend
            transport: Batch sender
            max_queue_size: Records kept before the oldest is evicted (>= 1)
            max_batch_size: Initial records per send (>= 1)
            flush_at: Initial queue depth that triggers a flush (>= 1)
            flush_interval_seconds: Period of the flush timer (> 0)
            backoff: Backoff policy (default 5s step, 30s cap)
            clock: Time source (default SystemClock)
            is_network_reachable: Predicate checked before every cycle
            metrics_enabled: Record Prometheus metrics

        Raises:
            ValueError: If a size or interval is out of range
        """
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")
        if flush_interval_seconds <= 0:
            raise ValueError("flush_interval_seconds must be > 0")

        self.storage = storage
        self.transport = transport
        self.max_queue_size = max_queue_size
        self.flush_interval_seconds = flush_interval_seconds
        self.backoff = backoff or BackoffPolicy()
        self.clock = clock or SystemClock()
        self.is_network_reachable = is_network_reachable
        self.metrics_enabled = metrics_enabled

        self.limits = AdjustedLimits(max_batch_size=max_batch_size, flush_at=flush_at)
        self.retry_state = RetryState()

        # Guards the enqueue section, the flushing flag and limits/retry updates
        self._lock = threading.Lock()
        self._flushing = False
        self._running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        # Ids whose write failed, already counted as write_failed
        self._write_failed_ids: set[str] = set()

        self.storage.on_write_failed = self._on_write_failed
        self._update_depth()

    # === Subclass hooks ===

    @abstractmethod
    def build_payload(self, records: list[RecordT]) -> Any:
        """Wire payload for one batch, in the order given."""

    def encode_record(self, record: RecordT) -> str:
        return record.model_dump_json()

    def decode_record(self, body: str) -> RecordT:
        """
        Parse a stored body.

        Raises:
            CorruptRecordError: If the body is not a valid record
        """
        try:
            return self.record_model.model_validate_json(body)
        except ValidationError as e:
            raise CorruptRecordError(
                "Stored record failed validation",
                details={"errors": e.error_count()},
            ) from e

    # === Producer API ===

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_flushing(self) -> bool:
        with self._lock:
            return self._flushing

    def count(self) -> int:
        """Number of persisted records waiting for delivery."""
        return self.storage.count()

    def enqueue(self, record: RecordT) -> bool:
        """
        Persist a record, evicting the oldest one if the queue is full.

        Never raises: encoding and storage failures are logged and the
        record is dropped.

        Returns:
            True if the record was handed to storage, False if it was dropped
        """
        record_id = record.uuid
        try:
            body = self.encode_record(record)
        except (TypeError, ValueError) as e:
            logger.error("Failed to encode record", stream=self.stream.value, record_id=record_id, error=str(e))
            return False

        evicted: list[str] = []
        try:
            with self._lock:
                record_ids = self.storage.list_record_ids()
                overflow = len(record_ids) - self.max_queue_size + 1
                if overflow > 0:
                    evicted = record_ids[:overflow]
                    for evicted_id in evicted:
                        self.storage.delete_record(evicted_id)
                self.storage.save_record(record_id, body)
        except Exception as e:
            logger.error(
                "Failed to enqueue record",
                stream=self.stream.value,
                record_id=record_id,
                error=str(e),
                exc_info=True,
            )
            return False

        if evicted:
            logger.warning(
                "Queue full, dropped oldest record",
                stream=self.stream.value,
                max_queue_size=self.max_queue_size,
                evicted=len(evicted),
            )
            self._count_dropped(DropReason.EVICTED, len(evicted))

        if self.metrics_enabled:
            records_enqueued_total.labels(stream=self.stream.value).inc()
        self._update_depth()
        logger.debug("Enqueued record", stream=self.stream.value, record_id=record_id)

        self._flush_if_over_threshold()
        return True

    def clear(self) -> None:
        """Delete every queued record (opt-out)."""
        with self._lock:
            self.storage.clear()
            self._write_failed_ids.clear()
        self._update_depth()
        logger.debug("Queue cleared", stream=self.stream.value)

    def flush(self) -> None:
        """
        Schedule a flush cycle without waiting for it.

        Safe to call from any thread. No-op while the queue is not running.
        """
        if not self._running or self._loop is None:
            logger.debug("Queue not running, skipping flush", stream=self.stream.value)
            return
        self._schedule(self._flush_cycle())

    async def flush_now(self) -> None:
        """Run one flush cycle in the calling task (single-flight applies)."""
        if not self._running:
            logger.debug("Queue not running, skipping flush", stream=self.stream.value)
            return
        await self._flush_cycle()

    def flush_pending_writes(self) -> None:
        """Block until every record write still in flight has completed."""
        self.storage.flush_pending_writes()

    def persist(self) -> None:
        """
        Durability barrier for app backgrounding: schedule a flush, then
        block until pending record writes reach storage.
        """
        self.flush()
        self.flush_pending_writes()

    # === Lifecycle ===

    async def start(self) -> None:
        """Bind to the running event loop and start the flush timer."""
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self._running = True
        self._timer_task = self._loop.create_task(self._timer_loop())
        logger.debug(
            "Queue started",
            stream=self.stream.value,
            flush_interval_seconds=self.flush_interval_seconds,
            queued=self.count(),
        )

    async def stop(self) -> None:
        """
        Stop the flush timer. A cycle already in progress is left to finish.
        """
        self._running = False
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None
        logger.debug("Queue stopped", stream=self.stream.value)

    async def shutdown(self, final_flush: bool = True) -> None:
        """
        Stop the queue, optionally deliver what is queued, and wait for
        pending writes so nothing is lost on process exit.
        """
        await self.stop()
        if self._tasks:
            await asyncio.wait(list(self._tasks))
        if final_flush:
            await self._flush_cycle()
        await asyncio.to_thread(self.storage.flush_pending_writes)
        logger.debug("Queue shut down", stream=self.stream.value, remaining=self.count())

    # === Flush machinery ===

    def _flush_if_over_threshold(self) -> None:
        queued = self.count()
        if queued >= self.limits.flush_at:
            logger.debug(
                "Queue at threshold, triggering flush",
                stream=self.stream.value,
                queued=queued,
                flush_at=self.limits.flush_at,
            )
            self.flush()

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is self._loop:
            task = self._loop.create_task(coro)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif self._loop.is_closed():
            coro.close()
            logger.debug("Event loop closed, skipping flush", stream=self.stream.value)
        else:
            asyncio.run_coroutine_threadsafe(coro, self._loop)

    async def _timer_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.flush_interval_seconds)
            except asyncio.CancelledError:
                logger.debug("Flush timer cancelled", stream=self.stream.value)
                break

            if self._running and self.count() > 0:
                logger.debug("Flush timer triggered", stream=self.stream.value)
                self._schedule(self._flush_cycle())

    async def _flush_cycle(self) -> None:
        with self._lock:
            if self._flushing:
                logger.debug("Already flushing, skipping", stream=self.stream.value)
                return
            self._flushing = True

        try:
            paused_until = self.retry_state.paused_until
            if self.retry_state.is_paused(self.clock.now()):
                logger.debug(
                    "Queue paused",
                    stream=self.stream.value,
                    paused_until=paused_until.isoformat(),
                )
                return

            if not self.is_network_reachable():
                logger.debug("No network connectivity, skipping flush", stream=self.stream.value)
                return

            await self._drain()
        except Exception as e:
            logger.error("Flush cycle failed", stream=self.stream.value, error=str(e), exc_info=True)
        finally:
            with self._lock:
                self._flushing = False

    async def _drain(self) -> None:
        while True:
            batch_ids = self.storage.list_record_ids()[: self.limits.max_batch_size]
            if not batch_ids:
                break

            loaded = await asyncio.to_thread(self._load_records, batch_ids)
            if not loaded:
                break

            sent_ids = [record_id for record_id, _ in loaded]
            records = [record for _, record in loaded]
            logger.debug("Flushing batch", stream=self.stream.value, batch_size=len(records))

            started = time.monotonic()
            result = await self.transport.send(self.build_payload(records))
            if self.metrics_enabled:
                send_latency_seconds.labels(stream=self.stream.value).observe(time.monotonic() - started)

            if result.success:
                await asyncio.to_thread(self._delete_records, sent_ids)
                with self._lock:
                    self.retry_state.reset()
                self._count_batch("success")
                if self.metrics_enabled:
                    records_sent_total.labels(stream=self.stream.value).inc(len(sent_ids))
                self._update_depth()
                logger.debug("Batch delivered", stream=self.stream.value, batch_size=len(sent_ids))
                continue

            await self._handle_failure(result.status_code, sent_ids)
            break

    async def _handle_failure(self, status_code: int, batch_ids: list[str]) -> None:
        failure = self.backoff.classify(status_code)
        self._count_batch(failure.value)

        if failure is FailureClass.DROP:
            await asyncio.to_thread(self._delete_records, batch_ids)
            self._count_dropped(DropReason.PERMANENT_FAILURE, len(batch_ids))
            self._update_depth()
            logger.warning(
                "Batch rejected, records dropped",
                stream=self.stream.value,
                status_code=status_code,
                batch_size=len(batch_ids),
            )
            return

        with self._lock:
            if failure is FailureClass.SHRINK:
                self.limits.shrink()
                logger.warning(
                    "Payload too large, reducing batch size",
                    stream=self.stream.value,
                    max_batch_size=self.limits.max_batch_size,
                    flush_at=self.limits.flush_at,
                )
            delay = self.retry_state.record_failure(self.clock.now(), self.backoff)
            retry_count = self.retry_state.retry_count

        logger.warning(
            "Flush failed, retrying later",
            stream=self.stream.value,
            status_code=status_code,
            retry_count=retry_count,
            delay_seconds=delay.total_seconds(),
        )

    # === Storage helpers (run off the event loop) ===

    def _load_records(self, record_ids: list[str]) -> list[tuple[str, RecordT]]:
        loaded: list[tuple[str, RecordT]] = []
        for record_id in record_ids:
            body = self.storage.load_record(record_id)
            if body is None:
                self.storage.delete_record(record_id)
                if record_id in self._write_failed_ids:
                    self._write_failed_ids.discard(record_id)
                else:
                    self._count_dropped(DropReason.CORRUPT, 1)
                continue
            try:
                loaded.append((record_id, self.decode_record(body)))
            except CorruptRecordError as e:
                logger.error(
                    "Corrupt record deleted",
                    stream=self.stream.value,
                    record_id=record_id,
                    error=e.message,
                    details=e.details,
                )
                self.storage.delete_record(record_id)
                self._count_dropped(DropReason.CORRUPT, 1)
        return loaded

    def _delete_records(self, record_ids: list[str]) -> None:
        for record_id in record_ids:
            self.storage.delete_record(record_id)

    # === Metrics ===

    def _count_dropped(self, reason: DropReason, amount: int) -> None:
        if self.metrics_enabled:
            records_dropped_total.labels(stream=self.stream.value, reason=reason.value).inc(amount)

    def _count_batch(self, outcome: str) -> None:
        if self.metrics_enabled:
            batches_total.labels(stream=self.stream.value, outcome=outcome).inc()

    def _on_write_failed(self, record_id: str) -> None:
        # May run under a storage lock: no storage calls here
        self._write_failed_ids.add(record_id)
        self._count_dropped(DropReason.WRITE_FAILED, 1)

    def _update_depth(self) -> None:
        if self.metrics_enabled:
            queue_depth.labels(stream=self.stream.value).set(self.count())

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"queued={self.count()}, "
            f"max_batch_size={self.limits.max_batch_size}, "
            f"flush_at={self.limits.flush_at})"
        )
