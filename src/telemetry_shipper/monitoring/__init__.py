"""Monitoring instrumentation for the telemetry shipper.

Exports Prometheus metrics for queue depth, delivery outcomes and data loss.
"""

from telemetry_shipper.monitoring.metrics import (
    batches_total,
    queue_depth,
    records_dropped_total,
    records_enqueued_total,
    records_sent_total,
    send_latency_seconds,
)

__all__ = [
    "batches_total",
    "queue_depth",
    "records_dropped_total",
    "records_enqueued_total",
    "records_sent_total",
    "send_latency_seconds",
]
