"""Prometheus metrics for the telemetry shipper.

Registered on the default prometheus_client registry, so a host
application that already exposes /metrics picks them up for free.
Alert rules worth configuring:
- records_dropped_total (silent data loss)
- batches_total{outcome="retry"} (ingestion endpoint unhealthy)
- queue_depth close to MAX_QUEUE_SIZE (eviction imminent)
"""

from prometheus_client import Counter, Gauge, Histogram

# === Queue Metrics ===

records_enqueued_total = Counter(
    "telemetry_records_enqueued_total",
    "Total records accepted into a delivery queue",
    ["stream"],
)

queue_depth = Gauge(
    "telemetry_queue_depth",
    "Records currently persisted and waiting for delivery",
    ["stream"],
)

records_dropped_total = Counter(
    "telemetry_records_dropped_total",
    "Total records removed without delivery",
    ["stream", "reason"],
)
"""
Labels:
- stream: events, replay
- reason: evicted (queue full), permanent_failure (4xx), corrupt (unreadable
  on load), write_failed
"""

# === Delivery Metrics ===

records_sent_total = Counter(
    "telemetry_records_sent_total",
    "Total records delivered successfully",
    ["stream"],
)

batches_total = Counter(
    "telemetry_batches_total",
    "Batch send attempts by outcome",
    ["stream", "outcome"],
)
"""
Labels:
- outcome: success, retry, drop, shrink
"""

send_latency_seconds = Histogram(
    "telemetry_send_latency_seconds",
    "Batch send latency in seconds",
    ["stream"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
