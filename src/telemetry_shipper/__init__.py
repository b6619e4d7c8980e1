"""
Client-side telemetry shipper.

Accepts event records from an application, persists them durably on local
storage and delivers them in batches to a remote ingestion endpoint:
- Crash-resilient per-record storage (file or Redis backend)
- Single-flight flush cycles with FIFO batching
- Linear backoff pauses and adaptive batch-size degradation on 413
- A second stream (session replay snapshots) built on the same queue core

Architecture: asyncio delivery queues + httpx transport + pluggable storage
"""

__version__ = "0.1.0"

from telemetry_shipper.client import TelemetryClient
from telemetry_shipper.config import Settings

__all__ = [
    "TelemetryClient",
    "Settings",
    "__version__",
]
