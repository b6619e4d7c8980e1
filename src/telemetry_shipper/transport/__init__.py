"""
Batch transports.

Components:
- BaseTransportClient: Abstract base class, send(payload) -> SendResult
- HttpTransportClient: httpx implementation for /batch and /s/
"""

from telemetry_shipper.transport.base_client import BaseTransportClient, SendResult
from telemetry_shipper.transport.http_client import HttpTransportClient

__all__ = [
    "BaseTransportClient",
    "HttpTransportClient",
    "SendResult",
]
