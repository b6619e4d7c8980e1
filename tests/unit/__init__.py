"""
Unit tests for the telemetry shipper.

Test individual components in isolation:
- Models (UUIDv7 ordering, record validation, wire shapes)
- Storage providers (file and mocked Redis)
- HTTP transport (httpx.MockTransport)
- Backoff schedule and status classification
- Delivery queues (eviction, FIFO drain, single-flight, retry/drop/shrink)
- Client facade
"""
