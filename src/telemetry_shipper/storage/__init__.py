"""
Persistence layer for queued records and keyed state blobs.

- base.py: StorageProvider contract
- file_provider.py: one file per record, background writes with a
  pending-write table
- redis_provider.py: Redis backend (sorted-set index, synchronous writes)
- redis_client.py: Redis connection pooling
"""

from telemetry_shipper.storage.base import StorageProvider
from telemetry_shipper.storage.file_provider import FileStorageProvider
from telemetry_shipper.storage.redis_client import RedisClient
from telemetry_shipper.storage.redis_provider import RedisStorageProvider

__all__ = [
    "StorageProvider",
    "FileStorageProvider",
    "RedisClient",
    "RedisStorageProvider",
]
