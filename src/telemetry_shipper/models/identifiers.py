"""
Time-ordered record identifiers (UUID version 7).

Layout: 48-bit unix timestamp in milliseconds, version nibble, 12-bit
per-millisecond counter, variant bits, 62 random bits. The canonical string
form sorts lexicographically in creation order within one process, which the
queue relies on for FIFO eviction and batching.
"""

import os
import threading
import time
import uuid

_lock = threading.Lock()
_last_timestamp_ms = 0
_counter = 0

_MAX_COUNTER = 0xFFF


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def uuid7_bytes() -> bytes:
    """Generate the 16 raw bytes of a UUIDv7."""
    global _last_timestamp_ms, _counter

    with _lock:
        timestamp_ms = _now_ms()
        # Clock went backwards: keep ordering by reusing the last timestamp
        if timestamp_ms < _last_timestamp_ms:
            timestamp_ms = _last_timestamp_ms

        if timestamp_ms == _last_timestamp_ms:
            _counter += 1
            if _counter > _MAX_COUNTER:
                while timestamp_ms <= _last_timestamp_ms:
                    timestamp_ms = _now_ms()
                _counter = 0
        else:
            _counter = 0

        _last_timestamp_ms = timestamp_ms
        counter = _counter

    value = bytearray(16)
    value[0:6] = timestamp_ms.to_bytes(6, "big")
    value[6] = 0x70 | ((counter >> 8) & 0x0F)
    value[7] = counter & 0xFF
    value[8:16] = os.urandom(8)
    value[8] = 0x80 | (value[8] & 0x3F)
    return bytes(value)


def uuid7() -> str:
    """Generate a UUIDv7 in canonical lowercase 8-4-4-4-12 form."""
    return str(uuid.UUID(bytes=uuid7_bytes()))
