"""
Custom exceptions for the telemetry shipper.

Delivery and persistence failures never reach the producing application;
these types exist so storage backends can wrap OS/Redis errors with the
record context before the queue logs them.
"""


class TelemetryError(Exception):
    """
    Base exception for all telemetry shipper errors.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageError(TelemetryError):
    """
    Raised by a storage backend when a record or state blob cannot be
    read, written or deleted.
    """
    pass


class CorruptRecordError(StorageError):
    """
    Raised when a persisted record body cannot be decoded.

    The queue deletes the record and never retries it.
    """
    pass
