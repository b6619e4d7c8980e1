"""
Injectable time source for pause windows.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything with a now() returning an aware UTC datetime."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
