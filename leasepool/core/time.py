"""
Time helpers for LeasePool

Key Principles:
1. Always store timestamps as INTEGER epoch_ms (UTC)
2. Convert to datetime only for display
3. Components that compare against "now" take a Clock, so tests can
   drive time explicitly instead of sleeping
"""

import time
from datetime import datetime, timezone
from typing import Optional, Protocol


def utc_now() -> datetime:
    """Get current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """
    Get current UTC timestamp in epoch milliseconds.

    Example:
        >>> ts = now_ms()
        >>> print(ts)
        1705320000000
    """
    return int(time.time() * 1000)


def from_epoch_ms(epoch_ms: Optional[int]) -> Optional[datetime]:
    """
    Convert epoch milliseconds to a UTC datetime.

    Zero and None both mean "never set" and map to None.
    """
    if not epoch_ms:
        return None
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc)


def format_epoch_ms(epoch_ms: Optional[int], fmt: str = "%Y-%m-%d %H:%M") -> str:
    """Format epoch milliseconds for display ("" when unset)."""
    dt = from_epoch_ms(epoch_ms)
    return dt.strftime(fmt) if dt else ""


class Clock(Protocol):
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        ...


class SystemClock:
    """Wall clock backed by time.time()"""

    def now_ms(self) -> int:
        return now_ms()
