"""Injected clock and hasher capabilities.

Code that needs the current time or a content hash takes a ``Clock`` or
``Hasher`` argument instead of calling ``datetime.now`` / ``hashlib``
directly, so tests can pin both.
"""

from __future__ import annotations

import hashlib
import threading
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime: ...


class Hasher(Protocol):
    """Deterministic short hash used for change detection."""

    def hash(self, data: bytes) -> str: ...


class SystemClock:
    """Wall clock in UTC, truncated to whole seconds."""

    def now(self) -> datetime:
        return datetime.now(UTC).replace(microsecond=0)


class FixedClock:
    """Clock that only moves when told to. Thread-safe."""

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, delta: timedelta | float) -> datetime:
        """Move the clock forward by a timedelta or a number of seconds."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        with self._lock:
            self._now = self._now + delta
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value


class MD5Hasher:
    """Hex MD5 of the whitespace-trimmed input.

    Used for change detection only, not for integrity protection.
    """

    def hash(self, data: bytes) -> str:
        return hashlib.md5(data.strip(), usedforsecurity=False).hexdigest()


DEFAULT_CLOCK: Clock = SystemClock()
DEFAULT_HASHER: Hasher = MD5Hasher()
