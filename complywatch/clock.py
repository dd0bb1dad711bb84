"""Time sources used by the scheduler and metrics models."""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Protocol implemented by time sources."""

    def monotonic(self) -> float:
        """Return seconds on a monotonic scale for measuring intervals."""

    def now(self) -> datetime:
        """Return the current wall-clock time in UTC."""


class SystemClock:
    """Clock backed by the interpreter's real time sources."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """Clock that only moves when told to; used to drive timers deterministically."""

    def __init__(self, start: datetime | None = None) -> None:
        self._lock = threading.Lock()
        self._offset = 0.0
        self._start = start or datetime(2024, 1, 1, tzinfo=UTC)

    def monotonic(self) -> float:
        with self._lock:
            return self._offset

    def now(self) -> datetime:
        with self._lock:
            return self._start + timedelta(seconds=self._offset)

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._offset += seconds


__all__ = ["Clock", "ManualClock", "SystemClock"]
