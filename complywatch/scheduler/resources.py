"""Backpressure guard watching memory, CPU and per-batch time budgets."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

import psutil

from ..config import ResourceConfig
from ..logging import get_logger
from ..metrics.alerts import ALERT_LEVEL_ALERT, ALERT_LEVEL_WARNING, AlertFeed

_MIB = 1024 * 1024


def process_memory_mb() -> float:
    """Resident set size of the current process in MiB."""
    return psutil.Process().memory_info().rss / _MIB


class _CpuProbe:
    """Non-blocking CPU sampler; psutil reports usage since the previous call."""

    def __init__(self) -> None:
        self._process = psutil.Process()
        self._process.cpu_percent(interval=None)

    def __call__(self) -> float:
        return self._process.cpu_percent(interval=None)


@dataclass(frozen=True)
class GuardReading:
    """Measured values at the moment of an admission decision."""

    memory_mb: float
    cpu_percent: Optional[float]
    batch_time_ms: float
    active_workers: int


class ResourceGuard:
    """Refuses further work once a configured threshold is reached.

    A refusal is the only backpressure signal in the pipeline: the caller puts
    the entry back into the pending set instead of dropping it.
    """

    def __init__(
        self,
        *,
        max_memory_mb: float = 500.0,
        max_batch_time_ms: float = 5000.0,
        max_workers: int = 4,
        max_cpu_percent: Optional[float] = None,
        memory_probe: Callable[[], float] = process_memory_mb,
        cpu_probe: Optional[Callable[[], float]] = None,
        alerts: Optional[AlertFeed] = None,
    ) -> None:
        self.max_memory_mb = max_memory_mb
        self.max_batch_time_ms = max_batch_time_ms
        self.max_workers = max_workers
        self.max_cpu_percent = max_cpu_percent
        self._memory_probe = memory_probe
        if cpu_probe is None and max_cpu_percent is not None:
            cpu_probe = _CpuProbe()
        self._cpu_probe = cpu_probe
        self._lock = threading.Lock()
        self._batch_time_ms = 0.0
        self._active = 0
        self.refusals = 0
        self.alerts = alerts
        self._alerted: set[str] = set()
        self.logger = get_logger("resources")

    @classmethod
    def from_config(cls, config: ResourceConfig, **overrides: object) -> "ResourceGuard":
        kwargs: dict[str, object] = {
            "max_memory_mb": config.max_memory_mb,
            "max_batch_time_ms": config.max_batch_time_ms,
            "max_workers": config.max_workers,
            "max_cpu_percent": config.max_cpu_percent,
        }
        kwargs.update(overrides)
        return cls(**kwargs)  # type: ignore[arg-type]

    @property
    def batch_time_ms(self) -> float:
        with self._lock:
            return self._batch_time_ms

    @property
    def active_workers(self) -> int:
        with self._lock:
            return self._active

    def begin_batch(self) -> None:
        """Reset the cumulative processing time for a new batch."""
        with self._lock:
            self._batch_time_ms = 0.0
            self._alerted.clear()

    def reading(self) -> GuardReading:
        memory = self._memory_probe()
        cpu = self._cpu_probe() if self._cpu_probe is not None else None
        with self._lock:
            return GuardReading(
                memory_mb=memory,
                cpu_percent=cpu,
                batch_time_ms=self._batch_time_ms,
                active_workers=self._active,
            )

    def admit(self) -> bool:
        """Return ``True`` and reserve a worker slot if every budget has headroom."""
        reading = self.reading()
        reason = self._refusal_reason(reading)
        if reason is None:
            with self._lock:
                if self._active < self.max_workers:
                    self._active += 1
                    return True
            reason = "workers"
        with self._lock:
            self.refusals += 1
        self.logger.warning(
            "Admission refused (reason=%s memory_mb=%.1f max_memory_mb=%.1f cpu_percent=%s "
            "max_cpu_percent=%s batch_time_ms=%.1f max_batch_time_ms=%.1f active_workers=%d max_workers=%d)",
            reason,
            reading.memory_mb,
            self.max_memory_mb,
            "n/a" if reading.cpu_percent is None else f"{reading.cpu_percent:.1f}",
            "n/a" if self.max_cpu_percent is None else f"{self.max_cpu_percent:.1f}",
            reading.batch_time_ms,
            self.max_batch_time_ms,
            reading.active_workers,
            self.max_workers,
        )
        self._raise_alert(reason, reading)
        return False

    def release(self, processing_time_ms: float = 0.0) -> None:
        """Free a worker slot and charge its time to the current batch."""
        with self._lock:
            self._active = max(0, self._active - 1)
            self._batch_time_ms += max(0.0, processing_time_ms)

    def _raise_alert(self, reason: str, reading: GuardReading) -> None:
        if self.alerts is None or reason == "workers":
            return
        with self._lock:
            if reason in self._alerted:
                return
            self._alerted.add(reason)
        if reason == "memory":
            message = f"High memory usage: {reading.memory_mb:.1f} MB (limit {self.max_memory_mb:.1f} MB)"
        elif reason == "cpu":
            message = f"High CPU usage: {reading.cpu_percent:.1f}% (limit {self.max_cpu_percent:.1f}%)"
        else:
            message = (
                f"Batch time budget spent: {reading.batch_time_ms:.1f} ms "
                f"(limit {self.max_batch_time_ms:.1f} ms)"
            )
        level = ALERT_LEVEL_ALERT if reason == "memory" else ALERT_LEVEL_WARNING
        self.alerts.raise_alert(reason, message, level=level)

    def _refusal_reason(self, reading: GuardReading) -> Optional[str]:
        if reading.memory_mb >= self.max_memory_mb:
            return "memory"
        if (
            self.max_cpu_percent is not None
            and reading.cpu_percent is not None
            and reading.cpu_percent >= self.max_cpu_percent
        ):
            return "cpu"
        if reading.batch_time_ms >= self.max_batch_time_ms:
            return "batch_time"
        return None


__all__ = ["GuardReading", "ResourceGuard", "process_memory_mb"]
