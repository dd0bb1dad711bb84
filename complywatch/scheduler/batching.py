"""Adaptive debounce scheduler deciding when pending changes become a batch."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Optional

from ..clock import Clock, SystemClock
from ..config import SchedulerConfig
from ..logging import get_logger
from ..models import Batch, FileChangeEvent, PendingChangeEntry
from .pending import PendingChangeSet


class SchedulerState(str, Enum):
    """Lifecycle of the single debounce timer."""

    IDLE = "idle"
    PENDING = "pending"
    FLUSHING = "flushing"


class BatchScheduler:
    """Debounce with an escape valve: the delay shrinks as the queue grows.

    States move ``IDLE -> PENDING`` on the first enqueue, ``PENDING -> FLUSHING``
    when :meth:`flush` is called and back to ``IDLE`` or ``PENDING`` on
    :meth:`complete`. While a batch is in flight no further flush is offered,
    so batch N drains before batch N+1 is cut.
    """

    def __init__(
        self,
        pending: PendingChangeSet,
        *,
        max_batch_size: int = 10,
        batch_size_target: int = 5,
        standard_delay: float = 0.3,
        burst_delay: float = 0.1,
        trickle_factor: float = 1.5,
        clock: Clock | None = None,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be positive")
        if not 1 <= batch_size_target <= max_batch_size:
            raise ValueError("batch_size_target must be between 1 and max_batch_size")
        self.pending = pending
        self.max_batch_size = max_batch_size
        self.batch_size_target = batch_size_target
        self.standard_delay = standard_delay
        self.burst_delay = burst_delay
        self.trickle_factor = trickle_factor
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._armed_at: Optional[float] = None
        self.logger = get_logger("scheduler")

    @classmethod
    def from_config(
        cls,
        pending: PendingChangeSet,
        config: SchedulerConfig,
        *,
        clock: Clock | None = None,
    ) -> "BatchScheduler":
        return cls(
            pending,
            max_batch_size=config.max_batch_size,
            batch_size_target=config.batch_size_target,
            standard_delay=config.standard_delay_ms / 1000.0,
            burst_delay=config.burst_delay_ms / 1000.0,
            trickle_factor=config.trickle_factor,
            clock=clock,
        )

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    def enqueue(self, event: FileChangeEvent) -> PendingChangeEntry:
        """Record a change and re-arm the debounce timer."""
        entry = self.pending.enqueue(event)
        with self._lock:
            self._armed_at = self._clock.monotonic()
            if self._state is SchedulerState.IDLE:
                self._state = SchedulerState.PENDING
        return entry

    def current_delay(self, depth: int | None = None) -> float:
        """Return the debounce delay for the given (or current) queue depth."""
        if depth is None:
            depth = len(self.pending)
        if depth >= self.max_batch_size:
            return self.burst_delay
        if depth >= self.batch_size_target:
            return self.standard_delay
        return self.standard_delay * self.trickle_factor

    def time_until_flush(self) -> Optional[float]:
        """Seconds until a flush is due, ``0`` when due, ``None`` when nothing waits."""
        depth = len(self.pending)
        with self._lock:
            if self._state is SchedulerState.FLUSHING:
                return None
            if depth == 0:
                self._state = SchedulerState.IDLE
                return None
            if self._state is SchedulerState.IDLE:
                # Entries requeued directly into the set arm the timer here.
                self._state = SchedulerState.PENDING
                self._armed_at = self._clock.monotonic()
            armed_at = self._armed_at if self._armed_at is not None else self._clock.monotonic()
            elapsed = self._clock.monotonic() - armed_at
        return max(0.0, self.current_delay(depth) - elapsed)

    def should_flush(self) -> bool:
        remaining = self.time_until_flush()
        return remaining is not None and remaining <= 0.0

    def flush(self) -> Batch:
        """Cut the next batch and enter the flushing state."""
        with self._lock:
            if self._state is SchedulerState.FLUSHING:
                raise RuntimeError("Previous batch has not completed")
            self._state = SchedulerState.FLUSHING
        batch = self.pending.flush(self.max_batch_size)
        self.logger.debug(
            "Flushed batch #%d with %d entries (%d still pending)",
            batch.sequence,
            len(batch),
            len(self.pending),
        )
        return batch

    def complete(self) -> None:
        """Mark the in-flight batch as drained and re-arm the timer for leftovers."""
        depth = len(self.pending)
        with self._lock:
            self._armed_at = self._clock.monotonic()
            self._state = SchedulerState.PENDING if depth else SchedulerState.IDLE


__all__ = ["BatchScheduler", "SchedulerState"]
