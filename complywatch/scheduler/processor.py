"""Bounded-concurrency processing of priority-ordered batches."""

from __future__ import annotations

import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..clock import Clock, SystemClock
from ..logging import get_logger
from ..metrics.aggregator import ViolationAggregator
from ..metrics.alerts import AlertFeed
from ..models import Batch, ChangeKind, PendingChangeEntry, ProcessorStats, ValidationResult, Violation
from ..watch.size_guard import FileSizeGuard
from .pending import PendingChangeSet
from .resources import ResourceGuard

ValidateFn = Callable[[str, bytes], Sequence[Violation]]


class _Status(str, Enum):
    VALIDATED = "validated"
    REMOVED = "removed"
    DEFERRED = "deferred"
    FAILED = "failed"
    OVERSIZED = "oversized"


@dataclass(frozen=True)
class _Outcome:
    status: _Status
    entry: PendingChangeEntry
    result: Optional[ValidationResult] = None


def _read_bytes(path: str) -> bytes:
    return Path(path).read_bytes()


class PriorityBatchProcessor:
    """Runs ``validate`` over a batch with a fixed-size worker pool.

    Entries are submitted in batch order, so higher priority work starts
    first; completion order is unspecified. Failures are isolated to the
    entry that caused them and never abort the batch.
    """

    def __init__(
        self,
        validate: ValidateFn,
        *,
        pending: PendingChangeSet,
        aggregator: ViolationAggregator,
        guard: ResourceGuard,
        size_guard: FileSizeGuard | None = None,
        max_workers: int = 4,
        read_timeout: float = 2.0,
        clock: Clock | None = None,
        reader: Callable[[str], bytes] = _read_bytes,
        alerts: AlertFeed | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be positive")
        self._validate = validate
        self.pending = pending
        self.aggregator = aggregator
        self.guard = guard
        self.size_guard = size_guard
        self.max_workers = max_workers
        self.read_timeout = read_timeout
        self._clock = clock or SystemClock()
        self._reader = reader
        self.alerts = alerts
        self._workers, self._readers = self._make_pools()
        self._closed = False
        self._stopping = threading.Event()
        self._stats_lock = threading.Lock()
        self._stats = ProcessorStats()
        self.logger = get_logger("processor")

    @property
    def stats(self) -> ProcessorStats:
        with self._stats_lock:
            return ProcessorStats(**vars(self._stats))

    def process(self, batch: Batch) -> List[ValidationResult]:
        """Validate every entry of ``batch`` and return the completed results."""
        if not len(batch):
            return []
        if self._closed:
            raise RuntimeError("Processor is closed; call reopen() first")
        self.guard.begin_batch()
        batch_started = self._clock.monotonic()
        futures: List[Future[_Outcome]] = [
            self._workers.submit(self._run, entry) for entry in batch
        ]
        wait(futures)
        batch_ms = (self._clock.monotonic() - batch_started) * 1000.0

        results: List[ValidationResult] = []
        deferred: List[PendingChangeEntry] = []
        counts = {status: 0 for status in _Status}
        for entry, future in zip(batch.entries, futures):
            outcome = _Outcome(_Status.DEFERRED, entry) if future.cancelled() else future.result()
            counts[outcome.status] += 1
            if outcome.status is _Status.DEFERRED:
                deferred.append(outcome.entry)
            elif outcome.result is not None:
                results.append(outcome.result)

        if deferred:
            self.pending.requeue(deferred)
            self.logger.info(
                "Deferred %d of %d entries from batch #%d back to the pending set",
                len(deferred),
                len(batch),
                batch.sequence,
            )

        with self._stats_lock:
            self._stats.batches += 1
            self._stats.validated += counts[_Status.VALIDATED]
            self._stats.removed += counts[_Status.REMOVED]
            self._stats.deferred += counts[_Status.DEFERRED]
            self._stats.failed += counts[_Status.FAILED]
            self._stats.oversized += counts[_Status.OVERSIZED]

        if self.alerts is not None and batch_ms > self.guard.max_batch_time_ms:
            self.alerts.raise_alert(
                "slow_batch",
                f"Slow batch #{batch.sequence}: {batch_ms:.1f} ms for {len(batch)} entries "
                f"(limit {self.guard.max_batch_time_ms:.1f} ms)",
            )

        self.logger.debug(
            "Batch #%d done: validated=%d removed=%d deferred=%d failed=%d oversized=%d",
            batch.sequence,
            counts[_Status.VALIDATED],
            counts[_Status.REMOVED],
            counts[_Status.DEFERRED],
            counts[_Status.FAILED],
            counts[_Status.OVERSIZED],
        )
        return results

    def begin_shutdown(self) -> None:
        """Stop starting new entries; anything not yet started is deferred."""
        self._stopping.set()

    def close(self) -> None:
        self._stopping.set()
        self._closed = True
        self._workers.shutdown(wait=False, cancel_futures=True)
        self._readers.shutdown(wait=False, cancel_futures=True)

    def reopen(self) -> None:
        """Accept work again, replacing the pools if :meth:`close` shut them down."""
        if self._closed:
            self._workers, self._readers = self._make_pools()
            self._closed = False
        self._stopping.clear()

    # ------------------------------------------------------------------
    # Worker side

    def _run(self, entry: PendingChangeEntry) -> _Outcome:
        if self._stopping.is_set():
            return _Outcome(_Status.DEFERRED, entry)
        if not self.guard.admit():
            return _Outcome(_Status.DEFERRED, entry)

        started = self._clock.monotonic()
        elapsed_ms = 0.0
        try:
            if entry.kind is ChangeKind.REMOVED:
                self.logger.debug("Skipping validation for removed file %s", entry.path)
                return _Outcome(_Status.REMOVED, entry)
            if self.size_guard is not None and not self.size_guard.allows(entry.path):
                return _Outcome(_Status.OVERSIZED, entry)

            try:
                content = self._read(entry.path)
            except FutureTimeout:
                self.logger.warning(
                    "Reading %s exceeded %.1fs; skipping", entry.path, self.read_timeout
                )
                return _Outcome(_Status.FAILED, entry)
            except (CancelledError, RuntimeError):
                # Reader pool shut down underneath us.
                if not self._stopping.is_set():
                    raise
                return _Outcome(_Status.DEFERRED, entry)
            except OSError as exc:
                self.logger.warning("Could not read %s; skipping (%s)", entry.path, exc)
                return _Outcome(_Status.FAILED, entry)

            try:
                violations = tuple(self._validate(entry.path, content))
            except Exception as exc:
                self.logger.warning("Validation failed for %s; skipping (%s)", entry.path, exc)
                return _Outcome(_Status.FAILED, entry)

            elapsed_ms = (self._clock.monotonic() - started) * 1000.0
            result = ValidationResult(
                path=entry.path,
                violations=violations,
                processing_time_ms=elapsed_ms,
                completed_at=self._clock.now(),
            )
            self.aggregator.record(result)
            return _Outcome(_Status.VALIDATED, entry, result)
        finally:
            if not elapsed_ms:
                elapsed_ms = (self._clock.monotonic() - started) * 1000.0
            self.guard.release(elapsed_ms)

    def _make_pools(self) -> tuple[ThreadPoolExecutor, ThreadPoolExecutor]:
        workers = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="complywatch-worker"
        )
        readers = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="complywatch-reader"
        )
        return workers, readers

    def _read(self, path: str) -> bytes:
        future = self._readers.submit(self._reader, path)
        return future.result(timeout=self.read_timeout)


__all__ = ["PriorityBatchProcessor", "ValidateFn"]
