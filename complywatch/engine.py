"""Real-time validation engine wiring the watcher, scheduler and metrics together."""

from __future__ import annotations

import math
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .clock import Clock, SystemClock
from .config import ComplyWatchConfig, load_config
from .logging import get_logger
from .metrics import AlertFeed, EffectivenessModel, ViolationAggregator
from .models import (
    Alert,
    ChangeKind,
    EffectivenessSnapshot,
    FileChangeEvent,
    RunningCounters,
    ValidationResult,
)
from .rules import StandardsValidator
from .scheduler import BatchScheduler, PendingChangeSet, PriorityBatchProcessor, ResourceGuard
from .scheduler.processor import ValidateFn
from .stores import MetricsHistoryStore
from .watch import ChangeDetector, FileSizeGuard, WatcherError, iter_files, load_ignore_rules

DetectorFactory = Callable[..., ChangeDetector]

_IDLE_POLL_SECONDS = 0.5
_MAX_STALLED_CYCLES = 3


class Engine:
    """Coordinates incremental validation of a watched tree.

    One scheduler thread owns flush decisions and waits for each batch to
    drain before cutting the next one. The watcher thread only enqueues.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        config: ComplyWatchConfig | None = None,
        validate: ValidateFn | None = None,
        clock: Clock | None = None,
        detector_factory: DetectorFactory | None = None,
        history: MetricsHistoryStore | None = None,
        guard: ResourceGuard | None = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.config = config or load_config(self.root)
        self.clock = clock or SystemClock()
        self.logger = get_logger("engine")

        self.ignore_rules = load_ignore_rules(self.root, self.config.exclude_paths)
        self.pending = PendingChangeSet(
            max_pending=self.config.scheduler.max_pending,
            age_boost_seconds=self.config.scheduler.age_boost_seconds,
            clock=self.clock,
        )
        self.scheduler = BatchScheduler.from_config(self.pending, self.config.scheduler, clock=self.clock)
        self.aggregator = ViolationAggregator(recent_capacity=self.config.metrics.recent_capacity)
        self.effectiveness = EffectivenessModel.from_config(self.config.effectiveness)
        self.alerts = AlertFeed(capacity=self.config.metrics.alert_capacity, clock=self.clock)
        self.guard = guard or ResourceGuard.from_config(self.config.resources, alerts=self.alerts)
        if self.guard.alerts is None:
            self.guard.alerts = self.alerts
        self.size_guard = FileSizeGuard(self.config.files.max_file_size_bytes)
        self.processor = PriorityBatchProcessor(
            validate or StandardsValidator(),
            pending=self.pending,
            aggregator=self.aggregator,
            guard=self.guard,
            size_guard=self.size_guard,
            max_workers=self.config.resources.max_workers,
            read_timeout=self.config.resources.read_timeout_ms / 1000.0,
            clock=self.clock,
            alerts=self.alerts,
        )
        self.history = history or MetricsHistoryStore(
            self.config.history_file, retention=self.config.metrics.history_retention
        )

        self._detector_factory = detector_factory or ChangeDetector
        self._detector: Optional[ChangeDetector] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._failure: Optional[BaseException] = None
        self._started_at = self.clock.monotonic()
        self._last_snapshot_at = self._started_at
        self._last_snapshot_version = -1

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching and the scheduler loop; watcher failures are fatal."""
        if self.running:
            raise RuntimeError("Engine already running")
        self._stop.clear()
        self._failure = None
        self._started_at = self.clock.monotonic()
        self._last_snapshot_at = self._started_at
        self.processor.reopen()

        detector = self._detector_factory(
            self.root, self.enqueue, rules=self.ignore_rules, clock=self.clock
        )
        try:
            detector.start()
        except WatcherError:
            self.logger.error("Watcher failed to start for %s; shutting down", self.root)
            self.processor.close()
            raise
        self._detector = detector

        thread = threading.Thread(target=self._loop, name="complywatch-scheduler", daemon=True)
        self._thread = thread
        thread.start()
        self.logger.info("Real-time validation started for %s", self.root)

    def stop(self, grace: float | None = None) -> None:
        """Stop the loop, drain in-flight work up to ``grace`` seconds and persist state."""
        if grace is None:
            grace = self.config.resources.shutdown_grace_ms / 1000.0
        self._stop.set()
        self._wake.set()
        self.processor.begin_shutdown()
        if self._detector is not None:
            self._detector.stop(timeout=grace)
            self._detector = None
        thread = self._thread
        if thread is not None:
            thread.join(grace)
            if thread.is_alive():
                self.logger.warning(
                    "Scheduler did not drain within %.1fs; abandoning in-flight work", grace
                )
        self.processor.close()
        self.record_snapshot()
        self.logger.info(
            "Stopped real-time validation (%d pending change(s) not validated)", len(self.pending)
        )

    def wait(self, timeout: float | None = None) -> None:
        """Block until the loop exits, re-raising a fatal loop error."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        if self._failure is not None:
            raise self._failure

    def close(self) -> None:
        self.processor.close()

    # ------------------------------------------------------------------
    # Inputs

    def enqueue(self, event: FileChangeEvent) -> None:
        """Accept a change from any thread."""
        self.scheduler.enqueue(event)
        self._wake.set()

    def check(self, paths: Iterable[str | Path] | None = None) -> RunningCounters:
        """Validate ``paths`` (default: every tracked file) once through the pipeline."""
        if self.running:
            raise RuntimeError("check() cannot run while the engine is watching")
        self.processor.reopen()
        if paths is None:
            targets: List[Path] = list(iter_files(self.root, self.ignore_rules))
        else:
            targets = [Path(p) if Path(p).is_absolute() else self.root / p for p in paths]
        for target in targets:
            self.scheduler.enqueue(
                FileChangeEvent(path=str(target), kind=ChangeKind.MODIFIED, detected_at=self.clock.now())
            )
        self.logger.info("Checking %d file(s) under %s", len(targets), self.root)

        max_cycles = 2 * math.ceil(len(targets) / self.scheduler.max_batch_size) + _MAX_STALLED_CYCLES
        stalled = 0
        cycles = 0
        while len(self.pending) and cycles < max_cycles and stalled < _MAX_STALLED_CYCLES:
            before = len(self.pending)
            self._run_cycle()
            cycles += 1
            stalled = stalled + 1 if len(self.pending) >= before else 0
        if len(self.pending):
            self.logger.warning(
                "%d file(s) were not validated because resource limits kept refusing work",
                len(self.pending),
            )
        self.record_snapshot()
        return self.aggregator.counters()

    # ------------------------------------------------------------------
    # Read side

    def session_minutes(self) -> float:
        return max(0.0, self.clock.monotonic() - self._started_at) / 60.0

    def current_counters(self) -> RunningCounters:
        return self.aggregator.counters()

    def current_effectiveness(self) -> EffectivenessSnapshot:
        return self.effectiveness.snapshot(self.aggregator.counters(), self.session_minutes())

    def recent_results(self, limit: int) -> List[ValidationResult]:
        return self.aggregator.recent(limit)

    def recent_alerts(self, limit: int | None = None) -> List[Alert]:
        return self.alerts.recent(limit)

    def trend(self) -> str:
        return self.effectiveness.trend()

    def record_snapshot(self) -> None:
        """Append the current counters and effectiveness to the history store."""
        snapshot = self.current_effectiveness()
        self.history.append(
            self.aggregator.counters(),
            snapshot,
            timestamp=self.clock.now(),
            trend=self.effectiveness.trend(),
        )
        try:
            self.history.persist()
        except OSError as exc:
            self.logger.warning("Could not persist metrics history (%s)", exc)
        self._last_snapshot_at = self.clock.monotonic()
        self._last_snapshot_version = self.aggregator.version

    # ------------------------------------------------------------------
    # Scheduler loop

    def _loop(self) -> None:
        try:
            while not self._stop.is_set():
                self._wake.clear()
                remaining = self.scheduler.time_until_flush()
                if remaining is not None and remaining <= 0.0:
                    self._run_cycle()
                    continue
                self._maybe_snapshot()
                timeout = _IDLE_POLL_SECONDS if remaining is None else min(remaining, _IDLE_POLL_SECONDS)
                self._wake.wait(timeout)
        except Exception as exc:
            self._failure = exc
            self.logger.exception("Scheduler loop failed; stopping")
            self._stop.set()
            detector = self._detector
            if detector is not None:
                detector.stop()

    def _run_cycle(self) -> None:
        batch = self.scheduler.flush()
        try:
            self.processor.process(batch)
        except Exception:
            restored = self.pending.requeue(batch.entries)
            self.logger.error(
                "Batch #%d failed; returned %d change(s) to the pending set", batch.sequence, restored
            )
            raise
        finally:
            self.scheduler.complete()
        self.effectiveness.observe(self.current_effectiveness())

    def _maybe_snapshot(self) -> None:
        interval = self.config.metrics.snapshot_interval_ms / 1000.0
        if interval <= 0:
            return
        if self.aggregator.version == self._last_snapshot_version:
            return
        if self.clock.monotonic() - self._last_snapshot_at >= interval:
            self.record_snapshot()


__all__ = ["Engine"]
