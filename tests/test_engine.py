"""Tests for complywatch.engine."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Callable

import pytest

from complywatch.clock import ManualClock
from complywatch.config import ComplyWatchConfig
from complywatch.engine import Engine
from complywatch.models import ChangeKind, FileChangeEvent
from complywatch.scheduler import ResourceGuard
from complywatch.scheduler.batching import SchedulerState
from complywatch.watch import ChangeDetector, WatcherError
from tests._fixtures.observers import FailingObserver, FakeObserver
from tests._fixtures.tree_builder import TreeBuilder


def _fake_detector(observer: type = FakeObserver) -> Callable[..., ChangeDetector]:
    def factory(root: Path, sink, **kwargs) -> ChangeDetector:
        return ChangeDetector(root, sink, observer_factory=observer, **kwargs)

    return factory


def _engine(root: Path, **kwargs) -> Engine:
    config = kwargs.pop("config", None) or ComplyWatchConfig(root=root)
    kwargs.setdefault("guard", ResourceGuard(memory_probe=lambda: 10.0))
    return Engine(root, config=config, **kwargs)


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _seed(tree: TreeBuilder) -> None:
    tree.write(
        {
            "src/app.ts": 'const password = "hunter22";\nconsole.log("booted");\n',
            "src/util.py": "def add(a: int, b: int) -> int:\n    return a + b\n",
            "README.md": "# Demo\n",
        }
    )


def test_check_validates_every_tracked_file(tree: TreeBuilder, clock: ManualClock) -> None:
    _seed(tree)
    engine = _engine(tree.path(), clock=clock)
    try:
        counters = engine.check()
    finally:
        engine.close()

    assert counters.files_changed == 3
    assert counters.critical_violations == 1
    assert counters.suggestions == 1
    assert counters.clean_files == 2
    assert len(engine.recent_results(10)) == 3

    history = json.loads(engine.config.history_file.read_text(encoding="utf-8"))
    assert history["entries"][-1]["counters"]["files_changed"] == 3


def test_check_accepts_explicit_paths(tree: TreeBuilder, clock: ManualClock) -> None:
    _seed(tree)
    engine = _engine(tree.path(), clock=clock)
    try:
        counters = engine.check(["src/util.py"])
    finally:
        engine.close()

    assert counters.files_changed == 1
    assert counters.violations_detected == 0


def test_check_gives_up_when_resources_keep_refusing(
    tree: TreeBuilder, clock: ManualClock, caplog: pytest.LogCaptureFixture
) -> None:
    _seed(tree)
    engine = _engine(
        tree.path(), clock=clock, guard=ResourceGuard(max_memory_mb=0, memory_probe=lambda: 0.0)
    )
    try:
        with caplog.at_level("WARNING", logger="complywatch.engine"):
            counters = engine.check()
    finally:
        engine.close()

    assert counters.files_changed == 0
    assert len(engine.pending) == 3
    assert "resource limits kept refusing work" in caplog.text


def test_current_effectiveness_uses_session_time(tree: TreeBuilder, clock: ManualClock) -> None:
    _seed(tree)
    engine = _engine(tree.path(), clock=clock)
    try:
        engine.check()
    finally:
        engine.close()
    clock.advance(600)

    assert engine.session_minutes() == pytest.approx(10.0)
    snapshot = engine.current_effectiveness()
    assert snapshot.time_saved_hours > 2.0
    assert engine.trend() == "stable"


def test_watch_validates_detected_changes(tree: TreeBuilder) -> None:
    _seed(tree)
    config = ComplyWatchConfig(root=tree.path().resolve())
    config.scheduler.standard_delay_ms = 10
    config.scheduler.burst_delay_ms = 5
    engine = _engine(tree.path(), config=config, detector_factory=_fake_detector())

    engine.start()
    try:
        assert engine.running
        detector = engine._detector
        assert detector is not None
        detector.notify(ChangeKind.MODIFIED, tree.file("src/app.ts"))
        detector.notify(ChangeKind.ADDED, tree.file("src/util.py"))
        detector.notify(ChangeKind.REMOVED, tree.file("gone.py"))

        assert _wait_for(lambda: engine.current_counters().files_changed == 2)
        assert _wait_for(lambda: len(engine.pending) == 0)
    finally:
        engine.stop(grace=2.0)

    assert not engine.running
    assert engine.current_counters().critical_violations == 1
    assert engine.processor.stats.removed == 1
    assert engine.history.latest() is not None


def test_watcher_failure_is_fatal(tree: TreeBuilder) -> None:
    engine = _engine(tree.path(), detector_factory=_fake_detector(FailingObserver))

    with pytest.raises(WatcherError):
        engine.start()

    assert not engine.running


def test_loop_failure_is_reraised_by_wait(tree: TreeBuilder, monkeypatch: pytest.MonkeyPatch) -> None:
    _seed(tree)
    config = ComplyWatchConfig(root=tree.path().resolve())
    config.scheduler.standard_delay_ms = 5
    engine = _engine(tree.path(), config=config, detector_factory=_fake_detector())

    def explode(batch):
        raise OSError("disk detached")

    monkeypatch.setattr(engine.processor, "process", explode)
    engine.start()
    try:
        engine._detector.notify(ChangeKind.MODIFIED, tree.file("src/util.py"))  # type: ignore[union-attr]
        with pytest.raises(OSError, match="disk detached"):
            engine.wait(timeout=5.0)
        assert len(engine.pending) == 1
    finally:
        engine.stop(grace=1.0)


def test_start_twice_is_rejected(tree: TreeBuilder) -> None:
    engine = _engine(tree.path(), detector_factory=_fake_detector())
    engine.start()
    try:
        with pytest.raises(RuntimeError):
            engine.start()
        with pytest.raises(RuntimeError):
            engine.check()
    finally:
        engine.stop(grace=1.0)


def test_engine_can_restart_after_stop(tree: TreeBuilder) -> None:
    _seed(tree)
    config = ComplyWatchConfig(root=tree.path().resolve())
    config.scheduler.standard_delay_ms = 10
    engine = _engine(tree.path(), config=config, detector_factory=_fake_detector())

    engine.start()
    engine.stop(grace=1.0)
    engine.start()
    try:
        engine._detector.notify(ChangeKind.MODIFIED, tree.file("src/util.py"))  # type: ignore[union-attr]
        assert _wait_for(lambda: engine.current_counters().files_changed == 1)
    finally:
        engine.stop(grace=1.0)

    assert engine._failure is None


def test_check_runs_after_watching_stopped(tree: TreeBuilder) -> None:
    _seed(tree)
    engine = _engine(tree.path(), detector_factory=_fake_detector())
    engine.start()
    engine.stop(grace=1.0)

    try:
        counters = engine.check(["src/util.py"])
    finally:
        engine.close()

    assert counters.files_changed == 1


def test_start_succeeds_after_watcher_failure(tree: TreeBuilder) -> None:
    observers = [FailingObserver, FakeObserver]

    def factory(root: Path, sink, **kwargs) -> ChangeDetector:
        return ChangeDetector(root, sink, observer_factory=observers.pop(0), **kwargs)

    engine = _engine(tree.path(), detector_factory=factory)
    with pytest.raises(WatcherError):
        engine.start()

    engine.start()
    try:
        assert engine.running
    finally:
        engine.stop(grace=1.0)


def test_failed_batch_returns_entries_to_pending(
    tree: TreeBuilder, clock: ManualClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    _seed(tree)
    engine = _engine(tree.path(), clock=clock)

    def explode(batch):
        raise OSError("disk detached")

    monkeypatch.setattr(engine.processor, "process", explode)
    for name in ("src/app.ts", "src/util.py"):
        engine.enqueue(
            FileChangeEvent(path=tree.file(name), kind=ChangeKind.MODIFIED, detected_at=clock.now())
        )
    try:
        with pytest.raises(OSError):
            engine._run_cycle()
    finally:
        engine.close()

    assert len(engine.pending) == 2
    assert engine.scheduler.state is SchedulerState.PENDING


def test_guard_refusals_reach_the_alert_feed(tree: TreeBuilder, clock: ManualClock) -> None:
    _seed(tree)
    engine = _engine(
        tree.path(), clock=clock, guard=ResourceGuard(max_memory_mb=0, memory_probe=lambda: 0.0)
    )
    try:
        engine.check()
    finally:
        engine.close()

    alerts = engine.recent_alerts()
    assert alerts
    assert {alert.kind for alert in alerts} == {"memory"}
