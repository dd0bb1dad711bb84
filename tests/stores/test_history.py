"""Tests for the persisted metrics history."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from complywatch.models import EffectivenessSnapshot, RunningCounters
from complywatch.stores import MetricsHistoryStore

_START = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _snapshot(score: int) -> EffectivenessSnapshot:
    return EffectivenessSnapshot(
        effectiveness_score=score,
        time_saved_hours=1.5,
        productivity_gain_pct=10.0,
        quality_improvement_pct=90.0,
        standards_adoption_pct=80.0,
        roi_pct=120.0,
    )


def test_append_trims_to_retention(tmp_path: Path) -> None:
    store = MetricsHistoryStore(tmp_path / "history.json", retention=2)
    for index in range(3):
        store.append(
            RunningCounters(files_changed=index),
            _snapshot(50 + index),
            timestamp=_START + timedelta(minutes=index),
        )

    entries = store.entries()
    assert len(entries) == 2
    assert [entry["counters"]["files_changed"] for entry in entries] == [1, 2]
    assert entries[-1]["timestamp"] == "2024-05-01T12:02:00Z"
    assert store.entries(1) == entries[-1:]


def test_persist_and_reload(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "history.json"
    store = MetricsHistoryStore(path)
    store.append(
        RunningCounters(files_changed=4, violations_detected=2, warnings=2, clean_files=2),
        _snapshot(70),
        timestamp=_START,
        trend="improving",
    )
    store.persist()

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"] == 1
    assert data["entries"][0]["trend"] == "improving"

    reloaded = MetricsHistoryStore(path)
    assert reloaded.latest() == store.latest()
    assert reloaded.latest_counters() == RunningCounters(
        files_changed=4, violations_detected=2, warnings=2, clean_files=2
    )


def test_unreadable_history_is_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level("WARNING", logger="complywatch.history"):
        store = MetricsHistoryStore(path)

    assert store.entries() == []
    assert "Ignoring unreadable metrics history" in caplog.text


def test_unknown_version_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"version": 99, "entries": [{"timestamp": "x"}]}), encoding="utf-8")

    assert MetricsHistoryStore(path).entries() == []


def test_in_memory_store_never_writes(tmp_path: Path) -> None:
    store = MetricsHistoryStore(None)
    store.append(RunningCounters(), _snapshot(10), timestamp=_START)

    store.persist()

    assert store.path is None
    assert store.latest() is not None
    assert list(tmp_path.iterdir()) == []


def test_rejects_zero_retention() -> None:
    with pytest.raises(ValueError):
        MetricsHistoryStore(None, retention=0)
