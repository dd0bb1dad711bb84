"""Persistent, bounded history of metric snapshots."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..logging import get_logger
from ..models import EffectivenessSnapshot, RunningCounters

_HISTORY_VERSION = 1


class MetricsHistoryStore:
    """Appends counter/effectiveness snapshots and trims beyond the retention count."""

    def __init__(self, path: Path | None, *, retention: int = 100) -> None:
        if retention < 1:
            raise ValueError("retention must be positive")
        self._path = path
        self.retention = retention
        self._entries: List[Dict[str, object]] = []
        self._dirty = False
        self._lock = threading.Lock()
        self.logger = get_logger("history")
        if self._path is not None:
            self._load(self._path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def append(
        self,
        counters: RunningCounters,
        effectiveness: EffectivenessSnapshot,
        *,
        timestamp: datetime,
        trend: str | None = None,
    ) -> Dict[str, object]:
        entry: Dict[str, object] = {
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
            "counters": counters.to_dict(),
            "effectiveness": effectiveness.to_dict(),
        }
        if trend is not None:
            entry["trend"] = trend
        with self._lock:
            self._entries.append(entry)
            overflow = len(self._entries) - self.retention
            if overflow > 0:
                del self._entries[:overflow]
            self._dirty = True
        return entry

    def entries(self, limit: int | None = None) -> List[Dict[str, object]]:
        """Return stored entries oldest first, optionally only the last ``limit``."""
        with self._lock:
            items = list(self._entries)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def latest(self) -> Optional[Dict[str, object]]:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def latest_counters(self) -> Optional[RunningCounters]:
        latest = self.latest()
        if latest is None or not isinstance(latest.get("counters"), dict):
            return None
        return RunningCounters.from_dict(latest["counters"])  # type: ignore[arg-type]

    def persist(self) -> None:
        with self._lock:
            if not self._dirty or self._path is None:
                return
            payload = {"version": _HISTORY_VERSION, "entries": list(self._entries)}
            self._dirty = False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self._path)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable metrics history %s (%s)", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _HISTORY_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, list):
            return
        valid = [
            entry
            for entry in entries
            if isinstance(entry, dict)
            and isinstance(entry.get("timestamp"), str)
            and isinstance(entry.get("counters"), dict)
            and isinstance(entry.get("effectiveness"), dict)
        ]
        self._entries = valid[-self.retention :]
        self._dirty = False


__all__ = ["MetricsHistoryStore"]
