"""Coalescing store of pending file changes."""

from __future__ import annotations

import math
import os
import threading
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..clock import Clock, SystemClock
from ..logging import get_logger
from ..models import Batch, ChangeKind, FileChangeEvent, PendingChangeEntry
from ..watch.paths import is_config_path, is_source_path, is_test_path

MIB = 1024 * 1024
DEFAULT_COST_MS = 100
MAX_SIZE_FACTOR = 2.0

COST_BASELINE_MS: Mapping[str, int] = {
    # compiled languages
    ".java": 200,
    ".kt": 200,
    ".scala": 200,
    ".cs": 200,
    ".go": 180,
    ".rs": 200,
    ".c": 180,
    ".cc": 180,
    ".cpp": 200,
    ".h": 150,
    ".hpp": 150,
    ".swift": 200,
    # typed / scripting languages
    ".ts": 150,
    ".tsx": 160,
    ".js": 120,
    ".jsx": 130,
    ".mjs": 120,
    ".cjs": 120,
    ".py": 120,
    ".rb": 120,
    ".php": 120,
    ".sh": 60,
    # markup and configuration
    ".html": 80,
    ".css": 60,
    ".scss": 60,
    ".md": 40,
    ".json": 40,
    ".yml": 30,
    ".yaml": 30,
    ".toml": 30,
    ".xml": 60,
    ".properties": 30,
    ".txt": 30,
}


def compute_priority(path: str, kind: ChangeKind) -> int:
    """Return the scheduling priority for a change (higher runs first)."""
    priority = 1
    if is_source_path(path):
        priority += 2
    if is_config_path(path):
        priority += 1
    if kind is ChangeKind.ADDED:
        priority += 1
    if is_test_path(path):
        priority -= 1
    return max(1, priority)


def estimate_cost_ms(path: str, size_bytes: int) -> int:
    """Estimate validation cost from the extension baseline and the file size."""
    suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
    baseline = COST_BASELINE_MS.get(suffix, DEFAULT_COST_MS)
    factor = min(MAX_SIZE_FACTOR, max(0, size_bytes) / MIB)
    return int(round(baseline * max(1.0, factor)))


def _stat_size(path: str) -> int:
    try:
        return os.stat(path).st_size
    except OSError:
        return 0


class PendingChangeSet:
    """Holds the latest pending change per path (last write wins).

    The set is shared between the watcher thread, which enqueues, and the
    scheduler loop, which flushes and requeues; every public method takes the
    internal lock.
    """

    def __init__(
        self,
        *,
        max_pending: int = 10_000,
        age_boost_seconds: float = 10.0,
        clock: Clock | None = None,
        size_of: Callable[[str], int] = _stat_size,
    ) -> None:
        if max_pending < 1:
            raise ValueError("max_pending must be positive")
        self.max_pending = max_pending
        self.age_boost_seconds = age_boost_seconds
        self._clock = clock or SystemClock()
        self._size_of = size_of
        self._entries: Dict[str, PendingChangeEntry] = {}
        self._lock = threading.Lock()
        self._sequence = 0
        self.evicted = 0
        self.logger = get_logger("pending")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def get(self, path: str) -> Optional[PendingChangeEntry]:
        with self._lock:
            return self._entries.get(path)

    def enqueue(self, event: FileChangeEvent) -> PendingChangeEntry:
        """Insert or overwrite the entry for ``event.path``."""
        size = 0 if event.kind is ChangeKind.REMOVED else self._size_of(event.path)
        priority = compute_priority(event.path, event.kind)
        cost = estimate_cost_ms(event.path, size)
        now = self._clock.monotonic()
        with self._lock:
            existing = self._entries.get(event.path)
            enqueued_at = existing.enqueued_at if existing is not None else now
            entry = PendingChangeEntry(
                path=event.path,
                kind=event.kind,
                detected_at=event.detected_at,
                priority=priority,
                estimated_cost_ms=cost,
                enqueued_at=enqueued_at,
            )
            self._entries[event.path] = entry
            evicted = self._evict_over_capacity()
        if evicted:
            self.logger.warning(
                "Pending change set over capacity; dropped %d oldest change(s) without validation "
                "(max_pending=%d, first_dropped=%s)",
                len(evicted),
                self.max_pending,
                evicted[0],
            )
        return entry

    def requeue(self, entries: Iterable[PendingChangeEntry]) -> int:
        """Return deferred entries, keeping any newer change already pending."""
        restored = 0
        with self._lock:
            for entry in entries:
                if entry.path in self._entries:
                    continue
                # Batches carry age-boosted priorities; store the base value again.
                base = compute_priority(entry.path, entry.kind)
                self._entries[entry.path] = replace(entry, priority=base)
                restored += 1
            evicted = self._evict_over_capacity()
        if evicted:
            self.logger.warning(
                "Pending change set over capacity after requeue; dropped %d change(s) (max_pending=%d)",
                len(evicted),
                self.max_pending,
            )
        return restored

    def effective_priority(self, entry: PendingChangeEntry, now: float) -> int:
        """Base priority plus one point per ``age_boost_seconds`` waited."""
        if self.age_boost_seconds <= 0:
            return entry.priority
        waited = max(0.0, now - entry.enqueued_at)
        return entry.priority + int(math.floor(waited / self.age_boost_seconds))

    def ordered(self) -> List[PendingChangeEntry]:
        """Return a snapshot of pending entries in flush order."""
        now = self._clock.monotonic()
        with self._lock:
            return self._ordered_locked(now)

    def flush(self, limit: int) -> Batch:
        """Remove and return up to ``limit`` entries as an immutable batch."""
        if limit < 1:
            raise ValueError("limit must be positive")
        now = self._clock.monotonic()
        with self._lock:
            selected = self._ordered_locked(now)[:limit]
            for entry in selected:
                del self._entries[entry.path]
            self._sequence += 1
            sequence = self._sequence
        return Batch(sequence=sequence, entries=tuple(selected), created_at=now)

    def oldest_wait(self) -> float:
        now = self._clock.monotonic()
        with self._lock:
            if not self._entries:
                return 0.0
            return now - min(entry.enqueued_at for entry in self._entries.values())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # ------------------------------------------------------------------
    # Internal helpers

    def _ordered_locked(self, now: float) -> List[PendingChangeEntry]:
        boosted: List[Tuple[Tuple[int, int, float, str], PendingChangeEntry]] = []
        for entry in self._entries.values():
            priority = self.effective_priority(entry, now)
            if priority != entry.priority:
                entry = replace(entry, priority=priority)
            boosted.append(((-priority, entry.estimated_cost_ms, entry.enqueued_at, entry.path), entry))
        boosted.sort(key=lambda item: item[0])
        return [entry for _, entry in boosted]

    def _evict_over_capacity(self) -> List[str]:
        overflow = len(self._entries) - self.max_pending
        if overflow <= 0:
            return []
        oldest = sorted(self._entries.values(), key=lambda entry: entry.enqueued_at)[:overflow]
        for entry in oldest:
            del self._entries[entry.path]
        self.evicted += len(oldest)
        return [entry.path for entry in oldest]


__all__ = [
    "COST_BASELINE_MS",
    "PendingChangeSet",
    "compute_priority",
    "estimate_cost_ms",
]
