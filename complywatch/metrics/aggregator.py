"""Folds validation results into session counters and a recent-activity ring."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace
from typing import Deque, List

from ..logging import get_logger
from ..models import RunningCounters, Severity, ValidationResult

_SEVERITY_FIELDS = {
    Severity.CRITICAL: "critical_violations",
    Severity.WARNING: "warnings",
    Severity.INFO: "info_violations",
    Severity.SUGGESTION: "suggestions",
}


def fold(counters: RunningCounters, result: ValidationResult) -> RunningCounters:
    """Return ``counters`` with ``result`` added; pure and order-independent."""
    increments = {name: 0 for name in _SEVERITY_FIELDS.values()}
    for violation in result.violations:
        increments[_SEVERITY_FIELDS[violation.severity]] += 1
    return replace(
        counters,
        files_changed=counters.files_changed + 1,
        violations_detected=counters.violations_detected + len(result.violations),
        critical_violations=counters.critical_violations + increments["critical_violations"],
        warnings=counters.warnings + increments["warnings"],
        info_violations=counters.info_violations + increments["info_violations"],
        suggestions=counters.suggestions + increments["suggestions"],
        total_processing_time_ms=counters.total_processing_time_ms + result.processing_time_ms,
        clean_files=counters.clean_files + (0 if result.violations else 1),
    )


class ViolationAggregator:
    """Single owner of the session's :class:`RunningCounters`.

    Updates are serialised by a short-held lock and publish a brand new
    immutable counters object, so readers never observe a half-applied
    update. Repeated edits of the same path accumulate.
    """

    def __init__(self, *, recent_capacity: int = 1000) -> None:
        if recent_capacity < 1:
            raise ValueError("recent_capacity must be positive")
        self._lock = threading.Lock()
        self._counters = RunningCounters()
        self._recent: Deque[ValidationResult] = deque(maxlen=recent_capacity)
        self._version = 0
        self.logger = get_logger("aggregator")

    @property
    def version(self) -> int:
        """Number of results recorded so far; bumps on every update."""
        return self._version

    def record(self, result: ValidationResult) -> RunningCounters:
        with self._lock:
            updated = fold(self._counters, result)
            self._recent.append(result)
            self._counters = updated
            self._version += 1
        if result.violations:
            self.logger.debug(
                "%s: %d violation(s) (critical=%d)",
                result.path,
                len(result.violations),
                result.count(Severity.CRITICAL),
            )
        return updated

    def counters(self) -> RunningCounters:
        # Attribute reads are atomic and the object is immutable.
        return self._counters

    def recent(self, limit: int | None = None) -> List[ValidationResult]:
        """Return up to ``limit`` most recent results, newest first."""
        with self._lock:
            items = list(self._recent)
        items.reverse()
        if limit is None:
            return items
        return items[: max(0, limit)]

    def reset(self) -> None:
        with self._lock:
            self._counters = RunningCounters()
            self._recent.clear()
            self._version = 0


__all__ = ["ViolationAggregator", "fold"]
