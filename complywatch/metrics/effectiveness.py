"""Session effectiveness scoring derived from running counters."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from ..config import EffectivenessConfig
from ..models import EffectivenessSnapshot, RunningCounters

# Hours of manual review saved per violation caught, by class.
HOURS_PER_VIOLATION = 0.25 / 60
HOURS_PER_CRITICAL = 2.0
HOURS_PER_WARNING = 0.5 / 60
HOURS_PER_INFO = 0.1 / 60
HOURS_PER_SUGGESTION = 0.05 / 60

# Share of session time assumed to be tool overhead when computing ROI.
OVERHEAD_SHARE = 0.1

WEIGHT_TIME_SAVED = 0.3
WEIGHT_PRODUCTIVITY = 0.25
WEIGHT_QUALITY = 0.25
WEIGHT_ADOPTION = 0.2

TREND_IMPROVING = "improving"
TREND_DECLINING = "declining"
TREND_STABLE = "stable"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class EffectivenessModel:
    """Scores a session and tracks a bounded history of scores for trends.

    :meth:`snapshot` is a pure function of its arguments. The history used by
    :meth:`trend` is presentation-only and never feeds back into scoring.
    """

    def __init__(
        self,
        *,
        hourly_rate: float = 100.0,
        time_saved_target_hours: float = 8.0,
        history_size: int = 20,
        trend_window: int = 5,
        trend_threshold: float = 5.0,
    ) -> None:
        if history_size < 2 * trend_window:
            history_size = 2 * trend_window
        self.hourly_rate = hourly_rate
        self.time_saved_target_hours = time_saved_target_hours
        self.trend_window = trend_window
        self.trend_threshold = trend_threshold
        self._history: Deque[EffectivenessSnapshot] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: EffectivenessConfig) -> "EffectivenessModel":
        return cls(
            hourly_rate=config.hourly_rate,
            time_saved_target_hours=config.time_saved_target_hours,
            history_size=config.history_size,
            trend_window=config.trend_window,
            trend_threshold=config.trend_threshold,
        )

    def normalize_time_saved(self, hours: float) -> float:
        if self.time_saved_target_hours <= 0:
            return 100.0 if hours > 0 else 0.0
        return _clamp(hours / self.time_saved_target_hours * 100.0, 0.0, 100.0)

    def snapshot(self, counters: RunningCounters, session_minutes: float) -> EffectivenessSnapshot:
        files = max(counters.files_changed, 1)
        violations = counters.violations_detected
        non_critical = max(0, violations - counters.critical_violations)

        time_saved = (
            non_critical * HOURS_PER_VIOLATION
            + counters.critical_violations * HOURS_PER_CRITICAL
            + counters.warnings * HOURS_PER_WARNING
            + counters.info_violations * HOURS_PER_INFO
            + counters.suggestions * HOURS_PER_SUGGESTION
        )
        compliance_rate = _clamp((counters.files_changed - violations) / files * 100.0, 0.0, 100.0)
        productivity = max(0.0, (compliance_rate - 50.0) / 50.0 * 100.0)
        quality = max(0.0, 100.0 - violations / files * 100.0)
        adoption = _clamp(counters.clean_files / files * 100.0, 0.0, 100.0)

        weighted = (
            WEIGHT_TIME_SAVED * self.normalize_time_saved(time_saved)
            + WEIGHT_PRODUCTIVITY * productivity
            + WEIGHT_QUALITY * quality
            + WEIGHT_ADOPTION * adoption
        )
        score = int(_clamp(round(weighted), 0, 100))

        session_hours = max(0.0, session_minutes) / 60.0
        overhead_cost = session_hours * self.hourly_rate * OVERHEAD_SHARE
        if overhead_cost:
            roi = (time_saved * self.hourly_rate - overhead_cost) / overhead_cost * 100.0
        else:
            roi = 0.0

        return EffectivenessSnapshot(
            effectiveness_score=score,
            time_saved_hours=time_saved,
            productivity_gain_pct=productivity,
            quality_improvement_pct=quality,
            standards_adoption_pct=adoption,
            roi_pct=roi,
            compliance_rate_pct=compliance_rate,
        )

    def observe(self, snapshot: EffectivenessSnapshot) -> None:
        with self._lock:
            self._history.append(snapshot)

    def history(self) -> List[EffectivenessSnapshot]:
        with self._lock:
            return list(self._history)

    def trend(self) -> str:
        """Compare the mean of the latest window of scores with the one before it."""
        scores = [item.effectiveness_score for item in self.history()]
        window = self.trend_window
        if len(scores) < 2 * window:
            return TREND_STABLE
        recent = scores[-window:]
        previous = scores[-2 * window : -window]
        delta = sum(recent) / window - sum(previous) / window
        if delta > self.trend_threshold:
            return TREND_IMPROVING
        if delta < -self.trend_threshold:
            return TREND_DECLINING
        return TREND_STABLE


__all__ = [
    "EffectivenessModel",
    "TREND_DECLINING",
    "TREND_IMPROVING",
    "TREND_STABLE",
]
