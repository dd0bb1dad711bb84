"""Core data models shared across complywatch components."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple


class ChangeKind(str, Enum):
    """Kind of filesystem change reported by the watcher."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class Severity(str, Enum):
    """Severity attached to every rule violation."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"
    SUGGESTION = "SUGGESTION"


@dataclass(frozen=True)
class Violation:
    """A single rule-check failure for a file."""

    rule: str
    severity: Severity
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule,
            "severity": self.severity.value,
            "message": self.message,
            "line": self.line,
        }


@dataclass(frozen=True)
class FileChangeEvent:
    """Normalized filesystem notification."""

    path: str
    kind: ChangeKind
    detected_at: datetime


@dataclass(frozen=True)
class PendingChangeEntry:
    """Latest pending change for a path, annotated for scheduling."""

    path: str
    kind: ChangeKind
    detected_at: datetime
    priority: int
    estimated_cost_ms: int
    enqueued_at: float


@dataclass(frozen=True)
class Batch:
    """Immutable, priority-ordered snapshot of pending changes."""

    sequence: int
    entries: Tuple[PendingChangeEntry, ...]
    created_at: float

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PendingChangeEntry]:
        return iter(self.entries)

    @property
    def paths(self) -> list[str]:
        return [entry.path for entry in self.entries]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one file."""

    path: str
    violations: Tuple[Violation, ...]
    processing_time_ms: float
    completed_at: Optional[datetime] = None

    def count(self, severity: Severity) -> int:
        return sum(1 for violation in self.violations if violation.severity is severity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "violations": [violation.to_dict() for violation in self.violations],
            "processing_time_ms": round(self.processing_time_ms, 3),
            "completed_at": _isoformat(self.completed_at),
        }


@dataclass(frozen=True)
class RunningCounters:
    """Session-long violation statistics."""

    files_changed: int = 0
    violations_detected: int = 0
    critical_violations: int = 0
    warnings: int = 0
    info_violations: int = 0
    suggestions: int = 0
    total_processing_time_ms: float = 0.0
    clean_files: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_changed": self.files_changed,
            "violations_detected": self.violations_detected,
            "critical_violations": self.critical_violations,
            "warnings": self.warnings,
            "info_violations": self.info_violations,
            "suggestions": self.suggestions,
            "total_processing_time_ms": round(self.total_processing_time_ms, 3),
            "clean_files": self.clean_files,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RunningCounters":
        return cls(
            files_changed=int(payload.get("files_changed", 0)),
            violations_detected=int(payload.get("violations_detected", 0)),
            critical_violations=int(payload.get("critical_violations", 0)),
            warnings=int(payload.get("warnings", 0)),
            info_violations=int(payload.get("info_violations", 0)),
            suggestions=int(payload.get("suggestions", 0)),
            total_processing_time_ms=float(payload.get("total_processing_time_ms", 0.0)),
            clean_files=int(payload.get("clean_files", 0)),
        )


@dataclass(frozen=True)
class EffectivenessSnapshot:
    """Derived scoring of session value."""

    effectiveness_score: int
    time_saved_hours: float
    productivity_gain_pct: float
    quality_improvement_pct: float
    standards_adoption_pct: float
    roi_pct: float
    compliance_rate_pct: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "effectiveness_score": self.effectiveness_score,
            "time_saved_hours": round(self.time_saved_hours, 4),
            "productivity_gain_pct": round(self.productivity_gain_pct, 2),
            "quality_improvement_pct": round(self.quality_improvement_pct, 2),
            "standards_adoption_pct": round(self.standards_adoption_pct, 2),
            "roi_pct": round(self.roi_pct, 2),
            "compliance_rate_pct": round(self.compliance_rate_pct, 2),
        }


@dataclass(frozen=True)
class Alert:
    """Threshold breach raised while processing changes."""

    kind: str
    message: str
    raised_at: datetime
    level: str = "warning"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "level": self.level,
            "message": self.message,
            "raised_at": _isoformat(self.raised_at),
        }


@dataclass
class ProcessorStats:
    """Cumulative outcome counts for the batch processor."""

    batches: int = 0
    validated: int = 0
    removed: int = 0
    deferred: int = 0
    failed: int = 0
    oversized: int = 0


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


__all__ = [
    "Alert",
    "Batch",
    "ChangeKind",
    "EffectivenessSnapshot",
    "FileChangeEvent",
    "PendingChangeEntry",
    "ProcessorStats",
    "RunningCounters",
    "Severity",
    "ValidationResult",
    "Violation",
]
