"""ComplyWatch: incremental, real-time standards validation for source trees."""

from .engine import Engine
from .models import (
    ChangeKind,
    EffectivenessSnapshot,
    FileChangeEvent,
    RunningCounters,
    Severity,
    ValidationResult,
    Violation,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeKind",
    "EffectivenessSnapshot",
    "Engine",
    "FileChangeEvent",
    "RunningCounters",
    "Severity",
    "ValidationResult",
    "Violation",
    "__version__",
]
