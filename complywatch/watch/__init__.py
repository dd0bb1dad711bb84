"""Filesystem change detection for complywatch."""

from .detector import ChangeDetector, WatcherError
from .paths import IgnoreRule, iter_files, load_ignore_rules
from .size_guard import FileSizeGuard

__all__ = [
    "ChangeDetector",
    "FileSizeGuard",
    "IgnoreRule",
    "WatcherError",
    "iter_files",
    "load_ignore_rules",
]
