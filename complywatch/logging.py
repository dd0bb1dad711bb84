"""Logger hierarchy for the watcher, scheduler, workers and metrics service.

Every module logs through ``complywatch.<component>`` so one call to
:func:`configure_logging` controls the whole pipeline, whichever thread the
record comes from.
"""

from __future__ import annotations

import logging
from pathlib import Path

_ROOT = "complywatch"
_CONSOLE_FORMAT = "[complywatch] %(levelname)s %(threadName)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"

# watchdog reports every inotify callback at DEBUG.
_NOISY_LIBRARIES = ("watchdog",)


def get_logger(component: str | None = None) -> logging.Logger:
    """Logger for ``component``, e.g. ``get_logger("processor")`` -> ``complywatch.processor``."""
    return logging.getLogger(f"{_ROOT}.{component}" if component else _ROOT)


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send complywatch records to stderr, and to ``log_file`` when given.

    Safe to call repeatedly: handlers installed by an earlier call are replaced.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    for existing in list(root.handlers):
        root.removeHandler(existing)

    root.addHandler(_handler(logging.StreamHandler(), level, _CONSOLE_FORMAT))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), level, _FILE_FORMAT))

    for library in _NOISY_LIBRARIES:
        logging.getLogger(library).setLevel(logging.INFO)
    return root


__all__ = ["configure_logging", "get_logger"]
