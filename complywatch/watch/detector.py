"""Filesystem watching built on watchdog observers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..clock import Clock, SystemClock
from ..logging import get_logger
from ..models import ChangeKind, FileChangeEvent
from .paths import IgnoreRule, should_ignore


class WatcherError(RuntimeError):
    """Raised when the filesystem watcher cannot be initialised."""


class _ChangeHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into detector notifications."""

    def __init__(self, detector: "ChangeDetector") -> None:
        super().__init__()
        self._detector = detector

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._detector.notify(ChangeKind.ADDED, _as_str(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._detector.notify(ChangeKind.MODIFIED, _as_str(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._detector.notify(ChangeKind.REMOVED, _as_str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._detector.notify(ChangeKind.REMOVED, _as_str(event.src_path))
        dest = getattr(event, "dest_path", "")
        if dest:
            self._detector.notify(ChangeKind.ADDED, _as_str(dest))


class ChangeDetector:
    """Watches a directory tree and emits normalized change events."""

    def __init__(
        self,
        root: Path,
        sink: Callable[[FileChangeEvent], None],
        *,
        rules: Sequence[IgnoreRule] = (),
        clock: Clock | None = None,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self._sink = sink
        self._rules = list(rules)
        self._clock = clock or SystemClock()
        self._observer_factory = observer_factory
        self._observer: Optional[object] = None
        self.logger = get_logger("detector")

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start watching; failures are fatal and raised as :class:`WatcherError`."""
        if self._observer is not None:
            raise WatcherError("Change detector already started")
        if not self.root.is_dir():
            raise WatcherError(f"Watch root is not a directory: {self.root}")
        observer = self._observer_factory()
        try:
            observer.schedule(_ChangeHandler(self), str(self.root), recursive=True)  # type: ignore[attr-defined]
            observer.start()  # type: ignore[attr-defined]
        except OSError as exc:
            raise WatcherError(f"Failed to watch {self.root}: {exc}") from exc
        self._observer = observer
        self.logger.info("Watching %s for changes", self.root)

    def stop(self, timeout: float = 5.0) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()  # type: ignore[attr-defined]
        observer.join(timeout)  # type: ignore[attr-defined]
        self.logger.debug("Stopped watching %s", self.root)

    def normalize(self, kind: ChangeKind, path: str) -> Optional[FileChangeEvent]:
        """Return a change event for ``path`` unless it is outside the root or ignored."""
        absolute = Path(path)
        if not absolute.is_absolute():
            absolute = self.root / absolute
        try:
            rel_path = absolute.relative_to(self.root).as_posix()
        except ValueError:
            return None
        if not rel_path or rel_path == ".":
            return None
        if should_ignore(rel_path, False, self._rules):
            return None
        return FileChangeEvent(path=str(absolute), kind=kind, detected_at=self._clock.now())

    def notify(self, kind: ChangeKind, path: str) -> None:
        event = self.normalize(kind, path)
        if event is None:
            return
        self.logger.debug("Detected %s change for %s", event.kind.value, event.path)
        self._sink(event)


def _as_str(path: object) -> str:
    if isinstance(path, bytes):
        return os.fsdecode(path)
    return str(path)


__all__ = ["ChangeDetector", "WatcherError"]
