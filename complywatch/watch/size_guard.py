"""Cheap pre-filter that rejects oversized files before validation."""

from __future__ import annotations

import os
from typing import Callable, Optional

from ..logging import get_logger

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024


class FileSizeGuard:
    """Rejects files whose size exceeds a configured limit."""

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_FILE_SIZE,
        *,
        stat: Callable[[str], os.stat_result] = os.stat,
    ) -> None:
        if max_bytes < 0:
            raise ValueError("max_bytes must be non-negative")
        self.max_bytes = max_bytes
        self._stat = stat
        self.logger = get_logger("size_guard")

    def size_of(self, path: str) -> Optional[int]:
        """Return the file size in bytes, or ``None`` when it cannot be read."""
        try:
            return self._stat(path).st_size
        except OSError:
            return None

    def allows_size(self, size: int) -> bool:
        return size <= self.max_bytes

    def allows(self, path: str) -> bool:
        size = self.size_of(path)
        if size is None:
            # Missing files are reported by the reader, not here.
            return True
        if not self.allows_size(size):
            self.logger.info(
                "Skipping oversized file %s (size_bytes=%d limit_bytes=%d)",
                path,
                size,
                self.max_bytes,
            )
            return False
        return True


__all__ = ["DEFAULT_MAX_FILE_SIZE", "FileSizeGuard"]
