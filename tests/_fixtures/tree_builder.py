"""Helper utilities for constructing temporary project trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping


class TreeBuilder:
    """Utility for writing files into a throwaway project directory."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "project"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def file(self, relative: str) -> str:
        """Return the absolute path string for ``relative``."""
        return str(self.root / relative)

    def path(self) -> Path:
        """Return the project root path."""
        return self.root


__all__ = ["TreeBuilder"]
