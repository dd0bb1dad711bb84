"""Path classification and ignore rules shared by the watcher and scanner."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, List, Sequence

EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "venv",
        "node_modules",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".idea",
        ".complywatch",
        "dist",
        "build",
        "target",
    }
)

EXCLUDED_FILES = frozenset({".DS_Store", "Thumbs.db"})

_SOURCE_SEGMENTS = frozenset({"src", "lib", "app", "backend", "frontend", "services", "cmd"})
_TEST_SEGMENTS = frozenset({"test", "tests", "__tests__", "spec", "specs"})
_CONFIG_SUFFIXES = frozenset(
    {".json", ".yml", ".yaml", ".toml", ".ini", ".cfg", ".conf", ".properties", ".env"}
)
_CONFIG_NAMES = frozenset(
    {
        ".env",
        "dockerfile",
        "makefile",
        "pom.xml",
        "build.gradle",
        "build.gradle.kts",
        "package.json",
        "tsconfig.json",
        "setup.cfg",
        "pyproject.toml",
        "docker-compose.yml",
        "docker-compose.yaml",
    }
)


@dataclass(frozen=True)
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .complywatch.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            # A file below an ignored directory is ignored too.
            return any(
                self._match_target(parent, True)
                for parent in _parents(rel_path)
            )
        return self._match_target(rel_path, is_dir)

    def _match_target(self, target: str, is_dir: bool) -> bool:
        if self.anchored or self.has_slash:
            if fnmatchcase(target, self.pattern):
                return True
            return target.startswith(f"{self.pattern}/")
        return any(fnmatchcase(part, self.pattern) for part in target.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def load_ignore_rules(root: Path, extra_patterns: Iterable[str] = ()) -> List[IgnoreRule]:
    """Return rules from the root .gitignore followed by configured excludes."""
    rules: List[IgnoreRule] = []
    gitignore = root / ".gitignore"
    if gitignore.exists():
        for raw_line in gitignore.read_text(encoding="utf-8", errors="replace").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            negate = line.startswith("!")
            rule = build_ignore_rule(line[1:] if negate else line, negate=negate)
            if rule is not None:
                rules.append(rule)
    for pattern in extra_patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    parts = rel_path.split("/")
    if any(part in EXCLUDED_DIRS for part in (parts if is_dir else parts[:-1])):
        return True
    if not is_dir and parts[-1] in EXCLUDED_FILES:
        return True
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
    """Walk ``root`` yielding files that survive the ignore rules."""
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in sorted(dirnames):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if not should_ignore(rel_path, True, rules):
                kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for filename in sorted(filenames):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


def is_source_path(path: str) -> bool:
    return any(part in _SOURCE_SEGMENTS for part in _segments(path)[:-1])


def is_config_path(path: str) -> bool:
    name = PurePosixPath(_posix(path)).name.lower()
    if name in _CONFIG_NAMES or name.startswith(".env"):
        return True
    if name.startswith("docker-compose."):
        return True
    return PurePosixPath(name).suffix in _CONFIG_SUFFIXES


def is_test_path(path: str) -> bool:
    segments = _segments(path)
    if any(part in _TEST_SEGMENTS for part in segments[:-1]):
        return True
    name = segments[-1] if segments else ""
    stem = name.split(".", 1)[0]
    lowered = stem.lower()
    if lowered.startswith("test_") or lowered.endswith("_test"):
        return True
    # JUnit style: UserServiceTest.java
    if len(stem) > 4 and stem.endswith("Test"):
        return True
    lowered_name = name.lower()
    return ".test." in lowered_name or ".spec." in lowered_name


def _segments(path: str) -> List[str]:
    return [part for part in _posix(path).split("/") if part]


def _posix(path: str) -> str:
    return path.replace("\\", "/")


def _parents(rel_path: str) -> Iterator[str]:
    parts = rel_path.split("/")
    for index in range(1, len(parts)):
        yield "/".join(parts[:index])


__all__ = [
    "EXCLUDED_DIRS",
    "IgnoreRule",
    "build_ignore_rule",
    "is_config_path",
    "is_source_path",
    "is_test_path",
    "iter_files",
    "load_ignore_rules",
    "should_ignore",
]
