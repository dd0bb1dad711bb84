"""Rule protocol and the regex-backed rule used by the built-in checks."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import FrozenSet, List, Protocol

from ..models import Severity, Violation
from ..watch.paths import is_test_path


class Rule(Protocol):
    """Protocol implemented by standards rules."""

    name: str

    def check(self, path: str, text: str) -> List[Violation]:
        """Return every violation of this rule in ``text``."""


@dataclass
class PatternRule:
    """Flags each line matching ``pattern`` in files with one of ``suffixes``."""

    name: str
    severity: Severity
    pattern: re.Pattern[str]
    message: str
    suffixes: FrozenSet[str] = field(default_factory=frozenset)
    skip_tests: bool = False

    def applies_to(self, path: str) -> bool:
        if not self.suffixes:
            return True
        return PurePosixPath(path.replace("\\", "/")).suffix.lower() in self.suffixes

    def check(self, path: str, text: str) -> List[Violation]:
        if not self.applies_to(path):
            return []
        if self.skip_tests and is_test_path(path):
            return []
        violations: List[Violation] = []
        for number, line in enumerate(text.splitlines(), start=1):
            match = self.pattern.search(line)
            if match:
                violations.append(
                    Violation(
                        rule=self.name,
                        severity=self.severity,
                        message=self.message.format(match=match.group(0).strip()),
                        line=number,
                    )
                )
        return violations


@dataclass
class LineLengthRule:
    """Flags lines longer than ``limit`` characters."""

    name: str = "line-length"
    limit: int = 120
    severity: Severity = Severity.WARNING

    def check(self, path: str, text: str) -> List[Violation]:
        return [
            Violation(
                rule=self.name,
                severity=self.severity,
                message=f"Line is {len(line)} characters long (limit {self.limit})",
                line=number,
            )
            for number, line in enumerate(text.splitlines(), start=1)
            if len(line) > self.limit
        ]


__all__ = ["LineLengthRule", "PatternRule", "Rule"]
