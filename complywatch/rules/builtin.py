"""Built-in standards checks used when no external validator is supplied."""

from __future__ import annotations

import re
from typing import List, Sequence

from ..models import Severity, Violation
from .base import LineLengthRule, PatternRule, Rule

_CODE_SUFFIXES = frozenset(
    {".py", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".java", ".kt", ".go", ".rb", ".php", ".cs"}
)
_DEBUG_SUFFIXES = frozenset({".py", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"})
_CLASS_SUFFIXES = frozenset({".py", ".java", ".kt", ".ts", ".tsx", ".js", ".jsx", ".cs"})


def default_rules() -> List[Rule]:
    return [
        PatternRule(
            name="hardcoded-secret",
            severity=Severity.CRITICAL,
            pattern=re.compile(
                r"""(?i)\b(password|passwd|secret|token|api[_-]?key)\b\s*[:=]\s*["'][^"']{4,}["']"""
            ),
            message="Potential hardcoded secret: {match}",
        ),
        PatternRule(
            name="private-key",
            severity=Severity.CRITICAL,
            pattern=re.compile(r"-----BEGIN (?:RSA |EC |OPENSSH )?PRIVATE KEY-----"),
            message="Private key material committed to the repository",
        ),
        LineLengthRule(limit=120),
        PatternRule(
            name="class-naming",
            severity=Severity.INFO,
            pattern=re.compile(r"^\s*(?:export\s+)?(?:public\s+)?class\s+[a-z_]\w*"),
            message="Class names should be PascalCase: {match}",
            suffixes=_CLASS_SUFFIXES,
        ),
        PatternRule(
            name="debug-output",
            severity=Severity.SUGGESTION,
            pattern=re.compile(r"\bconsole\.(log|debug)\s*\(|^\s*print\("),
            message="Remove debug output before committing: {match}",
            suffixes=_DEBUG_SUFFIXES,
            skip_tests=True,
        ),
        PatternRule(
            name="unresolved-marker",
            severity=Severity.INFO,
            pattern=re.compile(r"\b(FIXME|XXX)\b"),
            message="Unresolved marker left in code: {match}",
            suffixes=_CODE_SUFFIXES,
        ),
    ]


class StandardsValidator:
    """Runs a rule set against decoded file content."""

    def __init__(self, rules: Sequence[Rule] | None = None) -> None:
        self.rules = list(rules) if rules is not None else default_rules()

    def __call__(self, path: str, content: bytes) -> List[Violation]:
        return self.validate(path, content)

    def validate(self, path: str, content: bytes) -> List[Violation]:
        if b"\x00" in content[:8192]:
            # Binary content is out of scope for text rules.
            return []
        text = content.decode("utf-8", errors="replace")
        violations: List[Violation] = []
        for rule in self.rules:
            violations.extend(rule.check(path, text))
        return violations


__all__ = ["StandardsValidator", "default_rules"]
