"""Standards rules applied to changed files."""

from .base import LineLengthRule, PatternRule, Rule
from .builtin import StandardsValidator, default_rules

__all__ = ["LineLengthRule", "PatternRule", "Rule", "StandardsValidator", "default_rules"]
