"""Pattern rule and violation models."""

from __future__ import annotations

import re
from dataclasses import dataclass

# ``g`` and ``m`` are accepted for compatibility with JavaScript-style flag
# strings; global multi-line search is always on.
FLAG_LETTERS: dict[str, re.RegexFlag] = {
    "g": re.MULTILINE,
    "m": re.MULTILINE,
    "i": re.IGNORECASE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


@dataclass(frozen=True, slots=True)
class PatternRule:
    """A regex style rule loaded from the rules file."""

    rule_id: str
    pattern: str
    message: str
    critical: bool = False
    fix: str | None = None
    flags: str = ""

    def compile(self) -> re.Pattern[str]:
        """Compile the pattern in multi-line mode.

        Raises ``re.error`` for invalid patterns or unknown flag letters.
        """
        return re.compile(self.pattern, _regex_flags(self.flags))

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.rule_id,
            "pattern": self.pattern,
            "message": self.message,
            "critical": self.critical,
            "fix": self.fix,
            "flags": self.flags,
        }


@dataclass(frozen=True, slots=True)
class Violation:
    """A single located rule match in a file's added content."""

    path: str
    line: int
    rule_id: str
    message: str
    critical: bool
    fix_suggestion: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "line": self.line,
            "rule_id": self.rule_id,
            "message": self.message,
            "critical": self.critical,
            "fix_suggestion": self.fix_suggestion,
        }


def _regex_flags(letters: str) -> re.RegexFlag:
    flags = re.MULTILINE
    for letter in letters:
        flag = FLAG_LETTERS.get(letter)
        if flag is None:
            raise re.error(f"unknown regex flag {letter!r}")
        flags |= flag
    return flags
