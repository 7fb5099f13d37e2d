"""Match pattern rules against a file's added-line content."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor

from autoreview.diff_parser import FileChange
from autoreview.rules.base import PatternRule, Violation

logger = logging.getLogger(__name__)


def offset_to_line(content: str, offset: int) -> int:
    """Return the 1-based line of ``offset`` within ``content``."""
    return content.count("\n", 0, offset) + 1


def match_file(change: FileChange, rules: list[PatternRule]) -> list[Violation]:
    """Return violations for one file in rule order, then match position.

    Line numbers are relative to the reconstructed added content, not to the
    full file. A rule whose pattern does not compile is skipped for this
    file only.
    """
    violations: list[Violation] = []
    for rule in rules:
        try:
            regex = rule.compile()
        except re.error as exc:
            logger.error("Skipping rule %s for %s: %s", rule.rule_id, change.path, exc)
            continue

        hits = 0
        for match in regex.finditer(change.added_content):
            hits += 1
            violations.append(
                Violation(
                    path=change.path,
                    line=offset_to_line(change.added_content, match.start()),
                    rule_id=rule.rule_id,
                    message=rule.message,
                    critical=rule.critical,
                    fix_suggestion=rule.fix,
                )
            )
        if hits:
            logger.debug("Rule %s matched %d times in %s", rule.rule_id, hits, change.path)
    return violations


def iter_violations(
    changes: list[FileChange], rules: list[PatternRule]
) -> Iterator[Violation]:
    """Yield violations file by file, for streaming consumers."""
    for change in changes:
        yield from match_file(change, rules)


def match_files(
    changes: list[FileChange],
    rules: list[PatternRule],
    *,
    max_workers: int | None = None,
) -> list[Violation]:
    """Match every file and return violations in file, rule, position order.

    With ``max_workers`` greater than one, files are matched on a thread pool;
    results are reassembled in the input file order.
    """
    if max_workers is None or max_workers <= 1 or len(changes) <= 1:
        return list(iter_violations(changes, rules))

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        per_file = list(executor.map(lambda change: match_file(change, rules), changes))

    violations: list[Violation] = []
    for file_violations in per_file:
        violations.extend(file_violations)
    return violations
