"""Analysis orchestration: diff text in, violations and verdict out."""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field

from autoreview.config import DEFAULT_EXTENSION
from autoreview.diff_parser import FileChange, extract_file_changes
from autoreview.matcher import match_files
from autoreview.rules.base import PatternRule, Violation
from autoreview.verdict import Verdict, aggregate

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FileReport:
    """Violations found in a single file."""

    path: str
    violations: list[Violation] = field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return any(item.critical for item in self.violations)


@dataclass(slots=True)
class AnalysisResult:
    """Top-level output of one analysis pass."""

    files: list[FileChange]
    violations: list[Violation]
    verdict: Verdict

    def file_reports(self) -> list[FileReport]:
        reports = {change.path: FileReport(path=change.path) for change in self.files}
        for violation in self.violations:
            report = reports.get(violation.path)
            if report is None:
                report = reports[violation.path] = FileReport(path=violation.path)
            report.violations.append(violation)
        return list(reports.values())


def analyze_diff_text(
    diff_text: str,
    rules: list[PatternRule],
    *,
    extension: str = DEFAULT_EXTENSION,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
    max_workers: int | None = None,
) -> AnalysisResult:
    """Parse a unified diff and match the rules against its added lines."""
    changes = extract_file_changes(diff_text, extension)
    changes = filter_changes(changes, includes=include or [], excludes=exclude or [])
    return analyze_changes(changes, rules, max_workers=max_workers)


def analyze_changes(
    changes: list[FileChange],
    rules: list[PatternRule],
    *,
    max_workers: int | None = None,
) -> AnalysisResult:
    """Match rules against already extracted file changes."""
    violations = match_files(changes, rules, max_workers=max_workers)
    verdict = aggregate(violations)
    logger.info(
        "Analyzed %d files: %d violations (outcome=%s)",
        len(changes),
        verdict.total_violations,
        verdict.outcome,
    )
    return AnalysisResult(files=changes, violations=violations, verdict=verdict)


def filter_changes(
    changes: list[FileChange], *, includes: list[str], excludes: list[str]
) -> list[FileChange]:
    filtered: list[FileChange] = []
    for change in changes:
        path = change.path
        if includes and not any(fnmatch.fnmatch(path, pattern) for pattern in includes):
            continue
        if excludes and any(fnmatch.fnmatch(path, pattern) for pattern in excludes):
            continue
        filtered.append(change)
    return filtered
