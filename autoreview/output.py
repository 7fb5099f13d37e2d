"""Output rendering."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import click

from autoreview import __version__
from autoreview.analysis import AnalysisResult
from autoreview.review import build_check_payload, build_review_payload

_OUTCOME_STYLE = {
    "clean": ("CLEAN", "green"),
    "violations": ("VIOLATIONS", "yellow"),
    "critical": ("CRITICAL", "red"),
}


def render_human(result: AnalysisResult) -> str:
    """Render a compact colorized summary."""
    verdict = result.verdict
    label, color = _OUTCOME_STYLE[verdict.outcome]
    lines: list[str] = [
        click.style(
            f"Outcome: {label} ({verdict.total_violations} violations)",
            fg=color,
            bold=True,
        )
    ]

    if result.violations:
        lines.append(click.style("Violations:", bold=True))
        for violation in result.violations:
            marker = click.style("!", fg="red") if violation.critical else "-"
            lines.append(
                f"{marker} {violation.path}:{violation.line} "
                f"[{violation.rule_id}] {violation.message}"
            )
            if violation.fix_suggestion and violation.fix_suggestion.strip():
                first_line = violation.fix_suggestion.strip().splitlines()[0]
                lines.append(f"   fix: {first_line}")

    reports = result.file_reports()
    if reports:
        lines.append(click.style("Per-file summary:", bold=True))
        for report in reports:
            critical = ", critical" if report.has_critical else ""
            lines.append(f"- {report.path}: {len(report.violations)} violations{critical}")
    return "\n".join(lines)


def render_json(result: AnalysisResult, *, input_source: str) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(result, input_source=input_source), sort_keys=True)


def render_github(result: AnalysisResult, *, check_name: str, fence_language: str) -> str:
    """Render the review and check request bodies for an external publisher."""
    payload = {
        "review": build_review_payload(
            result.violations,
            result.verdict,
            fence_language=fence_language,
        ),
        "check": build_check_payload(result.verdict, check_name=check_name),
    }
    return json.dumps(payload, sort_keys=True)


def build_json_payload(result: AnalysisResult, *, input_source: str) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "generated_at": datetime.now(tz=UTC)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z"),
        "input_source": input_source,
        "version": __version__,
    }
    return {
        "verdict": result.verdict.to_dict(),
        "violations": [item.to_dict() for item in result.violations],
        "files": [
            {"path": report.path, "violations": len(report.violations)}
            for report in result.file_reports()
        ],
        "meta": meta,
    }
