"""Review and check payloads, plus the publish flow around the analysis core.

Fetching diffs and talking to the hosting provider are left to
collaborators implementing the protocols below; this module only decides
what to publish and keeps one failed publish from blocking the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from autoreview.analysis import AnalysisResult, analyze_diff_text
from autoreview.config import AppConfig
from autoreview.rules.base import PatternRule, Violation
from autoreview.verdict import Verdict

logger = logging.getLogger(__name__)

CONCLUSIONS = {"clean": "success", "violations": "neutral", "critical": "failure"}
SUMMARIES = {
    "clean": "Code meets quality standards",
    "violations": "Violations found but not critical",
    "critical": "Critical violations block merging",
}


class ReviewError(RuntimeError):
    """Raised when a review run cannot produce a verdict."""


class DiffSource(Protocol):
    """Returns the unified diff for the pull request under review."""

    def fetch_diff(self) -> str:
        ...


class ReviewPublisher(Protocol):
    """Posts a review with inline comments."""

    def publish_review(self, payload: dict[str, Any]) -> None:
        ...


class StatusPublisher(Protocol):
    """Sets the check run / commit status."""

    def publish_status(self, payload: dict[str, Any]) -> None:
        ...


@dataclass(slots=True)
class ReviewRun:
    """What a review run computed and managed to publish."""

    analysis: AnalysisResult | None
    review_posted: bool
    status_posted: bool
    skipped_reason: str | None = None


def render_comment_body(violation: Violation, fence_language: str = "java") -> str:
    """Render the markdown body of one inline review comment."""
    body = f"### ⚠️ {violation.rule_id}\n{violation.message}"
    if violation.fix_suggestion:
        body += (
            f"\n\n**Fix Suggestion:**\n```{fence_language}\n{violation.fix_suggestion}\n```"
        )
    return body


def build_review_payload(
    violations: list[Violation],
    verdict: Verdict,
    *,
    fence_language: str = "java",
) -> dict[str, Any] | None:
    """Build the review request body; None when there is nothing to comment on."""
    if not violations:
        return None
    return {
        "event": "REQUEST_CHANGES" if verdict.has_critical else "COMMENT",
        "comments": [
            {
                "path": violation.path,
                "line": violation.line,
                "body": render_comment_body(violation, fence_language),
            }
            for violation in violations
        ],
    }


def build_check_payload(verdict: Verdict, *, check_name: str) -> dict[str, Any]:
    """Build the check run body for a verdict."""
    total = verdict.total_violations
    if total:
        title = f"Found {total} violation{'s' if total > 1 else ''}"
    else:
        title = "No violations found"
    return {
        "name": check_name,
        "status": "completed",
        "conclusion": CONCLUSIONS[verdict.outcome],
        "output": {"title": title, "summary": SUMMARIES[verdict.outcome]},
    }


def build_conflict_check_payload(*, check_name: str) -> dict[str, Any]:
    return {
        "name": check_name,
        "status": "completed",
        "conclusion": "neutral",
        "output": {
            "title": "Skipped due to merge conflicts",
            "summary": "Resolve conflicts to enable analysis",
        },
    }


def run_review(
    *,
    source: DiffSource,
    rules: list[PatternRule],
    reviews: ReviewPublisher,
    statuses: StatusPublisher,
    config: AppConfig | None = None,
    mergeable: bool | None = None,
) -> ReviewRun:
    """Fetch, analyze, and publish one pull request review.

    ``rules`` must already be loaded; a rules problem is fatal before any
    diff is fetched. A failed diff fetch raises ``ReviewError``. Publishing
    failures are logged and reported on the returned ``ReviewRun``.
    """
    app_config = config or AppConfig()
    check_name = app_config.review.check_name

    if mergeable is False:
        logger.info("Pull request has merge conflicts; skipping analysis")
        posted = _publish_status(statuses, build_conflict_check_payload(check_name=check_name))
        return ReviewRun(
            analysis=None,
            review_posted=False,
            status_posted=posted,
            skipped_reason="merge_conflicts",
        )

    try:
        diff_text = source.fetch_diff()
    except Exception as exc:
        raise ReviewError(f"Could not fetch diff: {exc}") from exc
    logger.info("Fetched diff (%d bytes)", len(diff_text))

    analysis = analyze_diff_text(
        diff_text,
        rules,
        extension=app_config.extension,
        include=app_config.include,
        exclude=app_config.exclude,
    )

    review_posted = False
    payload = build_review_payload(
        analysis.violations,
        analysis.verdict,
        fence_language=app_config.fence_language,
    )
    if payload is None:
        logger.info("No violations found")
    else:
        try:
            reviews.publish_review(payload)
        except Exception:
            logger.exception("Failed to post review with %d comments", len(payload["comments"]))
        else:
            review_posted = True
            logger.info("Posted review with %d comments", len(payload["comments"]))

    status_posted = _publish_status(
        statuses, build_check_payload(analysis.verdict, check_name=check_name)
    )
    return ReviewRun(analysis=analysis, review_posted=review_posted, status_posted=status_posted)


def _publish_status(statuses: StatusPublisher, payload: dict[str, Any]) -> bool:
    try:
        statuses.publish_status(payload)
    except Exception:
        logger.exception("Failed to set check status %s", payload["conclusion"])
        return False
    logger.info("Set check status: %s", payload["conclusion"])
    return True
