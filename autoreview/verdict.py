"""Roll violations up into a single review verdict."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from autoreview.rules.base import Violation

Outcome = Literal["clean", "violations", "critical"]

OUTCOME_RANK: dict[str, int] = {"clean": 0, "violations": 1, "critical": 2}


@dataclass(frozen=True, slots=True)
class Verdict:
    """Aggregated result of a review run."""

    total_violations: int
    has_critical: bool

    @property
    def outcome(self) -> Outcome:
        if self.has_critical:
            return "critical"
        if self.total_violations > 0:
            return "violations"
        return "clean"

    def reaches(self, threshold: str) -> bool:
        """Return True when the outcome is at least as severe as ``threshold``."""
        if threshold == "never":
            return False
        return OUTCOME_RANK[self.outcome] >= OUTCOME_RANK[threshold]

    def to_dict(self) -> dict[str, object]:
        return {
            "total_violations": self.total_violations,
            "has_critical": self.has_critical,
            "outcome": self.outcome,
        }


CLEAN = Verdict(total_violations=0, has_critical=False)


class VerdictAccumulator:
    """Incrementally aggregate violations as they are produced."""

    def __init__(self) -> None:
        self.total_violations = 0
        self.has_critical = False

    def add(self, violation: Violation) -> None:
        self.total_violations += 1
        self.has_critical = self.has_critical or violation.critical

    def extend(self, violations: Iterable[Violation]) -> None:
        for violation in violations:
            self.add(violation)

    def merge(self, other: VerdictAccumulator) -> None:
        self.total_violations += other.total_violations
        self.has_critical = self.has_critical or other.has_critical

    def verdict(self) -> Verdict:
        return Verdict(total_violations=self.total_violations, has_critical=self.has_critical)


def aggregate(violations: Iterable[Violation]) -> Verdict:
    """Reduce violations to a verdict; the result does not depend on order."""
    accumulator = VerdictAccumulator()
    accumulator.extend(violations)
    return accumulator.verdict()
