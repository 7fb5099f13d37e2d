"""Rules package: loading and validating the pattern rule catalog."""

from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from autoreview.rules.base import PatternRule, Violation

__all__ = [
    "PatternRule",
    "PatternProblem",
    "RuleSetError",
    "Violation",
    "default_rules_template",
    "load_rule_set",
    "parse_rule_entries",
    "validate_patterns",
]

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "pattern", "message")
YAML_SUFFIXES = {".yaml", ".yml"}


class RuleSetError(ValueError):
    """Raised when a rules file is missing, unreadable, or fails validation."""


@dataclass(frozen=True, slots=True)
class PatternProblem:
    """A rule whose pattern does not compile."""

    rule_id: str
    error: str


def load_rule_set(path: Path) -> list[PatternRule]:
    """Load and validate rules from a YAML, TOML, or JSON file.

    Any structural problem aborts the load; a partial rule set is never
    returned.
    """
    if not path.exists():
        raise RuleSetError(f"Rules file does not exist: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuleSetError(f"Could not read rules file {path}: {exc}") from exc

    data = _decode(text, path)
    rules = parse_rule_entries(data, source=str(path))
    logger.info("Loaded %d rules from %s", len(rules), path)
    return rules


def parse_rule_entries(data: Any, *, source: str = "<rules>") -> list[PatternRule]:
    """Validate raw rule entries into immutable rule records."""
    if isinstance(data, dict):
        data = data.get("rules")
    if data is None:
        raise RuleSetError(f"{source}: no rules defined")
    if not isinstance(data, list):
        raise RuleSetError(f"{source}: rules must be a list of tables")

    rules: list[PatternRule] = []
    seen: set[str] = set()
    for index, entry in enumerate(data):
        label = f"{source}: rules[{index}]"
        if not isinstance(entry, dict):
            raise RuleSetError(f"{label} must be a table/object")

        missing = [name for name in REQUIRED_FIELDS if entry.get(name) in (None, "")]
        if missing:
            raise RuleSetError(f"{label} is missing required fields: {', '.join(missing)}")

        rule_id = _as_str(entry["id"], f"{label}.id")
        if rule_id in seen:
            raise RuleSetError(f"{label}: duplicate rule id '{rule_id}'")
        seen.add(rule_id)

        rules.append(
            PatternRule(
                rule_id=rule_id,
                pattern=_as_str(entry["pattern"], f"{label}.pattern"),
                message=_as_str(entry["message"], f"{label}.message"),
                critical=_parse_critical(entry, label),
                fix=_as_optional_str(entry.get("fix"), f"{label}.fix"),
                flags=_as_optional_str(entry.get("flags"), f"{label}.flags") or "",
            )
        )
    return rules


def validate_patterns(rules: list[PatternRule]) -> list[PatternProblem]:
    """Return the rules whose patterns fail to compile."""
    problems: list[PatternProblem] = []
    for rule in rules:
        try:
            rule.compile()
        except re.error as exc:
            problems.append(PatternProblem(rule_id=rule.rule_id, error=str(exc)))
    return problems


def default_rules_template() -> str:
    """Return the starter Java rule catalog."""
    return "\n".join(
        [
            '- id: "PROTECT_MUTABLE_STATE"',
            '  pattern: "public\\\\s+(List|Map|Set)\\\\s+\\\\w+\\\\s*;"',
            '  message: "Avoid exposing mutable collections directly - use defensive copying"',
            "  critical: true",
            "  fix: |",
            "    private final List<String> items = new ArrayList<>();",
            "",
            "    public List<String> getItems() {",
            "      return Collections.unmodifiableList(items);",
            "    }",
            "",
            '- id: "AVOID_NULL_RETURN"',
            '  pattern: "return\\\\s+null;"',
            '  message: "Return Optional.empty() instead of null"',
            "  critical: true",
            '  fix: "return Optional.empty();"',
            "",
            '- id: "CODE_TO_INTERFACES"',
            (
                '  pattern: "new\\\\s+(ArrayList|HashMap|HashSet)\\\\s*<\\\\w*>'
                '\\\\s*\\\\(\\\\s*\\\\)"'
            ),
            '  message: "Declare variables by their interface (e.g., List, Map, Set)"',
            "  critical: false",
            '  fix: "List<String> list = new ArrayList<>();"',
            "",
            '- id: "USE_STREAMS"',
            (
                '  pattern: "for\\\\s*\\\\(\\\\s*\\\\w+\\\\s+\\\\w+\\\\s*:'
                '\\\\s*\\\\w+\\\\s*\\\\)\\\\s*{"'
            ),
            '  message: "Consider using Java Streams for collection processing"',
            "  critical: false",
            "  fix: |",
            "    items.stream()",
            "         .filter(item -> item.isValid())",
            "         .forEach(System.out::println);",
            "",
            '- id: "TODO_COMMENT"',
            '  pattern: "//\\\\s*TODO"',
            '  message: "Remove TODO comments before merging"',
            "  critical: true",
            '  fix: "// REMOVED: TODO comment"',
            "",
        ]
    )


def _decode(text: str, path: Path) -> Any:
    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            return tomllib.loads(text)
        if suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        kind = "TOML" if suffix == ".toml" else "JSON" if suffix == ".json" else "YAML"
        raise RuleSetError(f"Invalid {kind} in {path}: {exc}") from exc


def _parse_critical(entry: dict[str, Any], label: str) -> bool:
    if "critical" in entry and entry["critical"] is not None:
        value = entry["critical"]
        if not isinstance(value, bool):
            raise RuleSetError(f"{label}.critical must be a boolean")
        return value

    severity = entry.get("severity")
    if severity is None:
        return False
    if isinstance(severity, bool):
        return severity
    if isinstance(severity, str):
        return severity.strip().lower() == "critical"
    raise RuleSetError(f"{label}.severity must be a string or boolean")


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise RuleSetError(f"{field_name} must be a string")
    return value


def _as_optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _as_str(value, field_name)
