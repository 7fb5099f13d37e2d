"""Tests for rule set loading and validation."""

from __future__ import annotations

import re
from pathlib import Path

import pytest
import yaml

from autoreview.rules import (
    PatternRule,
    RuleSetError,
    default_rules_template,
    load_rule_set,
    parse_rule_entries,
    validate_patterns,
)


def test_default_template_loads_the_java_catalog(tmp_path: Path) -> None:
    rules_path = tmp_path / "rules.yaml"
    rules_path.write_text(default_rules_template(), encoding="utf-8")

    rules = load_rule_set(rules_path)
    assert [rule.rule_id for rule in rules] == [
        "PROTECT_MUTABLE_STATE",
        "AVOID_NULL_RETURN",
        "CODE_TO_INTERFACES",
        "USE_STREAMS",
        "TODO_COMMENT",
    ]
    by_id = {rule.rule_id: rule for rule in rules}
    assert by_id["AVOID_NULL_RETURN"].pattern == r"return\s+null;"
    assert by_id["AVOID_NULL_RETURN"].critical is True
    assert by_id["AVOID_NULL_RETURN"].fix == "return Optional.empty();"
    assert by_id["USE_STREAMS"].critical is False
    assert by_id["USE_STREAMS"].fix is not None
    assert by_id["USE_STREAMS"].fix.startswith("items.stream()")
    assert validate_patterns(rules) == []


def test_optional_fields_default() -> None:
    rules = parse_rule_entries([{"id": "R1", "pattern": "x", "message": "m"}])
    assert rules == [PatternRule(rule_id="R1", pattern="x", message="m")]
    assert rules[0].critical is False
    assert rules[0].fix is None


def test_severity_string_maps_to_critical() -> None:
    rules = parse_rule_entries(
        [
            {"id": "A", "pattern": "a", "message": "m", "severity": "critical"},
            {"id": "B", "pattern": "b", "message": "m", "severity": "warning"},
        ]
    )
    assert [rule.critical for rule in rules] == [True, False]


@pytest.mark.parametrize("missing", ["id", "pattern", "message"])
def test_missing_required_field_is_fatal(missing: str) -> None:
    entry = {"id": "R1", "pattern": "x", "message": "m"}
    del entry[missing]
    valid = {"id": "R0", "pattern": "y", "message": "n"}

    with pytest.raises(RuleSetError, match=f"rules\\[1\\] is missing required fields: {missing}"):
        parse_rule_entries([valid, entry])


def test_duplicate_rule_ids_are_rejected() -> None:
    with pytest.raises(RuleSetError, match="duplicate rule id 'R1'"):
        parse_rule_entries(
            [
                {"id": "R1", "pattern": "x", "message": "m"},
                {"id": "R1", "pattern": "y", "message": "n"},
            ]
        )


def test_wrong_types_are_rejected() -> None:
    with pytest.raises(RuleSetError, match="critical must be a boolean"):
        parse_rule_entries([{"id": "R1", "pattern": "x", "message": "m", "critical": "yes"}])
    with pytest.raises(RuleSetError, match="fix must be a string"):
        parse_rule_entries([{"id": "R1", "pattern": "x", "message": "m", "fix": 3}])
    with pytest.raises(RuleSetError, match="must be a table/object"):
        parse_rule_entries(["not-a-rule"])
    with pytest.raises(RuleSetError, match="must be a list"):
        parse_rule_entries("rules")


def test_invalid_pattern_is_not_a_load_error() -> None:
    rules = parse_rule_entries(
        [
            {"id": "BAD", "pattern": "(unclosed", "message": "m"},
            {"id": "OK", "pattern": "x", "message": "m"},
        ]
    )
    problems = validate_patterns(rules)
    assert [problem.rule_id for problem in problems] == ["BAD"]


def test_unknown_flag_is_reported_as_pattern_problem() -> None:
    rule = PatternRule(rule_id="R", pattern="x", message="m", flags="q")
    with pytest.raises(re.error):
        rule.compile()
    assert [problem.rule_id for problem in validate_patterns([rule])] == ["R"]


def test_flags_are_combined_with_multiline() -> None:
    regex = PatternRule(rule_id="R", pattern="^todo", message="m", flags="gi").compile()
    assert regex.flags & re.MULTILINE
    assert regex.flags & re.IGNORECASE


def test_load_toml_and_json_rule_files(tmp_path: Path) -> None:
    toml_path = tmp_path / "rules.toml"
    toml_path.write_text(
        "\n".join(
            [
                "[[rules]]",
                'id = "TODO_COMMENT"',
                "pattern = '//\\s*TODO'",
                'message = "Remove TODO comments before merging"',
                "critical = true",
            ]
        ),
        encoding="utf-8",
    )
    json_path = tmp_path / "rules.json"
    json_path.write_text(
        '{"rules": [{"id": "X", "pattern": "x", "message": "m"}]}', encoding="utf-8"
    )

    toml_rules = load_rule_set(toml_path)
    assert toml_rules[0].pattern == r"//\s*TODO"
    assert toml_rules[0].critical is True
    assert [rule.rule_id for rule in load_rule_set(json_path)] == ["X"]


def test_load_errors_are_rule_set_errors(tmp_path: Path) -> None:
    with pytest.raises(RuleSetError, match="does not exist"):
        load_rule_set(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("- id: [unclosed\n", encoding="utf-8")
    with pytest.raises(RuleSetError, match="Invalid YAML"):
        load_rule_set(broken)

    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(RuleSetError, match="no rules defined"):
        load_rule_set(empty)


def test_rule_to_dict_round_trips_through_yaml() -> None:
    rule = PatternRule(rule_id="R", pattern="x", message="m", critical=True, fix="y")
    dumped = yaml.safe_dump([{k: v for k, v in rule.to_dict().items() if v not in (None, "")}])
    assert parse_rule_entries(yaml.safe_load(dumped)) == [rule]


def test_shipped_rules_file_matches_starter_template(tmp_path: Path) -> None:
    shipped = load_rule_set(Path(__file__).resolve().parents[1] / "rules.yaml")
    template_path = tmp_path / "rules.yaml"
    template_path.write_text(default_rules_template(), encoding="utf-8")

    assert shipped == load_rule_set(template_path)
