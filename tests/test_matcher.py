"""Tests for rule matching and offset-to-line mapping."""

from __future__ import annotations

import logging

from autoreview.diff_parser import FileChange
from autoreview.matcher import iter_violations, match_file, match_files, offset_to_line
from autoreview.rules import PatternRule
from tests.helpers_diff import null_return_rule


def test_offset_to_line_counts_preceding_newlines() -> None:
    content = "a\nb\nreturn null;\n"
    assert offset_to_line(content, 0) == 1
    assert offset_to_line(content, 2) == 2
    assert offset_to_line(content, content.index("return")) == 3


def test_line_is_relative_to_added_content() -> None:
    change = FileChange(path="Foo.java", added_content="a\nb\nreturn null;\n")
    violations = match_file(change, [null_return_rule()])

    assert len(violations) == 1
    violation = violations[0]
    assert violation.line == 3
    assert violation.path == "Foo.java"
    assert violation.rule_id == "AVOID_NULL_RETURN"
    assert violation.message == "Return Optional.empty() instead of null"
    assert violation.critical is True
    assert violation.fix_suggestion == "return Optional.empty();"


def test_every_non_overlapping_match_is_reported() -> None:
    content = "return null; return  null;\nx\nreturn\tnull;"
    violations = match_file(FileChange(path="A.java", added_content=content), [null_return_rule()])
    assert [item.line for item in violations] == [1, 1, 3]


def test_anchors_match_line_boundaries() -> None:
    rule = PatternRule(rule_id="IMPORT", pattern=r"^import java\.util\.\*;$", message="m")
    content = "package x;\nimport java.util.*;\nclass A {}"
    violations = match_file(FileChange(path="A.java", added_content=content), [rule])
    assert [item.line for item in violations] == [2]


def test_output_is_rule_order_then_position() -> None:
    todo = PatternRule(rule_id="TODO", pattern=r"//\s*TODO", message="todo")
    content = "// TODO one\nreturn null;\n// TODO two"
    violations = match_file(
        FileChange(path="A.java", added_content=content), [todo, null_return_rule()]
    )
    assert [(item.rule_id, item.line) for item in violations] == [
        ("TODO", 1),
        ("TODO", 3),
        ("AVOID_NULL_RETURN", 2),
    ]


def test_invalid_pattern_only_skips_that_rule(caplog) -> None:
    bad = PatternRule(rule_id="BAD", pattern="(unclosed", message="m", critical=True)
    change = FileChange(path="A.java", added_content="return null;")

    with caplog.at_level(logging.ERROR, logger="autoreview.matcher"):
        violations = match_file(change, [bad, null_return_rule()])

    assert [item.rule_id for item in violations] == ["AVOID_NULL_RETURN"]
    assert "Skipping rule BAD for A.java" in caplog.text


def test_empty_content_has_no_violations() -> None:
    assert match_file(FileChange(path="A.java", added_content=""), [null_return_rule()]) == []


def test_empty_match_pattern_advances() -> None:
    rule = PatternRule(rule_id="EMPTY", pattern="x*", message="m")
    violations = match_file(FileChange(path="A.java", added_content="ab"), [rule])
    assert len(violations) == 3


def test_parallel_matching_keeps_file_order() -> None:
    changes = [
        FileChange(path=f"F{index}.java", added_content="x\n" * index + "return null;")
        for index in range(12)
    ]
    rules = [null_return_rule()]

    sequential = match_files(changes, rules)
    parallel = match_files(changes, rules, max_workers=4)

    assert parallel == sequential
    assert [item.path for item in parallel] == [change.path for change in changes]
    assert [item.line for item in parallel] == list(range(1, 13))
    assert list(iter_violations(changes, rules)) == sequential
