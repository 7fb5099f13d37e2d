"""Tests for config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from autoreview.config import AppConfig, default_config_template, load_app_config


def test_defaults_without_config_files(tmp_path: Path) -> None:
    config = load_app_config(tmp_path)
    assert config == AppConfig()
    assert config.extension == ".java"
    assert config.fail_on == "critical"
    assert config.fence_language == "java"
    assert config.rules_path(tmp_path) == tmp_path / "rules.yaml"


def test_dot_file_wins_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.autoreview]\nextension = ".kt"\n', encoding="utf-8"
    )
    (tmp_path / ".autoreview.toml").write_text(
        "\n".join(
            [
                'extension = ".java"',
                'rules_file = "config/style-rules.yaml"',
                'format = "json"',
                'fail_on = "violations"',
                'include = ["src/**"]',
                "",
                "[review]",
                'check_name = "StyleBot"',
                'fence_language = "java17"',
            ]
        ),
        encoding="utf-8",
    )

    config = load_app_config(tmp_path)
    assert config.format == "json"
    assert config.fail_on == "violations"
    assert config.include == ["src/**"]
    assert config.review.check_name == "StyleBot"
    assert config.fence_language == "java17"
    assert config.rules_path(tmp_path) == tmp_path / "config" / "style-rules.yaml"
    assert config.source == str((tmp_path / ".autoreview.toml").resolve())


def test_pyproject_tool_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool."auto-review"]\nextension = ".kt"\n', encoding="utf-8"
    )
    config = load_app_config(tmp_path)
    assert config.extension == ".kt"
    assert config.fence_language == "kt"


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ('extension = "java"', "extension must be a file suffix"),
        ('extension = "."', "extension must be a file suffix"),
        ('format = "xml"', "format must be one of"),
        ('fail_on = "sometimes"', "fail_on must be one of"),
        ("include = 3", "include must be a list of strings"),
        ("review = 1", "review must be a table/object"),
        ("extension = [", "Invalid TOML"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, body: str, message: str) -> None:
    (tmp_path / "autoreview.toml").write_text(body, encoding="utf-8")
    with pytest.raises(ValueError, match=message):
        load_app_config(tmp_path)


def test_explicit_missing_config_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Config file does not exist"):
        load_app_config(tmp_path, config_path=Path("nope.toml"))


def test_template_round_trips(tmp_path: Path) -> None:
    path = tmp_path / ".autoreview.toml"
    path.write_text(default_config_template(), encoding="utf-8")
    config = load_app_config(tmp_path)
    assert config.include == ["src/**"]
    assert config.exclude == ["src/generated/**"]
    assert config.review.check_name == "AutoReviewBot"
