"""Configuration loading for autoreview."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILENAMES = (".autoreview.toml", "autoreview.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("autoreview", "auto-review")

DEFAULT_EXTENSION = ".java"
DEFAULT_RULES_FILE = "rules.yaml"
DEFAULT_CHECK_NAME = "AutoReviewBot"

FORMATS = {"human", "json", "github"}
FAIL_ON_CHOICES = {"critical", "violations", "never"}
EXTENSION_ERROR = "extension must be a file suffix such as '.java'"


@dataclass(slots=True)
class ReviewConfig:
    """How violations are presented to the review and check publishers."""

    check_name: str = DEFAULT_CHECK_NAME
    fence_language: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"check_name": self.check_name, "fence_language": self.fence_language}


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    extension: str = DEFAULT_EXTENSION
    rules_file: str = DEFAULT_RULES_FILE
    format: str = "human"
    fail_on: str = "critical"
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    source: str | None = None

    @property
    def fence_language(self) -> str:
        if self.review.fence_language is not None:
            return self.review.fence_language
        return self.extension.lstrip(".")

    def rules_path(self, repo: Path) -> Path:
        path = Path(self.rules_file)
        return path if path.is_absolute() else repo / path

    def to_dict(self) -> dict[str, Any]:
        return {
            "extension": self.extension,
            "rules_file": self.rules_file,
            "format": self.format,
            "fail_on": self.fail_on,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "review": self.review.to_dict(),
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def is_valid_extension(extension: str) -> bool:
    return extension.startswith(".") and len(extension) >= 2


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            f'extension = "{DEFAULT_EXTENSION}"',
            f'rules_file = "{DEFAULT_RULES_FILE}"',
            'format = "human"',
            "# critical | violations | never",
            'fail_on = "critical"',
            'include = ["src/**"]',
            'exclude = ["src/generated/**"]',
            "",
            "[review]",
            f'check_name = "{DEFAULT_CHECK_NAME}"',
            '# fence_language = "java"',
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    review_mapping = _as_table(mapping.get("review"), "review")

    extension = _as_str(mapping.get("extension", DEFAULT_EXTENSION), "extension")
    if not is_valid_extension(extension):
        raise ValueError(EXTENSION_ERROR)

    return AppConfig(
        extension=extension,
        rules_file=_as_str(mapping.get("rules_file", DEFAULT_RULES_FILE), "rules_file"),
        format=_as_choice(mapping.get("format", "human"), FORMATS, "format"),
        fail_on=_as_choice(mapping.get("fail_on", "critical"), FAIL_ON_CHOICES, "fail_on"),
        include=_as_str_list(mapping.get("include"), "include"),
        exclude=_as_str_list(mapping.get("exclude"), "exclude"),
        review=_parse_review_config(review_mapping),
        source=source,
    )


def _parse_review_config(value: dict[str, Any]) -> ReviewConfig:
    fence = value.get("fence_language")
    return ReviewConfig(
        check_name=_as_str(value.get("check_name", DEFAULT_CHECK_NAME), "review.check_name"),
        fence_language=None if fence is None else _as_str(fence, "review.fence_language"),
    )


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"{field_name} must be a list of strings")
        items.append(item)
    return items


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {choices}")
    return value
