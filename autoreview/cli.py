"""CLI entrypoint for autoreview."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from autoreview import __version__
from autoreview.analysis import AnalysisResult, analyze_diff_text
from autoreview.config import (
    EXTENSION_ERROR,
    FAIL_ON_CHOICES,
    FORMATS,
    AppConfig,
    default_config_template,
    is_valid_extension,
    load_app_config,
)
from autoreview.git import GitError, get_diff_between, get_working_tree_diff
from autoreview.output import render_github, render_human, render_json
from autoreview.rules import (
    PatternRule,
    RuleSetError,
    default_rules_template,
    load_rule_set,
    validate_patterns,
)

app = typer.Typer(
    name="autoreview",
    no_args_is_help=True,
    help="Check pull request diffs against regex style rules.",
)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
LOG_HANDLER_NAME = "autoreview-cli"


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log progress to stderr.")
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    _configure_logging(verbose)


@app.command("check")
def check_command(
    diff_file: Annotated[Path | None, typer.Option(help="Path to unified diff file.")] = None,
    stdin: Annotated[bool, typer.Option(help="Read unified diff from stdin.")] = False,
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    base: Annotated[str | None, typer.Option(help="Base git revision.")] = None,
    head: Annotated[str | None, typer.Option(help="Head git revision.")] = None,
    rules_file: Annotated[
        Path | None, typer.Option("--rules", help="Path to rules YAML/TOML/JSON file.")
    ] = None,
    extension: Annotated[
        str | None, typer.Option(help="Source file suffix to analyze.", show_default=".java")
    ] = None,
    format: Annotated[
        str | None,
        typer.Option(help="Output format: human|json|github.", show_default="human"),
    ] = None,
    fail_on: Annotated[
        str | None,
        typer.Option(help="Exit nonzero at this outcome: critical|violations|never."),
    ] = None,
    include: Annotated[list[str] | None, typer.Option(help="Include glob pattern.")] = None,
    exclude: Annotated[list[str] | None, typer.Option(help="Exclude glob pattern.")] = None,
    workers: Annotated[int, typer.Option(help="Match files on this many threads.")] = 1,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Check a diff's added lines against the rule set."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _choice_or_default(
        value=format, default=app_config.format, allowed=FORMATS, field_name="--format"
    )
    fail_threshold = _choice_or_default(
        value=fail_on, default=app_config.fail_on, allowed=FAIL_ON_CHOICES, field_name="--fail-on"
    )
    if extension is not None:
        if not is_valid_extension(extension):
            raise typer.BadParameter(EXTENSION_ERROR, param_hint="--extension")
        app_config.extension = extension

    if diff_file and stdin:
        raise typer.BadParameter("Use either --diff-file or --stdin, not both.")

    if (base is None) ^ (head is None):
        raise typer.BadParameter("Provide both --base and --head together.")

    # Rules are validated before the diff is read.
    rules = _load_rules_or_raise(repo, app_config, rules_file)

    try:
        diff_text, input_source = _resolve_diff_input(
            diff_file=diff_file,
            stdin=stdin,
            repo=repo,
            base=base,
            head=head,
        )
    except UnicodeDecodeError as exc:
        raise typer.BadParameter(f"Diff input is not valid UTF-8: {exc}") from exc
    except (GitError, OSError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    result = analyze_diff_text(
        diff_text,
        rules,
        extension=app_config.extension,
        include=include if include is not None else app_config.include,
        exclude=exclude if exclude is not None else app_config.exclude,
        max_workers=workers,
    )
    typer.echo(_render(result, output_format, app_config, input_source))

    if result.verdict.reaches(fail_threshold):
        raise typer.Exit(code=1)


@app.command("rules")
def rules_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    rules_file: Annotated[
        Path | None, typer.Option("--rules", help="Path to rules YAML/TOML/JSON file.")
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List the loaded rules."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    rules = _load_rules_or_raise(repo, app_config, rules_file)
    if output_format == "json":
        typer.echo(json.dumps({"rules": [rule.to_dict() for rule in rules]}, sort_keys=True))
        return

    lines = [f"{len(rules)} rules:"]
    for rule in rules:
        severity = "critical" if rule.critical else "warning"
        lines.append(f"- {rule.rule_id} ({severity}): {rule.message}")
    typer.echo("\n".join(lines))


@app.command("rules-validate")
def rules_validate_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    rules_file: Annotated[
        Path | None, typer.Option("--rules", help="Path to rules YAML/TOML/JSON file.")
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Validate a rules file, including that every pattern compiles."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    rules = _load_rules_or_raise(repo, app_config, rules_file)
    problems = validate_patterns(rules)
    payload = {
        "ok": not problems,
        "rule_ids": [rule.rule_id for rule in rules],
        "invalid_patterns": [
            {"rule_id": problem.rule_id, "error": problem.error} for problem in problems
        ],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
    else:
        lines = ["Rules are valid." if not problems else "Rules have invalid patterns."]
        lines.append(f"- rule_ids: {payload['rule_ids']}")
        for problem in problems:
            lines.append(f"- {problem.rule_id}: {problem.error}")
        typer.echo("\n".join(lines))

    if problems:
        raise typer.Exit(code=1)


@app.command("rules-init")
def rules_init_command(
    out: Annotated[Path, typer.Option(help="Output path for the starter rules.")] = Path(
        "rules.yaml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter rules file."""
    out_path = _writable_path(out, force)
    out_path.write_text(default_rules_template(), encoding="utf-8")
    typer.echo(f"Wrote starter rules: {out_path}")


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    app_config = _load_config_or_raise(repo, config_file)
    payload = app_config.to_dict()

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- extension: {payload['extension']}",
        f"- rules_file: {payload['rules_file']}",
        f"- format: {payload['format']}",
        f"- fail_on: {payload['fail_on']}",
        f"- include: {payload['include']}",
        f"- exclude: {payload['exclude']}",
        f"- review.check_name: {payload['review']['check_name']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".autoreview.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = _writable_path(out, force)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


def main() -> None:
    """Console script entrypoint."""
    app()


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("autoreview")
    for existing in list(package_logger.handlers):
        if existing.get_name() == LOG_HANDLER_NAME:
            package_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(LOG_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _render(
    result: AnalysisResult, output_format: str, app_config: AppConfig, input_source: str
) -> str:
    if output_format == "json":
        return render_json(result, input_source=input_source)
    if output_format == "github":
        return render_github(
            result,
            check_name=app_config.review.check_name,
            fence_language=app_config.fence_language,
        )
    return render_human(result)


def _resolve_diff_input(
    *,
    diff_file: Path | None,
    stdin: bool,
    repo: Path,
    base: str | None,
    head: str | None,
) -> tuple[str, str]:
    if diff_file is not None:
        return (diff_file.read_text(encoding="utf-8"), f"diff_file:{diff_file}")

    if stdin:
        return (sys.stdin.read(), "stdin")

    if base is not None and head is not None:
        return (get_diff_between(repo, base, head), "git_range")

    return (get_working_tree_diff(repo), "git_working_tree")


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _load_rules_or_raise(
    repo: Path, app_config: AppConfig, rules_file: Path | None
) -> list[PatternRule]:
    path = rules_file if rules_file is not None else app_config.rules_path(repo)
    try:
        return load_rule_set(path)
    except RuleSetError as exc:
        raise typer.BadParameter(str(exc), param_hint="rules") from exc


def _choice_or_default(
    *,
    value: str | None,
    default: str,
    allowed: set[str],
    field_name: str,
) -> str:
    resolved = (value or default).lower()
    if resolved not in allowed:
        choices = ", ".join(sorted(allowed))
        raise typer.BadParameter(f"{field_name} must be one of: {choices}", param_hint=field_name)
    return resolved


def _writable_path(out: Path, force: bool) -> Path:
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return out_path
