"""Unified diff parser primitives."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from re import Match, compile
from typing import Literal

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)

DEV_NULL = "/dev/null"

_State = Literal["outside", "header", "hunk", "skip"]


class MalformedDiffError(ValueError):
    """Raised when a single file section of a diff cannot be parsed."""


@dataclass(slots=True)
class Line:
    """A single line within a diff hunk."""

    kind: Literal["context", "add", "delete", "meta"]
    content: str
    old_lineno: int | None
    new_lineno: int | None


@dataclass(slots=True)
class Hunk:
    """A diff hunk."""

    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str
    lines: list[Line] = field(default_factory=list)

    def added_lines(self) -> list[str]:
        return [line.content for line in self.lines if line.kind == "add"]


@dataclass(slots=True)
class HunkHeader:
    """Parsed hunk header values."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str


@dataclass(slots=True)
class FileDiff:
    """A parsed file-level diff."""

    old_path: str | None
    new_path: str | None
    hunks: list[Hunk] = field(default_factory=list)
    metadata: list[str] = field(default_factory=list)

    @property
    def path(self) -> str:
        """Best-effort canonical path for reporting."""
        if self.new_path and self.new_path != DEV_NULL:
            return self.new_path
        if self.old_path and self.old_path != DEV_NULL:
            return self.old_path
        return "<unknown>"

    @property
    def has_path(self) -> bool:
        return self.path != "<unknown>"

    @property
    def is_new_file(self) -> bool:
        return self.old_path == DEV_NULL and self.new_path not in {None, DEV_NULL}

    @property
    def is_deleted_file(self) -> bool:
        return self.new_path == DEV_NULL and self.old_path not in {None, DEV_NULL}

    @property
    def is_binary(self) -> bool:
        return any(
            item.startswith("Binary files ") or item == "GIT binary patch"
            for item in self.metadata
        )

    def added_lines(self) -> list[str]:
        lines: list[str] = []
        for hunk in self.hunks:
            lines.extend(hunk.added_lines())
        return lines


@dataclass(frozen=True, slots=True)
class FileChange:
    """Added-line content of one source file touched by a diff."""

    path: str
    added_content: str


def parse_unified_diff(diff_text: str) -> list[FileDiff]:
    """Parse unified diff text into file/hunk/line models.

    The parser is a small line state machine:

    * ``outside``: before the first file header.
    * ``header``: inside a file section, between hunks.
    * ``hunk``: consuming hunk body lines until the header's line counts
      are exhausted.
    * ``skip``: the current file section is malformed; lines are discarded
      until the next ``diff --git`` or ``---`` file header.

    Malformed sections are logged and dropped; they never abort parsing.
    """
    files: list[FileDiff] = []
    current_file: FileDiff | None = None
    current_hunk: Hunk | None = None
    state: _State = "outside"
    old_lineno = 0
    new_lineno = 0
    old_remaining = 0
    new_remaining = 0

    def flush_hunk() -> None:
        nonlocal current_hunk
        if current_file is not None and current_hunk is not None:
            current_file.hunks.append(current_hunk)
        current_hunk = None

    def flush_file() -> None:
        nonlocal current_file
        flush_hunk()
        if current_file is not None:
            if current_file.has_path:
                files.append(current_file)
            else:
                logger.warning(
                    "Skipping diff section without a file path (%d hunks)",
                    len(current_file.hunks),
                )
        current_file = None

    for raw_line in _split_diff_lines(diff_text):
        if raw_line.startswith("diff --git "):
            flush_file()
            current_file = _start_file_from_diff_header(raw_line)
            state = "header"
            continue

        if state == "skip":
            if not raw_line.startswith("--- "):
                continue
            state = "outside"

        if state == "hunk" and raw_line.startswith("@@ "):
            logger.debug("Hunk ended before its declared line counts were consumed")
            flush_hunk()
            state = "header"

        if state == "hunk" and current_file is not None and current_hunk is not None:
            if raw_line.startswith("\\"):
                current_hunk.lines.append(
                    Line(kind="meta", content=raw_line[2:], old_lineno=None, new_lineno=None)
                )
                continue
            kind = _body_line_kind(raw_line)
            if kind is None:
                logger.warning(
                    "Skipping malformed diff section for %s: unexpected line in hunk %r",
                    current_file.path,
                    raw_line,
                )
                current_file = None
                current_hunk = None
                state = "skip"
                continue

            content = raw_line[1:]
            if kind == "context":
                current_hunk.lines.append(
                    Line(
                        kind="context",
                        content=content,
                        old_lineno=old_lineno,
                        new_lineno=new_lineno,
                    )
                )
                old_lineno += 1
                new_lineno += 1
                old_remaining -= 1
                new_remaining -= 1
            elif kind == "add":
                current_hunk.lines.append(
                    Line(kind="add", content=content, old_lineno=None, new_lineno=new_lineno)
                )
                new_lineno += 1
                new_remaining -= 1
            else:
                current_hunk.lines.append(
                    Line(kind="delete", content=content, old_lineno=old_lineno, new_lineno=None)
                )
                old_lineno += 1
                old_remaining -= 1

            if old_remaining <= 0 and new_remaining <= 0:
                flush_hunk()
                state = "header"
            continue

        if raw_line.startswith("--- "):
            if state == "outside" or current_file is None or current_file.hunks:
                # A bare ``---``/``+++`` pair without a git header starts a new file.
                flush_file()
                current_file = FileDiff(old_path=None, new_path=None)
            current_file.old_path = _parse_path(raw_line[4:])
            current_file.metadata.append(raw_line)
            state = "header"
            continue

        if raw_line.startswith("+++ "):
            if current_file is None:
                current_file = FileDiff(old_path=None, new_path=None)
            current_file.new_path = _parse_path(raw_line[4:])
            current_file.metadata.append(raw_line)
            state = "header"
            continue

        if raw_line.startswith("@@ "):
            if current_file is None:
                current_file = FileDiff(old_path=None, new_path=None)
            try:
                parsed = _parse_hunk_header(raw_line)
            except MalformedDiffError as exc:
                logger.warning(
                    "Skipping malformed diff section for %s: %s", current_file.path, exc
                )
                current_file = None
                state = "skip"
                continue

            current_hunk = Hunk(
                header=raw_line,
                old_start=parsed.old_start,
                old_count=parsed.old_count,
                new_start=parsed.new_start,
                new_count=parsed.new_count,
                section=parsed.section,
            )
            old_lineno = parsed.old_start
            new_lineno = parsed.new_start
            old_remaining = parsed.old_count
            new_remaining = parsed.new_count
            if old_remaining <= 0 and new_remaining <= 0:
                flush_hunk()
                state = "header"
            else:
                state = "hunk"
            continue

        if current_file is not None and state == "header" and _is_stray_body_line(raw_line):
            logger.warning(
                "Skipping malformed diff section for %s: line outside hunk counts %r",
                current_file.path,
                raw_line,
            )
            current_file = None
            state = "skip"
            continue

        if current_file is not None:
            if raw_line.startswith("\\") and current_file.hunks:
                current_file.hunks[-1].lines.append(
                    Line(kind="meta", content=raw_line[2:], old_lineno=None, new_lineno=None)
                )
            else:
                current_file.metadata.append(raw_line)

    if state == "hunk" and current_file is not None:
        logger.debug("Diff ended inside a hunk for %s", current_file.path)
    flush_file()
    return files


def extract_file_changes(diff_text: str, extension: str) -> list[FileChange]:
    """Return added-line content for every file whose path ends with ``extension``.

    Deleted files have no post-change path and are left out.
    """
    changes: list[FileChange] = []
    for file_diff in parse_unified_diff(diff_text):
        path = file_diff.path
        if file_diff.is_deleted_file:
            logger.debug("Skipping deleted file: %s", path)
            continue
        if not path.endswith(extension):
            logger.debug("Skipping file without %s extension: %s", extension, path)
            continue
        if file_diff.is_binary:
            logger.debug("Binary file has no added text: %s", path)
        changes.append(FileChange(path=path, added_content="\n".join(file_diff.added_lines())))
    return changes


def _split_diff_lines(diff_text: str) -> list[str]:
    # Only "\n" ends a diff line; form feeds and Unicode separators are content.
    lines = [line.removesuffix("\r") for line in diff_text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _is_stray_body_line(raw_line: str) -> bool:
    # "-- " is the signature separator that closes format-patch output.
    if raw_line == "-- ":
        return False
    return raw_line.startswith(("+", "-"))


def _body_line_kind(raw_line: str) -> Literal["context", "add", "delete"] | None:
    if raw_line.startswith("+"):
        return "add"
    if raw_line.startswith("-"):
        return "delete"
    if raw_line.startswith(" ") or raw_line == "":
        # Some tools strip the trailing space from empty context lines.
        return "context"
    return None


def _start_file_from_diff_header(line: str) -> FileDiff:
    parts = line.split(maxsplit=3)
    old_path = _strip_ab_prefix(parts[2]) if len(parts) > 2 else None
    new_path = _strip_ab_prefix(parts[3]) if len(parts) > 3 else None
    file_diff = FileDiff(old_path=old_path, new_path=new_path)
    file_diff.metadata.append(line)
    return file_diff


def _parse_path(value: str) -> str:
    token = value.strip().split("\t", 1)[0]
    return _strip_ab_prefix(token)


def _strip_ab_prefix(path: str) -> str:
    if path.startswith("a/") or path.startswith("b/"):
        return path[2:]
    return path


def _parse_hunk_header(header: str) -> HunkHeader:
    match: Match[str] | None = HUNK_HEADER_RE.match(header)
    if match is None:
        raise MalformedDiffError(f"Invalid hunk header: {header}")

    old_count = int(match.group("old_count")) if match.group("old_count") else 1
    new_count = int(match.group("new_count")) if match.group("new_count") else 1
    section = match.group("section").strip()

    return HunkHeader(
        old_start=int(match.group("old_start")),
        old_count=old_count,
        new_start=int(match.group("new_start")),
        new_count=new_count,
        section=section,
    )
