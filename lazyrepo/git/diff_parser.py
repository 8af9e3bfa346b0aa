"""Unified and combined diff parsing.

Turns ``git diff``/``git show`` output into ``FileEntry`` values with hunks
and lines. A malformed hunk degrades to a raw fallback without affecting its
siblings.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..errors import ParseError
from ..model.types import ChangeKind, FileEntry, Hunk, Line, LineTag, short_digest

logger = logging.getLogger(__name__)

FILE_HEADER_RE = re.compile(r"^diff --(git|cc|combined) ")
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(?: ?(.*))?$")
COMBINED_HUNK_HEADER_RE = re.compile(r"^(@@@+) (.+?) \1(?: ?(.*))?$")
RANGE_RE = re.compile(r"^[-+](\d+)(?:,(\d+))?$")
NO_NEWLINE_MARKER = "\\ No newline at end of file"
UNMERGED_NOTICE = "* Unmerged path "

_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}


def unquote_path(value: str) -> str:
    """Decode a C-style quoted path as emitted by git for unusual names."""
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    body = value[1:-1]
    out = bytearray()
    index = 0
    while index < len(body):
        ch = body[index]
        if ch != "\\" or index + 1 >= len(body):
            out.extend(ch.encode("utf-8", errors="surrogateescape"))
            index += 1
            continue
        nxt = body[index + 1]
        if nxt in "01234567":
            digits = body[index + 1 : index + 4]
            octal = ""
            for digit in digits:
                if digit not in "01234567":
                    break
                octal += digit
            out.append(int(octal, 8) & 0xFF)
            index += 1 + len(octal)
            continue
        out.append(_C_ESCAPES.get(nxt, ord(nxt) if ord(nxt) < 0x80 else 0x3F))
        index += 2
    return out.decode("utf-8", errors="replace")


def _read_quoted(text: str) -> tuple[str, str]:
    """Split a leading quoted token off ``text``; returns (token, rest)."""
    index = 1
    while index < len(text):
        if text[index] == "\\":
            index += 2
            continue
        if text[index] == '"':
            return text[: index + 1], text[index + 1 :].lstrip(" ")
        index += 1
    return text, ""


def _strip_prefix(path: str, prefix: str) -> str:
    if path.startswith(prefix):
        return path[len(prefix) :]
    return path


def _header_paths(rest: str) -> tuple[str | None, str | None]:
    """Best-effort split of ``a/<old> b/<new>`` from a ``diff --git`` line."""
    if rest.startswith('"'):
        first, remainder = _read_quoted(rest)
        second = remainder
        return _strip_prefix(unquote_path(first), "a/"), _strip_prefix(unquote_path(second), "b/")
    if rest.endswith('"'):
        split_at = rest.rfind(' "')
        if split_at > 0:
            return _strip_prefix(rest[:split_at], "a/"), _strip_prefix(unquote_path(rest[split_at + 1 :]), "b/")

    # Unquoted names are only unambiguous when both sides are equal.
    if (len(rest) - 1) % 2 == 0:
        half = (len(rest) - 1) // 2
        old, new = rest[:half], rest[half + 1 :]
        if old.startswith("a/") and new.startswith("b/") and old[2:] == new[2:]:
            return old[2:], new[2:]
    split_at = rest.rfind(" b/")
    if split_at > 0:
        return _strip_prefix(rest[:split_at], "a/"), rest[split_at + 3 :]
    return None, None


def _marker_path(value: str, prefix: str) -> str | None:
    value = value.rstrip("\t")
    if value == "/dev/null":
        return None
    return _strip_prefix(unquote_path(value), prefix)


@dataclass
class _FileBuilder:
    combined: bool
    header_lines: list[str] = field(default_factory=list)
    path: str | None = None
    old_path: str | None = None
    change: ChangeKind = ChangeKind.MODIFIED
    is_binary: bool = False
    old_mode: str | None = None
    new_mode: str | None = None
    saw_rename: bool = False
    saw_copy: bool = False


def _apply_header_line(builder: _FileBuilder, line: str) -> None:
    if line.startswith("new file mode "):
        builder.change = ChangeKind.ADDED
        builder.new_mode = line[len("new file mode ") :].strip()
    elif line.startswith("deleted file mode "):
        builder.change = ChangeKind.DELETED
        builder.old_mode = line[len("deleted file mode ") :].strip()
    elif line.startswith("old mode "):
        builder.old_mode = line[len("old mode ") :].strip()
    elif line.startswith("new mode "):
        builder.new_mode = line[len("new mode ") :].strip()
        if builder.old_mode and builder.old_mode[:2] != builder.new_mode[:2]:
            builder.change = ChangeKind.TYPE_CHANGED
    elif line.startswith("rename from "):
        builder.old_path = unquote_path(line[len("rename from ") :])
        builder.saw_rename = True
    elif line.startswith("rename to "):
        builder.path = unquote_path(line[len("rename to ") :])
        builder.saw_rename = True
    elif line.startswith("copy from "):
        builder.old_path = unquote_path(line[len("copy from ") :])
        builder.saw_copy = True
    elif line.startswith("copy to "):
        builder.path = unquote_path(line[len("copy to ") :])
        builder.saw_copy = True
    elif line.startswith("--- "):
        old = _marker_path(line[4:], "a/")
        if old is None:
            builder.change = ChangeKind.ADDED
        elif builder.old_path is None:
            builder.old_path = old
    elif line.startswith("+++ "):
        new = _marker_path(line[4:], "b/")
        if new is None:
            builder.change = ChangeKind.DELETED
        elif not builder.saw_rename and not builder.saw_copy:
            builder.path = new
    elif line.startswith("Binary files ") or line == "GIT binary patch":
        builder.is_binary = True


def _hunk_token(path: str, section_text: str, body: Iterable[str], seen: dict[str, int]) -> str:
    base = short_digest(path, section_text, "\n".join(body))
    occurrence = seen.get(base, 0)
    seen[base] = occurrence + 1
    if occurrence:
        return f"{base}-{occurrence}"
    return base


def _parse_unified_body(header: str, body: list[str], token: str) -> Hunk:
    match = HUNK_HEADER_RE.match(header)
    if match is None:
        raise ParseError(f"malformed hunk header {header!r}")
    old_start = int(match.group(1))
    old_count = int(match.group(2)) if match.group(2) is not None else 1
    new_start = int(match.group(3))
    new_count = int(match.group(4)) if match.group(4) is not None else 1
    section_text = match.group(5) or ""

    old_left = old_count
    new_left = new_count
    lines: list[Line] = []
    for number, raw in enumerate(body, start=1):
        if raw.startswith("\\"):
            if not lines:
                raise ParseError("no-newline marker before any line", number)
            last = lines[-1]
            lines[-1] = Line(last.tag, last.text, last.offset, last.hunk_token, missing_newline=True)
            continue
        if old_left == 0 and new_left == 0:
            if raw == "":
                continue
            raise ParseError("hunk has more lines than its header declares", number)
        prefix = raw[:1]
        text = raw[1:]
        if raw == "":
            # Some transports strip the trailing space of an empty context line.
            prefix = " "
        if prefix == " ":
            tag = LineTag.CONTEXT
            old_left -= 1
            new_left -= 1
        elif prefix == "+":
            tag = LineTag.ADDITION
            new_left -= 1
        elif prefix == "-":
            tag = LineTag.DELETION
            old_left -= 1
        else:
            raise ParseError(f"unexpected line prefix {prefix!r}", number)
        if old_left < 0 or new_left < 0:
            raise ParseError("line counts disagree with hunk header", number)
        lines.append(Line(tag, text, len(lines), token))
    if old_left or new_left:
        raise ParseError("hunk is shorter than its header declares")

    return Hunk(
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        section_text=section_text,
        lines=tuple(lines),
        token=token,
    )


def _parse_combined_body(header: str, body: list[str], token: str) -> Hunk:
    match = COMBINED_HUNK_HEADER_RE.match(header)
    if match is None:
        raise ParseError(f"malformed combined hunk header {header!r}")
    parents = len(match.group(1)) - 1
    ranges = match.group(2).split()
    if len(ranges) != parents + 1:
        raise ParseError(f"combined hunk header has {len(ranges)} ranges for {parents} parents")
    parsed: list[tuple[int, int]] = []
    for value in ranges:
        range_match = RANGE_RE.match(value)
        if range_match is None:
            raise ParseError(f"malformed range {value!r}")
        count = int(range_match.group(2)) if range_match.group(2) is not None else 1
        parsed.append((int(range_match.group(1)), count))
    old_start, old_count = parsed[0]
    new_start, new_count = parsed[-1]

    new_left = new_count
    lines: list[Line] = []
    for number, raw in enumerate(body, start=1):
        if raw.startswith("\\"):
            if not lines:
                raise ParseError("no-newline marker before any line", number)
            last = lines[-1]
            lines[-1] = Line(last.tag, last.text, last.offset, last.hunk_token, missing_newline=True)
            continue
        if raw == "" and new_left == 0:
            continue
        columns = raw[:parents].ljust(parents)
        if any(ch not in " +-" for ch in columns):
            raise ParseError(f"unexpected combined prefix {columns!r}", number)
        if "-" in columns:
            tag = LineTag.DELETION
        elif "+" in columns:
            tag = LineTag.ADDITION
            new_left -= 1
        else:
            tag = LineTag.CONTEXT
            new_left -= 1
        if new_left < 0:
            raise ParseError("line counts disagree with hunk header", number)
        lines.append(Line(tag, raw[parents:], len(lines), token))
    if new_left:
        raise ParseError("combined hunk is shorter than its header declares")

    return Hunk(
        old_start=old_start,
        old_count=old_count,
        new_start=new_start,
        new_count=new_count,
        section_text=match.group(3) or "",
        lines=tuple(lines),
        token=token,
        is_conflict=True,
    )


def _raw_hunk(header: str, body: list[str], token: str, error: ParseError, combined: bool) -> Hunk:
    return Hunk(
        old_start=0,
        old_count=0,
        new_start=0,
        new_count=0,
        section_text="",
        lines=(),
        token=token,
        is_conflict=combined,
        parse_error=error,
        raw_text="\n".join([header, *body]),
    )


def _split_hunks(lines: list[str], combined: bool) -> tuple[list[str], list[tuple[str, list[str]]]]:
    """Return (file header lines, [(hunk header, body lines), ...])."""
    marker = "@@@" if combined else "@@"
    header: list[str] = []
    hunks: list[tuple[str, list[str]]] = []
    for line in lines:
        if line.startswith(marker):
            hunks.append((line, []))
        elif hunks:
            hunks[-1][1].append(line)
        else:
            header.append(line)
    return header, hunks


def _parse_file_block(block: list[str]) -> FileEntry:
    first = block[0]
    kind = FILE_HEADER_RE.match(first)
    combined = kind is not None and kind.group(1) != "git"
    builder = _FileBuilder(combined=combined)

    rest = first[kind.end() :] if kind else first
    if combined:
        builder.path = unquote_path(rest.strip())
        builder.change = ChangeKind.UNMERGED
    else:
        old, new = _header_paths(rest)
        builder.old_path = old
        builder.path = new

    header_lines, raw_hunks = _split_hunks(block[1:], combined)
    kept_header: list[str] = []
    for line in header_lines:
        _apply_header_line(builder, line)
        kept_header.append(line)
        if line == "GIT binary patch":
            # Base85 payload follows; it is never needed for display.
            break
    while kept_header and kept_header[-1] == "":
        kept_header.pop()
    if combined:
        builder.change = ChangeKind.UNMERGED
    elif builder.saw_rename:
        builder.change = ChangeKind.RENAMED
    elif builder.saw_copy:
        builder.change = ChangeKind.COPIED

    path = builder.path or builder.old_path or ""
    old_path = builder.old_path if builder.change in {ChangeKind.RENAMED, ChangeKind.COPIED} else None

    seen: dict[str, int] = {}
    hunks: list[Hunk] = []
    for hunk_header, body in raw_hunks:
        section_text = hunk_header.rsplit("@@", 1)[-1].strip()
        token = _hunk_token(path, section_text, body, seen)
        try:
            if combined:
                hunk = _parse_combined_body(hunk_header, body, token)
            else:
                hunk = _parse_unified_body(hunk_header, body, token)
        except ParseError as exc:
            logger.warning("unparseable hunk in %s: %s", path, exc)
            hunk = _raw_hunk(hunk_header, body, token, exc, combined)
        hunks.append(hunk)

    return FileEntry(
        path=path,
        change=builder.change,
        old_path=old_path,
        hunks=tuple(hunks),
        is_binary=builder.is_binary,
        header_lines=(first, *kept_header),
        is_combined=combined,
        old_mode=builder.old_mode,
        new_mode=builder.new_mode,
    )


def split_file_blocks(text: str) -> tuple[list[str], list[list[str]]]:
    """Split diff text into (preamble lines, per-file line blocks)."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    preamble: list[str] = []
    blocks: list[list[str]] = []
    for line in lines:
        if line.startswith(UNMERGED_NOTICE):
            continue
        if FILE_HEADER_RE.match(line):
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
        else:
            preamble.append(line)
    return preamble, blocks


def parse_diff(text: str) -> list[FileEntry]:
    """Parse diff text into ordered ``FileEntry`` values."""
    _preamble, blocks = split_file_blocks(text)
    return [_parse_file_block(block) for block in blocks]


__all__ = [
    "NO_NEWLINE_MARKER",
    "parse_diff",
    "split_file_blocks",
    "unquote_path",
]
