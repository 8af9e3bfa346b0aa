"""Width measurement and clipping for styled terminal rows.

Escape sequences never count toward a row's width, and a clipped row keeps
every style sequence that followed the cut so colors are always reset.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterator

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
TAB_STOP = 8


def char_display_width(ch: str, col: int) -> int:
    """Columns taken by ``ch`` when drawn at column ``col``."""
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def _segments(text: str) -> Iterator[tuple[bool, str]]:
    """Yield ``(is_escape, chunk)`` pairs in order."""
    pos = 0
    for match in ANSI_ESCAPE_RE.finditer(text):
        if match.start() > pos:
            yield False, text[pos : match.start()]
        yield True, match.group(0)
        pos = match.end()
    if pos < len(text):
        yield False, text[pos:]


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def display_width(text: str) -> int:
    col = 0
    for ch in strip_ansi(text):
        col += char_display_width(ch, col)
    return col


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Cut ``text`` to ``max_cols`` columns; tabs become spaces."""
    if max_cols <= 0 or not text:
        return ""
    out: list[str] = []
    col = 0
    full = False
    for is_escape, chunk in _segments(text):
        if is_escape:
            out.append(chunk)
            continue
        if full:
            continue
        for ch in chunk:
            width = char_display_width(ch, col)
            if col + width > max_cols:
                full = True
                break
            out.append(" " * width if ch == "\t" else ch)
            col += width
    return "".join(out)


def pad_ansi_line(text: str, width: int) -> str:
    """Clip to ``width`` and right-pad with spaces to exactly ``width`` columns."""
    clipped = clip_ansi_line(text, width)
    return clipped + " " * max(0, width - display_width(clipped))


__all__ = [
    "ANSI_ESCAPE_RE",
    "char_display_width",
    "clip_ansi_line",
    "display_width",
    "pad_ansi_line",
    "strip_ansi",
]
