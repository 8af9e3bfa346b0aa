"""Syntax highlighting of single diff lines.

Lexers are chosen by file name and cached; unknown names fall back to plain
text. Terminal control bytes are neutralized before anything is drawn.
"""

from __future__ import annotations

import re
from functools import lru_cache

from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

DEFAULT_STYLE = "monokai"

_CONTROL_RE = re.compile("[\x00-\x08\x0a-\x1f\x7f-\x9f\udc80-\udcff]")


def sanitize_terminal_text(source: str) -> str:
    """Escape terminal control bytes to avoid side effects (bell, cursor moves, etc.)."""
    if _CONTROL_RE.search(source) is None:
        return source

    out: list[str] = []
    for ch in source:
        code = ord(ch)
        if ch == "\t":
            out.append(ch)
            continue
        # C0 controls + DEL + C1 controls.
        if code < 32 or code == 127 or 0x80 <= code <= 0x9F:
            out.append(f"\\x{code:02x}")
            continue
        # Bytes that were not valid UTF-8 arrive as lone surrogates.
        if 0xDC80 <= code <= 0xDCFF:
            out.append(f"\\x{code - 0xDC00:02x}")
            continue
        out.append(ch)
    return "".join(out)


@lru_cache(maxsize=64)
def normalize_style(style: str) -> str:
    try:
        get_style_by_name(style)
    except ClassNotFound:
        return DEFAULT_STYLE
    return style


@lru_cache(maxsize=8)
def _formatter_for_style(style: str) -> Terminal256Formatter:
    return Terminal256Formatter(style=normalize_style(style))


@lru_cache(maxsize=256)
def lexer_for_path(path: str) -> Lexer:
    name = path.rsplit("/", 1)[-1]
    try:
        return get_lexer_for_filename(name, stripnl=False, ensurenl=False)
    except ClassNotFound:
        return TextLexer(stripnl=False, ensurenl=False)


def highlight_line(text: str, path: str, style: str = DEFAULT_STYLE) -> str:
    """Highlight one line of ``path``'s content; the result has no newline."""
    text = sanitize_terminal_text(text)
    if not text.strip():
        return text
    lexer = lexer_for_path(path)
    if isinstance(lexer, TextLexer):
        return text
    rendered = highlight(text, lexer, _formatter_for_style(style))
    return rendered.rstrip("\n")


__all__ = [
    "DEFAULT_STYLE",
    "highlight_line",
    "lexer_for_path",
    "normalize_style",
    "sanitize_terminal_text",
]
