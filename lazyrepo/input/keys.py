"""Key names used in binding config and the ``--keys`` replay string.

Config and CLI spell keys for people (``ctrl+r``, ``<enter>``); the reader
produces tokens (``CTRL_R``, ``ENTER_CR``). This module converts between them.
"""

from __future__ import annotations

NAMED_KEYS = {
    "enter": "ENTER_CR",
    "return": "ENTER_CR",
    "esc": "ESC",
    "escape": "ESC",
    "tab": "TAB",
    "backtab": "SHIFT_TAB",
    "backspace": "BACKSPACE",
    "delete": "DELETE",
    "space": " ",
    "up": "UP",
    "down": "DOWN",
    "left": "LEFT",
    "right": "RIGHT",
    "home": "HOME",
    "end": "END",
    "pageup": "PAGE_UP",
    "pagedown": "PAGE_DOWN",
    "lt": "<",
    "gt": ">",
}
_TOKEN_NAMES = {token: name for name, token in reversed(list(NAMED_KEYS.items()))}


def normalize_key(token: str) -> str:
    """Fold equivalent reader tokens onto one binding token."""
    if token == "ENTER_LF":
        return "ENTER_CR"
    return token


def parse_key_name(name: str) -> str:
    """Convert one human key name into a reader token.

    Raises ``ValueError`` for unknown names.
    """
    if len(name) == 1:
        return name
    lowered = name.strip().lower()
    if lowered in NAMED_KEYS:
        return NAMED_KEYS[lowered]
    for prefix in ("ctrl+", "ctrl-", "c-"):
        if lowered.startswith(prefix):
            letter = lowered[len(prefix) :]
            if len(letter) == 1 and letter.isalpha():
                return f"CTRL_{letter.upper()}"
            if letter == "space":
                return "CTRL_SPACE"
    raise ValueError(f"unknown key name {name!r}")


def parse_chord(spec: str | list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Parse ``"c c"`` / ``["c", "c"]`` / ``"ctrl+r"`` into a token tuple."""
    parts = spec.split() if isinstance(spec, str) else list(spec)
    if not parts:
        raise ValueError("empty key chord")
    return tuple(parse_key_name(part) for part in parts)


def parse_keys(text: str) -> list[str]:
    """Parse a replay string: literal characters plus ``<name>`` escapes."""
    tokens: list[str] = []
    index = 0
    while index < len(text):
        ch = text[index]
        if ch == "<":
            close = text.find(">", index + 1)
            if close > index + 1:
                tokens.append(parse_key_name(text[index + 1 : close]))
                index = close + 1
                continue
        tokens.append(ch)
        index += 1
    return tokens


def format_token(token: str) -> str:
    if token.startswith("CTRL_") and len(token) == 6:
        return f"ctrl+{token[-1].lower()}"
    if token in _TOKEN_NAMES:
        return _TOKEN_NAMES[token]
    return token


def format_chord(chord: tuple[str, ...]) -> str:
    return " ".join(format_token(token) for token in chord)


__all__ = [
    "format_chord",
    "format_token",
    "normalize_key",
    "parse_chord",
    "parse_key_name",
    "parse_keys",
]
