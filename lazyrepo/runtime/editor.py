"""Editor launch helper for opening a changed file at a line.

Runs ``$VISUAL``/``$EDITOR`` while the terminal is released from TUI mode.
Returns an error message string instead of raising for UI-friendly handling.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path

logger = logging.getLogger(__name__)

# Editors known to accept ``+<line>`` before the file argument.
_LINE_ARG_EDITORS = frozenset({"vi", "vim", "nvim", "nano", "emacs", "emacsclient", "micro", "kak", "hx", "helix"})


def editor_command(target: Path, line: int | None = None, environ: dict[str, str] | None = None) -> list[str] | None:
    """Build the editor argv for ``target``; ``None`` when no editor is configured."""
    env = os.environ if environ is None else environ
    editor_env = (env.get("VISUAL", "") or env.get("EDITOR", "")).strip()
    if not editor_env:
        return None
    cmd = shlex.split(editor_env)
    if not cmd:
        return None
    if line is not None and line > 0 and Path(cmd[0]).name in _LINE_ARG_EDITORS:
        return [*cmd, f"+{line}", str(target)]
    return [*cmd, str(target)]


def launch_editor(
    target: Path,
    release_terminal: Callable[[], AbstractContextManager],
    line: int | None = None,
) -> str | None:
    cmd = editor_command(target, line)
    if cmd is None:
        return "Cannot edit: $EDITOR is not set."

    logger.debug("launching editor: %s", " ".join(cmd))
    with release_terminal():
        try:
            subprocess.run(cmd, check=False)
        except OSError as exc:
            return f"Failed to launch editor: {exc}"
    return None


__all__ = [
    "editor_command",
    "launch_editor",
]
