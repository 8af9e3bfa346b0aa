"""Main interactive event loop for the terminal UI.

Coordinates periodic ticks (results, watch polling, chord timeouts), rendering,
and key dispatch. Feature logic lives in the injected callbacks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..input import read_key
from ..render import frame_text
from .state import AppState
from .terminal import TerminalController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    key_timeout_ms: int = 120


@dataclass(frozen=True)
class RuntimeLoopCallbacks:
    """Injected operations used by ``run_main_loop``."""

    tick: Callable[[float], None]
    render: Callable[[int, int], list[str]]
    handle_key: Callable[[str], bool]
    report_failure: Callable[[Exception], None]


def run_main_loop(
    state: AppState,
    terminal: TerminalController,
    stdin_fd: int,
    timing: RuntimeLoopTiming,
    callbacks: RuntimeLoopCallbacks,
) -> None:
    """Run the main interactive TUI loop until a quit action occurs.

    Each iteration ticks background state, redraws when dirty, then waits up
    to ``key_timeout_ms`` for one key. A failure inside an iteration is logged
    and reported instead of ending the session.
    """
    ops = callbacks
    with terminal.raw_mode():
        while True:
            columns, rows = terminal.size()
            if (columns, rows) != (state.width, state.height):
                state.width, state.height = columns, rows
                state.dirty = True

            try:
                ops.tick(time.monotonic())
            except Exception as exc:
                logger.exception("tick failed")
                ops.report_failure(exc)

            if state.dirty:
                try:
                    terminal.write(frame_text(ops.render(columns, rows)))
                except Exception as exc:
                    logger.exception("render failed")
                    ops.report_failure(exc)
                state.dirty = False

            if state.quit:
                break

            try:
                key = read_key(stdin_fd, timeout_ms=timing.key_timeout_ms)
            except KeyboardInterrupt:
                key = "CTRL_C"
            if key == "":
                continue
            if state.skip_next_lf and key == "ENTER_LF":
                state.skip_next_lf = False
                continue
            state.skip_next_lf = key == "ENTER_CR"

            try:
                should_quit = ops.handle_key(key)
            except Exception as exc:
                logger.exception("key %r failed", key)
                ops.report_failure(exc)
                should_quit = False
            state.dirty = True
            if should_quit:
                break


__all__ = [
    "RuntimeLoopCallbacks",
    "RuntimeLoopTiming",
    "run_main_loop",
]
