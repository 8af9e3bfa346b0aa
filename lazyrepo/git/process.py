"""Subprocess execution for git invocations.

Every invocation runs in its own session so cancellation can terminate the
whole process group. Streams are exchanged as bytes and decoded with
``surrogateescape``, so CR bytes and non-UTF-8 content survive the round trip
back into ``git apply``. Exit status is reported, never raised.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..errors import ToolUnavailable

logger = logging.getLogger(__name__)

POLL_SECONDS = 0.05
TERMINATE_GRACE_SECONDS = 1.0


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured streams for one external-tool invocation."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    cancelled: bool = False
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.cancelled


ProcessRunner = Callable[..., ProcessResult]


def decode_stream(data: bytes | None) -> str:
    """Decode child output without losing bytes that are not UTF-8."""
    return data.decode("utf-8", "surrogateescape") if data else ""


def encode_stream(text: str) -> bytes:
    """Inverse of ``decode_stream``."""
    return text.encode("utf-8", "surrogateescape")


def _terminate_group(proc: subprocess.Popen) -> None:
    """Send SIGTERM to the child's process group, escalating to SIGKILL."""
    try:
        pgid = os.getpgid(proc.pid)
    except ProcessLookupError:
        return
    try:
        os.killpg(pgid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(pgid, signal.SIGKILL)
        except ProcessLookupError:
            pass


def run_process(
    argv: Sequence[str],
    cwd: Path,
    *,
    stdin: str | None = None,
    env: Mapping[str, str] | None = None,
    should_cancel: Callable[[], bool] | None = None,
    timeout_seconds: float | None = None,
) -> ProcessResult:
    """Run ``argv`` in ``cwd`` and return its captured result.

    ``should_cancel`` is polled while the child runs; when it returns ``True``
    the child's process group is terminated and the result is flagged
    ``cancelled``. Raises ``ToolUnavailable`` only when the executable cannot
    be launched at all.
    """
    argv = tuple(argv)
    merged_env = dict(os.environ)
    if env:
        merged_env.update(env)

    started = time.monotonic()
    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd),
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=merged_env,
            start_new_session=True,
        )
    except FileNotFoundError as exc:
        raise ToolUnavailable(f"{argv[0]} not found in PATH") from exc
    except OSError as exc:
        raise ToolUnavailable(f"failed to launch {argv[0]}: {exc}") from exc

    pending_input = encode_stream(stdin) if stdin is not None else None
    cancelled = False
    timed_out = False
    while True:
        try:
            stdout, stderr = proc.communicate(input=pending_input, timeout=POLL_SECONDS)
            break
        except subprocess.TimeoutExpired:
            # communicate() refuses input once it has started writing it.
            pending_input = None
        if should_cancel is not None and should_cancel():
            cancelled = True
        elif timeout_seconds is not None and time.monotonic() - started >= timeout_seconds:
            timed_out = True
        if cancelled or timed_out:
            _terminate_group(proc)
            stdout, stderr = proc.communicate()
            break

    duration = time.monotonic() - started
    error_text = decode_stream(stderr)
    if timed_out:
        error_text = f"{error_text}\ntimed out after {timeout_seconds:.1f}s".lstrip("\n")
    result = ProcessResult(
        argv=argv,
        returncode=proc.returncode,
        stdout=decode_stream(stdout),
        stderr=error_text,
        cancelled=cancelled,
        duration=duration,
    )
    logger.debug(
        "ran %s -> %s%s in %.3fs",
        " ".join(argv),
        result.returncode,
        " (cancelled)" if cancelled else "",
        duration,
    )
    return result


__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "decode_stream",
    "encode_stream",
    "run_process",
]
