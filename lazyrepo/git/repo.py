"""Repository context resolution and git invocation helpers.

``RepoContext`` is passed explicitly into every snapshot and executor call;
there is no process-wide "current repository".
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..errors import NotARepository, ToolUnavailable
from .process import ProcessResult, ProcessRunner, run_process

GIT_EXECUTABLE = "git"
READ_ONLY_ENV = {"GIT_OPTIONAL_LOCKS": "0"}
BASE_ENV = {"GIT_TERMINAL_PROMPT": "0"}


@dataclass(frozen=True)
class RepoContext:
    """Resolved repository root and git directory."""

    root: Path
    git_dir: Path

    def git(
        self,
        args: Sequence[str],
        *,
        stdin: str | None = None,
        read_only: bool = True,
        should_cancel: Callable[[], bool] | None = None,
        runner: ProcessRunner = run_process,
        timeout_seconds: float | None = None,
    ) -> ProcessResult:
        """Run ``git -C <root> <args>`` through ``runner``."""
        env = dict(BASE_ENV)
        if read_only:
            env.update(READ_ONLY_ENV)
        return runner(
            git_argv(self.root, args),
            self.root,
            stdin=stdin,
            env=env,
            should_cancel=should_cancel,
            timeout_seconds=timeout_seconds,
        )


def git_argv(root: Path, args: Sequence[str]) -> tuple[str, ...]:
    """Build the full argv for a git invocation rooted at ``root``."""
    return (GIT_EXECUTABLE, "-C", str(root), *args)


def resolve_repo(path: Path, runner: ProcessRunner = run_process) -> RepoContext:
    """Resolve the work-tree root and git dir containing ``path``.

    Raises ``NotARepository`` when ``path`` is outside any work tree and
    ``ToolUnavailable`` when git itself cannot be run.
    """
    path = path.resolve()
    start_dir = path if path.is_dir() else path.parent
    result = runner(
        git_argv(start_dir, ["rev-parse", "--show-toplevel", "--git-dir"]),
        start_dir,
        env=dict(READ_ONLY_ENV),
    )
    if result.returncode == 128 or (result.returncode != 0 and "not a git repository" in result.stderr):
        raise NotARepository(path)
    if result.returncode != 0:
        raise ToolUnavailable(f"git rev-parse failed: {result.stderr.strip()}")

    lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if len(lines) < 2:
        # Bare repositories print only the git dir.
        raise NotARepository(path)

    repo_root = Path(lines[0]).resolve()
    git_dir_raw = Path(lines[1])
    git_dir = git_dir_raw if git_dir_raw.is_absolute() else (start_dir / git_dir_raw)
    return RepoContext(root=repo_root, git_dir=git_dir.resolve())


__all__ = [
    "RepoContext",
    "git_argv",
    "resolve_repo",
]
