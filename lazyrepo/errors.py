"""Error taxonomy shared by git, model, and runtime layers.

Only ``StartupError`` is allowed to end the process; every other kind is
converted into UI-visible state at the boundary that produced it.
"""

from __future__ import annotations


class LazyRepoError(Exception):
    """Base class for all lazyrepo failures."""


class StartupError(LazyRepoError):
    """Fatal failure raised before the interactive loop starts."""


class NotARepository(StartupError):
    """Raised when the target path is not inside a git work tree."""

    def __init__(self, path: object) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class ToolUnavailable(StartupError):
    """Raised when ``git`` cannot be located or fails in an unexpected way."""


class CommandFailed(LazyRepoError):
    """A git invocation exited non-zero; repository state assumed unchanged."""

    def __init__(self, argv: tuple[str, ...], returncode: int, stderr: str) -> None:
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(self.summary())

    def summary(self) -> str:
        command = " ".join(self.argv)
        detail = self.stderr.strip()
        if not detail:
            return f"{command} failed with exit status {self.returncode}"
        return f"{command} failed: {detail}"


class ApplyPatchFailed(CommandFailed):
    """``git apply`` rejected a generated patch.

    Kept distinct from ``CommandFailed`` because it points at a defect in patch
    construction rather than an ordinary git refusal.
    """

    def __init__(self, argv: tuple[str, ...], returncode: int, stderr: str, patch: str) -> None:
        self.patch = patch
        super().__init__(argv, returncode, stderr)


class ParseError(LazyRepoError):
    """Malformed git output; only the affected node degrades to raw text."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class Cancelled(LazyRepoError):
    """A task was cancelled by the user or by navigation; never shown as an error."""


class NotApplicable(LazyRepoError):
    """The action has nothing to do for the focused item; shown as a hint."""


class InvalidSelection(ValueError):
    """A selection request violated the single-run/single-granularity rule."""


class BindingConflict(ValueError):
    """Key-binding overrides contain conflicting chords within one context."""

    def __init__(self, conflicts: list[str]) -> None:
        self.conflicts = list(conflicts)
        super().__init__("; ".join(self.conflicts))
