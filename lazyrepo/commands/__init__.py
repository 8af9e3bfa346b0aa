"""Actions, git command plans, patch construction, and the key dispatcher."""

from __future__ import annotations

from .actions import ACTION_INFO, APPLICABILITY, Action, ActionName, GitCommand, is_applicable
from .dispatcher import CommandDispatcher, DispatchOutcome, Mode, OutcomeKind
from .ops import OpContext, build_action, commit_commands
from .patch import build_file_patch, build_hunk_patch, build_partial_patch

__all__ = [
    "ACTION_INFO",
    "APPLICABILITY",
    "Action",
    "ActionName",
    "GitCommand",
    "is_applicable",
    "CommandDispatcher",
    "DispatchOutcome",
    "Mode",
    "OutcomeKind",
    "OpContext",
    "build_action",
    "commit_commands",
    "build_file_patch",
    "build_hunk_patch",
    "build_partial_patch",
]
