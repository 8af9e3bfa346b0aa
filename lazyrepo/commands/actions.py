"""Action names, action values, and the item-kind applicability table.

``APPLICABILITY`` must name every ``ItemKind``; the check at the bottom of
this module fails at import time when a new kind is added without deciding
which item actions it supports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..model.types import Address, ItemKind, Selection


class ActionName(Enum):
    MOVE_NEXT = "move_next"
    MOVE_PREVIOUS = "move_previous"
    MOVE_NEXT_LINE = "move_next_line"
    MOVE_PREVIOUS_LINE = "move_previous_line"
    MOVE_PARENT = "move_parent"
    MOVE_FIRST = "move_first"
    MOVE_LAST = "move_last"
    HALF_PAGE_DOWN = "half_page_down"
    HALF_PAGE_UP = "half_page_up"
    TOGGLE_EXPAND = "toggle_expand"
    EXPAND_ALL = "expand_all"
    COLLAPSE_ALL = "collapse_all"
    TOGGLE_RANGE = "toggle_range"
    CANCEL = "cancel"
    REFRESH = "refresh"
    HELP = "help"
    QUIT = "quit"
    RELOAD_CONFIG = "reload_config"
    SHOW = "show"
    SHOW_LOG = "show_log"
    SHOW_LOG_ALL = "show_log_all"
    SHOW_REFS = "show_refs"
    STAGE = "stage"
    UNSTAGE = "unstage"
    DISCARD = "discard"
    COMMIT = "commit"
    COMMIT_AMEND = "commit_amend"
    COMMIT_EXTEND = "commit_extend"
    COMMIT_FIXUP = "commit_fixup"
    CHECKOUT = "checkout"
    CHECKOUT_NEW_BRANCH = "checkout_new_branch"
    DELETE_BRANCH = "delete_branch"
    PUSH = "push"
    PUSH_FORCE = "push_force"
    PULL = "pull"
    FETCH = "fetch"
    FETCH_ALL = "fetch_all"
    STASH = "stash"
    STASH_INDEX = "stash_index"
    STASH_WORKTREE = "stash_worktree"
    STASH_KEEP_INDEX = "stash_keep_index"
    STASH_POP = "stash_pop"
    STASH_APPLY = "stash_apply"
    STASH_DROP = "stash_drop"
    RESET_SOFT = "reset_soft"
    RESET_MIXED = "reset_mixed"
    RESET_HARD = "reset_hard"
    REBASE_INTERACTIVE = "rebase_interactive"
    REBASE_ELSEWHERE = "rebase_elsewhere"
    REBASE_CONTINUE = "rebase_continue"
    REBASE_ABORT = "rebase_abort"
    REBASE_SKIP = "rebase_skip"


class Scope(Enum):
    GLOBAL = "global"
    ITEM = "item"


@dataclass(frozen=True)
class ActionInfo:
    description: str
    scope: Scope = Scope.GLOBAL
    prompt: str | None = None
    confirm: str | None = None


ACTION_INFO: dict[ActionName, ActionInfo] = {
    ActionName.MOVE_NEXT: ActionInfo("Next item"),
    ActionName.MOVE_PREVIOUS: ActionInfo("Previous item"),
    ActionName.MOVE_NEXT_LINE: ActionInfo("Next line"),
    ActionName.MOVE_PREVIOUS_LINE: ActionInfo("Previous line"),
    ActionName.MOVE_PARENT: ActionInfo("Parent item"),
    ActionName.MOVE_FIRST: ActionInfo("First item"),
    ActionName.MOVE_LAST: ActionInfo("Last item"),
    ActionName.HALF_PAGE_DOWN: ActionInfo("Half page down"),
    ActionName.HALF_PAGE_UP: ActionInfo("Half page up"),
    ActionName.TOGGLE_EXPAND: ActionInfo("Toggle section"),
    ActionName.EXPAND_ALL: ActionInfo("Expand all"),
    ActionName.COLLAPSE_ALL: ActionInfo("Collapse all"),
    ActionName.TOGGLE_RANGE: ActionInfo("Mark range"),
    ActionName.CANCEL: ActionInfo("Cancel"),
    ActionName.REFRESH: ActionInfo("Refresh"),
    ActionName.HELP: ActionInfo("Help"),
    ActionName.QUIT: ActionInfo("Quit / close"),
    ActionName.RELOAD_CONFIG: ActionInfo("Reload config"),
    ActionName.SHOW: ActionInfo("Show / edit", Scope.ITEM),
    ActionName.SHOW_LOG: ActionInfo("Log current"),
    ActionName.SHOW_LOG_ALL: ActionInfo("Log all"),
    ActionName.SHOW_REFS: ActionInfo("Show refs"),
    ActionName.STAGE: ActionInfo("Stage", Scope.ITEM),
    ActionName.UNSTAGE: ActionInfo("Unstage", Scope.ITEM),
    ActionName.DISCARD: ActionInfo("Discard", Scope.ITEM, confirm="Really discard {target}?"),
    ActionName.COMMIT: ActionInfo("Commit"),
    ActionName.COMMIT_AMEND: ActionInfo("Amend"),
    ActionName.COMMIT_EXTEND: ActionInfo("Extend"),
    ActionName.COMMIT_FIXUP: ActionInfo("Fixup", Scope.ITEM),
    ActionName.CHECKOUT: ActionInfo("Checkout", prompt="Checkout"),
    ActionName.CHECKOUT_NEW_BRANCH: ActionInfo("Checkout new branch", prompt="Create and checkout branch"),
    ActionName.DELETE_BRANCH: ActionInfo("Delete branch", prompt="Delete branch", confirm="Really delete branch {value}?"),
    ActionName.PUSH: ActionInfo("Push"),
    ActionName.PUSH_FORCE: ActionInfo("Force push", confirm="Really force push?"),
    ActionName.PULL: ActionInfo("Pull"),
    ActionName.FETCH: ActionInfo("Fetch"),
    ActionName.FETCH_ALL: ActionInfo("Fetch all"),
    ActionName.STASH: ActionInfo("Stash", prompt="Stash message"),
    ActionName.STASH_INDEX: ActionInfo("Stash index", prompt="Stash message"),
    ActionName.STASH_WORKTREE: ActionInfo("Stash worktree", prompt="Stash message"),
    ActionName.STASH_KEEP_INDEX: ActionInfo("Stash keeping index", prompt="Stash message"),
    ActionName.STASH_POP: ActionInfo("Pop stash", prompt="Pop stash"),
    ActionName.STASH_APPLY: ActionInfo("Apply stash", prompt="Apply stash"),
    ActionName.STASH_DROP: ActionInfo("Drop stash", prompt="Drop stash", confirm="Really drop {value}?"),
    ActionName.RESET_SOFT: ActionInfo("Reset soft", prompt="Soft reset to"),
    ActionName.RESET_MIXED: ActionInfo("Reset mixed", prompt="Mixed reset to"),
    ActionName.RESET_HARD: ActionInfo("Reset hard", prompt="Hard reset to", confirm="Really hard reset to {value}?"),
    ActionName.REBASE_INTERACTIVE: ActionInfo("Rebase interactive", Scope.ITEM),
    ActionName.REBASE_ELSEWHERE: ActionInfo("Rebase elsewhere", prompt="Rebase onto"),
    ActionName.REBASE_CONTINUE: ActionInfo("Rebase continue"),
    ActionName.REBASE_ABORT: ActionInfo("Rebase abort"),
    ActionName.REBASE_SKIP: ActionInfo("Rebase skip"),
}

_STAGEABLE = frozenset({ActionName.STAGE, ActionName.DISCARD, ActionName.SHOW})
_UNSTAGEABLE = frozenset({ActionName.UNSTAGE, ActionName.SHOW})
_VIEW_ONLY = frozenset({ActionName.SHOW})

APPLICABILITY: dict[ItemKind, frozenset[ActionName]] = {
    ItemKind.HEADER: frozenset(),
    ItemKind.SECTION: frozenset({ActionName.STAGE, ActionName.UNSTAGE}),
    ItemKind.UNTRACKED_FILE: _STAGEABLE,
    ItemKind.UNSTAGED_FILE: _STAGEABLE,
    ItemKind.STAGED_FILE: _UNSTAGEABLE,
    ItemKind.UNMERGED_FILE: frozenset({ActionName.STAGE, ActionName.SHOW}),
    ItemKind.UNSTAGED_HUNK: _STAGEABLE,
    ItemKind.STAGED_HUNK: _UNSTAGEABLE,
    ItemKind.CONFLICT_HUNK: _VIEW_ONLY,
    ItemKind.RAW_HUNK: _VIEW_ONLY,
    ItemKind.UNSTAGED_LINE: _STAGEABLE,
    ItemKind.STAGED_LINE: _UNSTAGEABLE,
    ItemKind.DIFF_FILE: _VIEW_ONLY,
    ItemKind.DIFF_HUNK: _VIEW_ONLY,
    ItemKind.DIFF_LINE: _VIEW_ONLY,
    ItemKind.COMMIT: frozenset({ActionName.SHOW, ActionName.COMMIT_FIXUP, ActionName.REBASE_INTERACTIVE}),
    ItemKind.STASH: _VIEW_ONLY,
    ItemKind.BRANCH: _VIEW_ONLY,
    ItemKind.REMOTE_BRANCH: _VIEW_ONLY,
    ItemKind.TAG: _VIEW_ONLY,
}

ITEM_ACTIONS = frozenset(name for name, info in ACTION_INFO.items() if info.scope is Scope.ITEM)


def is_applicable(name: ActionName, kind: ItemKind | None) -> bool:
    """Global actions apply everywhere; item actions consult ``APPLICABILITY``."""
    if ACTION_INFO[name].scope is Scope.GLOBAL:
        return True
    if kind is None:
        return False
    return name in APPLICABILITY[kind]


def check_tables() -> None:
    """Raise ``AssertionError`` when the action tables are not exhaustive."""
    missing_info = set(ActionName) - set(ACTION_INFO)
    if missing_info:
        raise AssertionError(f"actions without info: {sorted(name.value for name in missing_info)}")
    missing_kinds = set(ItemKind) - set(APPLICABILITY)
    if missing_kinds:
        raise AssertionError(f"item kinds without applicability: {sorted(kind.value for kind in missing_kinds)}")
    for kind, names in APPLICABILITY.items():
        stray = names - ITEM_ACTIONS
        if stray:
            raise AssertionError(f"{kind.value} lists global actions: {sorted(name.value for name in stray)}")
    unused = ITEM_ACTIONS - frozenset().union(*APPLICABILITY.values())
    if unused:
        raise AssertionError(f"item actions applicable nowhere: {sorted(name.value for name in unused)}")


check_tables()


@dataclass(frozen=True)
class GitCommand:
    """One git invocation (arguments after ``git -C <root>``)."""

    args: tuple[str, ...]
    stdin: str | None = None
    network: bool = False
    interactive: bool = False
    is_apply: bool = False

    def describe(self) -> str:
        return "git " + " ".join(self.args)


@dataclass(frozen=True)
class Action:
    """A resolved intent: what to do, on what, and which git commands do it."""

    name: ActionName
    target: Selection | None = None
    address: Address | None = None
    commands: tuple[GitCommand, ...] = ()
    confirm: str | None = None
    value: str | None = None
    description: str = ""

    @property
    def is_mutation(self) -> bool:
        return bool(self.commands)

    @property
    def is_network(self) -> bool:
        return any(command.network for command in self.commands)

    @property
    def is_interactive(self) -> bool:
        return any(command.interactive for command in self.commands)


__all__ = [
    "ACTION_INFO",
    "APPLICABILITY",
    "Action",
    "ActionInfo",
    "ActionName",
    "GitCommand",
    "ITEM_ACTIONS",
    "Scope",
    "check_tables",
    "is_applicable",
]
