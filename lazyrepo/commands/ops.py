"""Translate action names plus the focused selection into git command plans."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import NotApplicable
from ..model.tree import ItemNode
from ..model.types import (
    Address,
    ChangeKind,
    CommitEntry,
    FileEntry,
    Granularity,
    HeadInfo,
    Hunk,
    ItemKind,
    Line,
    RefEntry,
    RepositorySnapshot,
    SectionKind,
    Selection,
    StashEntry,
)
from .actions import ACTION_INFO, Action, ActionName, GitCommand
from .patch import build_hunks_patch, build_partial_patch, is_patchable


@dataclass(frozen=True)
class OpContext:
    """What the dispatcher knows about the focused screen when a chord completes."""

    screen: str = "status"
    focused: ItemNode | None = None
    selected: tuple[ItemNode, ...] = ()
    selection: Selection | None = None
    address: Address | None = None
    snapshot: RepositorySnapshot | None = None

    @property
    def head(self) -> HeadInfo:
        if self.snapshot is None:
            return HeadInfo()
        return self.snapshot.head

    @property
    def kind(self) -> ItemKind | None:
        return self.focused.kind if self.focused is not None else None

    @property
    def granularity(self) -> Granularity | None:
        return self.selection.granularity if self.selection is not None else None


def _git(*args: str, stdin: str | None = None, network: bool = False, interactive: bool = False) -> GitCommand:
    return GitCommand(
        args=tuple(args),
        stdin=stdin,
        network=network,
        interactive=interactive,
        is_apply=bool(args) and args[0] == "apply",
    )


def _files(nodes: Sequence[ItemNode]) -> list[FileEntry]:
    return [node.file for node in nodes if node.file is not None]


def _paths(files: Sequence[FileEntry], *, with_old: bool = False) -> list[str]:
    paths: list[str] = []
    for entry in files:
        if with_old and entry.old_path and entry.old_path not in paths:
            paths.append(entry.old_path)
        if entry.path not in paths:
            paths.append(entry.path)
    return paths


def _hunk_patch(nodes: Sequence[ItemNode], *, reverse: bool) -> str:
    file = nodes[0].file
    hunks = [node.hunk for node in nodes if node.hunk is not None]
    if file is None or not hunks:
        raise NotApplicable("No hunk selected")
    if not all(is_patchable(hunk) for hunk in hunks):
        raise NotApplicable("Conflicted or unparsed hunks cannot be patched")
    patch = build_hunks_patch(file, hunks, reverse=reverse)
    if patch is None:
        raise NotApplicable("Selection contains no changes")
    return patch


def _line_patch(nodes: Sequence[ItemNode], *, reverse: bool) -> str:
    file = nodes[0].file
    hunk: Hunk | None = nodes[0].hunk
    if file is None or hunk is None:
        raise NotApplicable("No lines selected")
    if not is_patchable(hunk):
        raise NotApplicable("Conflicted or unparsed hunks cannot be patched")
    offsets = [node.payload.offset for node in nodes if isinstance(node.payload, Line)]
    patch = build_partial_patch(file, hunk, offsets, reverse=reverse)
    if patch is None:
        raise NotApplicable("Selection contains no changes")
    return patch


def _section_files(node: ItemNode, snapshot: RepositorySnapshot | None) -> list[FileEntry]:
    if snapshot is None or node.section_kind is None:
        return []
    section = snapshot.section(node.section_kind)
    if section is None:
        return []
    return [entry for entry in section.entries if isinstance(entry, FileEntry)]


def describe_target(ctx: OpContext) -> str:
    nodes = ctx.selected
    if not nodes:
        return "nothing"
    first = nodes[0]
    path = first.file.display_path if first.file is not None else first.label
    if ctx.granularity is Granularity.FILE:
        if len(nodes) == 1:
            return path
        return f"{len(nodes)} files"
    if ctx.granularity is Granularity.HUNK:
        return f"{len(nodes)} hunk{'s' if len(nodes) != 1 else ''} in {path}"
    if ctx.granularity is Granularity.LINE:
        return f"{len(nodes)} line{'s' if len(nodes) != 1 else ''} in {path}"
    return first.label


def stage_commands(ctx: OpContext) -> tuple[GitCommand, ...]:
    focused = ctx.focused
    if focused is None:
        raise NotApplicable("Nothing to stage")
    if focused.kind is ItemKind.SECTION:
        if focused.section_kind is SectionKind.UNSTAGED:
            return (_git("add", "-u"),)
        if focused.section_kind in {SectionKind.UNTRACKED, SectionKind.UNMERGED}:
            paths = _paths(_section_files(focused, ctx.snapshot))
            if paths:
                return (_git("add", "--", *paths),)
        raise NotApplicable(f"Nothing to stage in {focused.label}")
    granularity = ctx.granularity
    if granularity is Granularity.FILE:
        return (_git("add", "--", *_paths(_files(ctx.selected))),)
    if granularity is Granularity.HUNK:
        return (_git("apply", "--cached", "-", stdin=_hunk_patch(ctx.selected, reverse=False)),)
    if granularity is Granularity.LINE:
        return (_git("apply", "--cached", "-", stdin=_line_patch(ctx.selected, reverse=False)),)
    raise NotApplicable("Nothing to stage")


def unstage_commands(ctx: OpContext) -> tuple[GitCommand, ...]:
    focused = ctx.focused
    if focused is None:
        raise NotApplicable("Nothing to unstage")
    unborn = ctx.head.unborn
    if focused.kind is ItemKind.SECTION:
        if focused.section_kind is not SectionKind.STAGED:
            raise NotApplicable(f"Nothing to unstage in {focused.label}")
        if unborn:
            paths = _paths(_section_files(focused, ctx.snapshot))
            return (_git("rm", "--cached", "-r", "-q", "--", *paths),)
        return (_git("reset", "-q"),)
    granularity = ctx.granularity
    if granularity is Granularity.FILE:
        files = _files(ctx.selected)
        if unborn:
            return (_git("rm", "--cached", "-r", "-q", "--", *_paths(files)),)
        return (_git("restore", "--staged", "--", *_paths(files, with_old=True)),)
    if granularity is Granularity.HUNK:
        return (_git("apply", "--cached", "--reverse", "-", stdin=_hunk_patch(ctx.selected, reverse=True)),)
    if granularity is Granularity.LINE:
        return (_git("apply", "--cached", "--reverse", "-", stdin=_line_patch(ctx.selected, reverse=True)),)
    raise NotApplicable("Nothing to unstage")


def discard_commands(ctx: OpContext) -> tuple[GitCommand, ...]:
    granularity = ctx.granularity
    if granularity is Granularity.FILE:
        files = _files(ctx.selected)
        untracked = [entry for entry in files if entry.change is ChangeKind.UNTRACKED]
        tracked = [entry for entry in files if entry.change is not ChangeKind.UNTRACKED]
        commands: list[GitCommand] = []
        if untracked:
            commands.append(_git("clean", "-f", "-d", "--", *_paths(untracked)))
        if tracked:
            commands.append(_git("checkout", "--", *_paths(tracked)))
        return tuple(commands)
    if granularity is Granularity.HUNK:
        return (_git("apply", "--reverse", "-", stdin=_hunk_patch(ctx.selected, reverse=True)),)
    if granularity is Granularity.LINE:
        return (_git("apply", "--reverse", "-", stdin=_line_patch(ctx.selected, reverse=True)),)
    raise NotApplicable("Nothing to discard")


def commit_commands(message: str, *, amend: bool = False) -> tuple[GitCommand, ...]:
    """Commit the index with ``message`` fed on stdin."""
    args = ["commit", "--cleanup=strip"]
    if amend:
        args.append("--amend")
    args.append("--file=-")
    return (_git(*args, stdin=message),)


def _stash_push(*flags: str, message: str | None) -> GitCommand:
    args = ["stash", "push", *flags]
    if message:
        args.extend(["-m", message])
    return _git(*args)


def _has_staged_changes(ctx: OpContext) -> bool:
    return ctx.snapshot is not None and ctx.snapshot.has_entries(SectionKind.STAGED)


def _has_worktree_changes(ctx: OpContext) -> bool:
    if ctx.snapshot is None:
        return False
    return ctx.snapshot.has_entries(SectionKind.UNSTAGED) or ctx.snapshot.has_entries(SectionKind.UNTRACKED)


def check_preconditions(name: ActionName, ctx: OpContext) -> None:
    """Raise ``NotApplicable`` when ``name`` cannot run in the repository state ``ctx`` shows."""
    if name is not ActionName.STASH_WORKTREE:
        return
    # Only the status snapshot tells index changes apart from work tree changes.
    if ctx.screen != "status":
        raise NotApplicable(f"Stash worktree: not available on the {ctx.screen} screen")
    if not _has_worktree_changes(ctx):
        raise NotApplicable("Cannot stash: working tree is empty")


def stash_worktree_commands(ctx: OpContext, message: str | None) -> tuple[GitCommand, ...]:
    """Stash unstaged changes only: park the index, stash the rest, restore the index."""
    check_preconditions(ActionName.STASH_WORKTREE, ctx)
    if not _has_staged_changes(ctx):
        return (_stash_push("--include-untracked", message=message),)
    # The pop addresses the parked index positionally; the middle push must create a stash.
    return (
        _stash_push("--staged", message="lazyrepo: staged changes"),
        _stash_push("--include-untracked", message=message),
        _git("stash", "pop", "-q", "--index", "stash@{1}"),
    )


def _require(value: str | None, what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise NotApplicable(f"No {what} given")
    return value


def prompt_default(name: ActionName, focused: ItemNode | None) -> str:
    """Default prompt text derived from the focused item."""
    payload = focused.payload if focused is not None else None
    if name in {ActionName.STASH_POP, ActionName.STASH_APPLY, ActionName.STASH_DROP}:
        if isinstance(payload, StashEntry):
            return payload.ref
        return "stash@{0}"
    if isinstance(payload, RefEntry):
        if payload.name == "HEAD":
            return payload.short_oid if name is not ActionName.DELETE_BRANCH else ""
        if name is ActionName.DELETE_BRANCH and focused is not None and focused.kind is not ItemKind.BRANCH:
            return ""
        return payload.short_name
    if isinstance(payload, CommitEntry) and name in {
        ActionName.CHECKOUT,
        ActionName.RESET_SOFT,
        ActionName.RESET_MIXED,
        ActionName.RESET_HARD,
        ActionName.REBASE_ELSEWHERE,
    }:
        return payload.short_oid
    return ""


def _commands_for(name: ActionName, ctx: OpContext, value: str | None) -> tuple[GitCommand, ...]:
    payload = ctx.focused.payload if ctx.focused is not None else None
    if name is ActionName.STAGE:
        return stage_commands(ctx)
    if name is ActionName.UNSTAGE:
        return unstage_commands(ctx)
    if name is ActionName.DISCARD:
        return discard_commands(ctx)
    if name is ActionName.COMMIT_EXTEND:
        return (_git("commit", "--amend", "--no-edit"),)
    if name is ActionName.COMMIT_FIXUP:
        if not isinstance(payload, CommitEntry):
            raise NotApplicable("Select a commit to fix up")
        return (_git("commit", "--fixup", payload.oid),)
    if name is ActionName.CHECKOUT:
        return (_git("checkout", _require(value, "branch or revision")),)
    if name is ActionName.CHECKOUT_NEW_BRANCH:
        return (_git("checkout", "-b", _require(value, "branch name")),)
    if name is ActionName.DELETE_BRANCH:
        return (_git("branch", "-d", _require(value, "branch name")),)
    if name is ActionName.PUSH:
        return (_git("push", network=True),)
    if name is ActionName.PUSH_FORCE:
        return (_git("push", "--force-with-lease", network=True),)
    if name is ActionName.PULL:
        return (_git("pull", "--no-edit", network=True),)
    if name is ActionName.FETCH:
        return (_git("fetch", network=True),)
    if name is ActionName.FETCH_ALL:
        return (_git("fetch", "--all", network=True),)
    if name is ActionName.STASH:
        return (_stash_push("--include-untracked", message=value),)
    if name is ActionName.STASH_INDEX:
        return (_stash_push("--staged", message=value),)
    if name is ActionName.STASH_KEEP_INDEX:
        return (_stash_push("--include-untracked", "--keep-index", message=value),)
    if name is ActionName.STASH_WORKTREE:
        return stash_worktree_commands(ctx, value)
    if name is ActionName.STASH_POP:
        return (_git("stash", "pop", "-q", _require(value, "stash")),)
    if name is ActionName.STASH_APPLY:
        return (_git("stash", "apply", "-q", _require(value, "stash")),)
    if name is ActionName.STASH_DROP:
        return (_git("stash", "drop", _require(value, "stash")),)
    if name is ActionName.RESET_SOFT:
        return (_git("reset", "--soft", _require(value, "target")),)
    if name is ActionName.RESET_MIXED:
        return (_git("reset", "--mixed", _require(value, "target")),)
    if name is ActionName.RESET_HARD:
        return (_git("reset", "--hard", _require(value, "target")),)
    if name is ActionName.REBASE_INTERACTIVE:
        if not isinstance(payload, CommitEntry):
            raise NotApplicable("Select a commit to rebase from")
        return (_git("rebase", "-i", "--autostash", f"{payload.oid}^", interactive=True),)
    if name is ActionName.REBASE_ELSEWHERE:
        return (_git("rebase", "--autostash", _require(value, "target")),)
    if name is ActionName.REBASE_CONTINUE:
        return (_git("rebase", "--continue", interactive=True),)
    if name is ActionName.REBASE_ABORT:
        return (_git("rebase", "--abort"),)
    if name is ActionName.REBASE_SKIP:
        return (_git("rebase", "--skip"),)
    return ()


def build_action(name: ActionName, ctx: OpContext, value: str | None = None) -> Action:
    """Resolve ``name`` against ``ctx`` into a consumable ``Action``.

    Raises ``NotApplicable`` when the action has nothing to do here.
    """
    info = ACTION_INFO[name]
    commands = _commands_for(name, ctx, value)
    confirm = None
    if info.confirm is not None:
        confirm = info.confirm.format(target=describe_target(ctx), value=value or "")
    return Action(
        name=name,
        target=ctx.selection,
        address=ctx.address,
        commands=commands,
        confirm=confirm,
        value=value,
        description=info.description,
    )


__all__ = [
    "OpContext",
    "build_action",
    "check_preconditions",
    "commit_commands",
    "describe_target",
    "discard_commands",
    "prompt_default",
    "stage_commands",
    "stash_worktree_commands",
    "unstage_commands",
]
