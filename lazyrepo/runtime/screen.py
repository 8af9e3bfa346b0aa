"""Screens: one snapshot loader plus the tree and navigation built from it.

A screen never talks to git directly; its ``load`` callable runs on a query
thread and the loop hands the resulting snapshot back via ``apply_snapshot``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..commands.ops import OpContext
from ..git.process import ProcessRunner, run_process
from ..git.repo import RepoContext
from ..git.snapshot import (
    SnapshotOptions,
    build_refs_snapshot,
    build_show_snapshot,
    build_staged_snapshot,
    build_status_snapshot,
    fetch_log_page,
    make_log_snapshot,
)
from ..model.navigation import NavigationEngine
from ..model.tree import ItemNode, ItemTree, build_item_tree
from ..model.types import CommitEntry, FileEntry, Hunk, Line, LineTag, RepositorySnapshot
from .tasks import TaskHandle

logger = logging.getLogger(__name__)

ShouldCancel = Callable[[], bool]
SnapshotLoader = Callable[[ShouldCancel], RepositorySnapshot]

# Start fetching the next log page when the cursor is this close to the end.
LOG_PREFETCH_ROWS = 8


class ScreenKind(Enum):
    STATUS = "status"
    LOG = "log"
    SHOW = "show"
    REFS = "refs"
    COMMIT_EDITOR = "commit_editor"


@dataclass
class CommitDraft:
    """Message buffer of the commit editor screen."""

    amend: bool = False
    text: str = ""

    def insert(self, text: str) -> None:
        self.text += text

    def backspace(self) -> None:
        self.text = self.text[:-1]

    def clear_line(self) -> None:
        head, sep, _tail = self.text.rpartition("\n")
        self.text = f"{head}{sep}"

    @property
    def message(self) -> str:
        return self.text.strip()

    def lines(self) -> list[str]:
        return self.text.split("\n")


class Screen:
    """One view on the stack: loader, latest snapshot, tree, and cursor state."""

    def __init__(
        self,
        screen_id: int,
        kind: ScreenKind,
        title: str,
        loader: SnapshotLoader,
        *,
        page_size: int = 20,
    ) -> None:
        self.screen_id = screen_id
        self.kind = kind
        self.title = title
        self.loader = loader
        self.snapshot: RepositorySnapshot | None = None
        self.tree = ItemTree()
        self.nav = NavigationEngine(self.tree, page_size=page_size)
        self.scroll = 0
        self.stale = False
        self.refresh_task: TaskHandle | None = None
        self.page_task: TaskHandle | None = None
        self.draft: CommitDraft | None = None
        # Log paging.
        self.rev: str | None = None
        self.log_page_size = 0
        self.commits: list[CommitEntry] = []
        self.log_exhausted = False
        self.more_loader: Callable[[int, ShouldCancel], list[CommitEntry]] | None = None

    @property
    def binding_screen(self) -> str:
        """Screen name used by key bindings."""
        if self.kind is ScreenKind.COMMIT_EDITOR:
            return ScreenKind.STATUS.value
        return self.kind.value

    @property
    def loading(self) -> bool:
        return self.refresh_task is not None

    def load(self, should_cancel: ShouldCancel) -> RepositorySnapshot:
        return self.loader(should_cancel)

    def apply_snapshot(self, snapshot: RepositorySnapshot) -> None:
        """Adopt ``snapshot``; cursor and selection are re-resolved by token."""
        self.snapshot = snapshot
        self.tree = build_item_tree(snapshot)
        self.nav.replace_tree(self.tree)
        self.stale = False
        if self.kind is ScreenKind.LOG:
            self._sync_commits(snapshot)

    def _sync_commits(self, snapshot: RepositorySnapshot) -> None:
        commits: list[CommitEntry] = []
        for section in snapshot.sections:
            commits.extend(entry for entry in section.entries if isinstance(entry, CommitEntry))
        self.commits = commits
        if self.log_page_size and len(commits) % self.log_page_size:
            self.log_exhausted = True

    def op_context(self) -> OpContext:
        focused = self.nav.focused()
        selection = self.nav.current_selection()
        selected = tuple(self.tree.node(token) for token in self.nav.selected_tokens())
        return OpContext(
            screen=self.binding_screen,
            focused=focused,
            selected=selected,
            selection=selection,
            address=self.nav.cursor_address if focused is not None else None,
            snapshot=self.snapshot,
        )

    # Log paging

    def wants_more(self) -> bool:
        if self.kind is not ScreenKind.LOG or self.more_loader is None:
            return False
        if self.log_exhausted or self.page_task is not None or self.refresh_task is not None:
            return False
        rows = self.nav.visible_rows()
        if not rows or self.nav.cursor not in rows:
            return False
        return len(rows) - rows.index(self.nav.cursor) <= LOG_PREFETCH_ROWS

    def load_more(self, should_cancel: ShouldCancel) -> list[CommitEntry]:
        assert self.more_loader is not None
        return self.more_loader(len(self.commits), should_cancel)

    def extend_log(self, page: list[CommitEntry]) -> None:
        """Append one fetched page; a short page marks the history exhausted."""
        if len(page) < self.log_page_size:
            self.log_exhausted = True
        known = {commit.oid for commit in self.commits}
        commits = self.commits + [commit for commit in page if commit.oid not in known]
        exhausted = self.log_exhausted
        self.apply_snapshot(make_log_snapshot(commits, self.rev))
        self.log_exhausted = exhausted

    # Viewport

    def visible_window(self, height: int) -> tuple[list[str], int]:
        """Rows to draw and the index of the first one, keeping the cursor in view."""
        rows = self.nav.visible_rows()
        if height <= 0:
            return rows, 0
        try:
            cursor_index = rows.index(self.nav.cursor)
        except ValueError:
            cursor_index = 0
        if cursor_index < self.scroll:
            self.scroll = cursor_index
        elif cursor_index >= self.scroll + height:
            self.scroll = cursor_index - height + 1
        self.scroll = max(0, min(self.scroll, max(0, len(rows) - height)))
        return rows[self.scroll : self.scroll + height], self.scroll


def new_file_line(hunk: Hunk, line: Line) -> int:
    """Line number of ``line`` (or where it would be) in the post-image."""
    number = hunk.new_start
    for candidate in hunk.lines:
        if candidate.offset >= line.offset:
            break
        if candidate.tag is not LineTag.DELETION:
            number += 1
    return max(1, number)


def edit_location(root: Path, node: ItemNode) -> tuple[Path, int | None] | None:
    """Work-tree file and line to open in ``$EDITOR`` for ``node``."""
    entry: FileEntry | None = node.file
    if entry is None:
        return None
    line: int | None = None
    if isinstance(node.payload, Line) and node.hunk is not None:
        line = new_file_line(node.hunk, node.payload)
    elif node.hunk is not None and not node.hunk.is_raw:
        line = max(1, node.hunk.new_start)
    return root / entry.path, line


# Factories


def status_screen(
    screen_id: int,
    ctx: RepoContext,
    options: SnapshotOptions,
    *,
    runner: ProcessRunner = run_process,
) -> Screen:
    def load(should_cancel: ShouldCancel) -> RepositorySnapshot:
        return build_status_snapshot(ctx, options, runner=runner, should_cancel=should_cancel)

    return Screen(screen_id, ScreenKind.STATUS, ctx.root.name or str(ctx.root), load)


def log_screen(
    screen_id: int,
    ctx: RepoContext,
    options: SnapshotOptions,
    *,
    rev: str | None = None,
    runner: ProcessRunner = run_process,
) -> Screen:
    screen: Screen

    def load(should_cancel: ShouldCancel) -> RepositorySnapshot:
        # A refresh reloads everything already paged in.
        count = max(options.log_page_size, len(screen.commits))
        commits = fetch_log_page(ctx, 0, count, rev=rev, runner=runner, should_cancel=should_cancel)
        return make_log_snapshot(commits, rev)

    def more(skip: int, should_cancel: ShouldCancel) -> list[CommitEntry]:
        return fetch_log_page(ctx, skip, options.log_page_size, rev=rev, runner=runner, should_cancel=should_cancel)

    title = f"Log {rev}" if rev else "Log"
    screen = Screen(screen_id, ScreenKind.LOG, title, load)
    screen.rev = rev
    screen.log_page_size = options.log_page_size
    screen.more_loader = more
    return screen


def show_screen(
    screen_id: int,
    ctx: RepoContext,
    rev: str,
    options: SnapshotOptions,
    *,
    stash: bool = False,
    runner: ProcessRunner = run_process,
) -> Screen:
    def load(should_cancel: ShouldCancel) -> RepositorySnapshot:
        return build_show_snapshot(ctx, rev, options, stash=stash, runner=runner, should_cancel=should_cancel)

    title = f"Stash {rev}" if stash else f"Show {rev[:12]}"
    return Screen(screen_id, ScreenKind.SHOW, title, load)


def refs_screen(screen_id: int, ctx: RepoContext, *, runner: ProcessRunner = run_process) -> Screen:
    def load(should_cancel: ShouldCancel) -> RepositorySnapshot:
        return build_refs_snapshot(ctx, runner=runner, should_cancel=should_cancel)

    return Screen(screen_id, ScreenKind.REFS, "Refs", load)


def commit_editor_screen(
    screen_id: int,
    ctx: RepoContext,
    options: SnapshotOptions,
    *,
    amend: bool = False,
    message: str = "",
    runner: ProcessRunner = run_process,
) -> Screen:
    def load(should_cancel: ShouldCancel) -> RepositorySnapshot:
        return build_staged_snapshot(ctx, options, runner=runner, should_cancel=should_cancel)

    screen = Screen(screen_id, ScreenKind.COMMIT_EDITOR, "Amend commit" if amend else "Commit", load)
    screen.draft = CommitDraft(amend=amend, text=message)
    return screen


__all__ = [
    "CommitDraft",
    "Screen",
    "ScreenKind",
    "SnapshotLoader",
    "commit_editor_screen",
    "edit_location",
    "log_screen",
    "new_file_line",
    "refs_screen",
    "show_screen",
    "status_screen",
]
