"""Repository snapshot builders.

Each builder runs a fixed sequence of read-only git queries and assembles an
immutable ``RepositorySnapshot``. Nothing here mutates the repository.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from ..errors import Cancelled, NotARepository, ToolUnavailable
from ..model.types import (
    ChangeKind,
    CommitEntry,
    FileEntry,
    HeadInfo,
    RefEntry,
    RefKind,
    RepoState,
    RepositorySnapshot,
    Section,
    SectionKind,
)
from .diff_parser import parse_diff, split_file_blocks
from .history import LOG_FORMAT, REF_FORMAT, REF_PATTERNS, STASH_FORMAT, parse_log, parse_refs, parse_stash_list
from .process import ProcessRunner, run_process
from .repo import RepoContext
from .status import StatusRecord, parse_porcelain_status

logger = logging.getLogger(__name__)

DIFF_FLAGS = ("--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/")
SHOW_FORMAT = "--format=commit %H%nAuthor: %an <%ae>%nDate:   %ad%n%n%w(0,4,4)%B"
SECTION_TITLES = {
    SectionKind.UNTRACKED: "Untracked files",
    SectionKind.UNSTAGED: "Unstaged changes",
    SectionKind.UNMERGED: "Unmerged",
    SectionKind.STAGED: "Staged changes",
    SectionKind.STASHES: "Stashes",
    SectionKind.RECENT_COMMITS: "Recent commits",
    SectionKind.LOG: "Log",
    SectionKind.COMMIT_DIFF: "Changes",
    SectionKind.BRANCHES: "Branches",
    SectionKind.TAGS: "Tags",
}
_NO_COMMITS_MARKERS = ("does not have any commits yet", "bad default revision", "unknown revision")


@dataclass(frozen=True)
class SnapshotOptions:
    context_lines: int = 3
    recent_commits: int = 10
    log_page_size: int = 256


def _query(
    ctx: RepoContext,
    args: Sequence[str],
    runner: ProcessRunner,
    should_cancel: Callable[[], bool] | None,
    *,
    allow_failure: Iterable[str] = (),
) -> str | None:
    """Run one read-only query and return stdout.

    Returns ``None`` when the failure message matches ``allow_failure``.
    """
    result = ctx.git(args, runner=runner, should_cancel=should_cancel)
    if result.cancelled:
        raise Cancelled(" ".join(args))
    if result.returncode == 0:
        return result.stdout
    stderr = result.stderr.strip()
    if "not a git repository" in stderr:
        raise NotARepository(ctx.root)
    if any(marker in stderr for marker in allow_failure):
        return None
    raise ToolUnavailable(f"git {' '.join(args)} exited with status {result.returncode}: {stderr}")


def read_repo_state(ctx: RepoContext) -> RepoState:
    git_dir = ctx.git_dir
    if (git_dir / "rebase-merge").is_dir() or (git_dir / "rebase-apply").is_dir():
        return RepoState.REBASING
    if (git_dir / "MERGE_HEAD").exists():
        return RepoState.MERGING
    if (git_dir / "CHERRY_PICK_HEAD").exists():
        return RepoState.CHERRY_PICKING
    if (git_dir / "REVERT_HEAD").exists():
        return RepoState.REVERTING
    return RepoState.CLEAN


def _order_entries(
    records: Iterable[StatusRecord],
    diff_entries: Sequence[FileEntry],
    change_for: Callable[[StatusRecord], ChangeKind],
) -> tuple[FileEntry, ...]:
    """Order diff entries by status appearance, synthesizing hunkless ones."""
    by_path = {entry.path: entry for entry in diff_entries}
    ordered: list[FileEntry] = []
    used: set[str] = set()
    for record in records:
        entry = by_path.get(record.path)
        if entry is None:
            entry = FileEntry(path=record.path, change=change_for(record), old_path=record.orig_path)
        if entry.path in used:
            continue
        used.add(entry.path)
        ordered.append(entry)
    for entry in diff_entries:
        if entry.path not in used:
            used.add(entry.path)
            ordered.append(entry)
    return tuple(ordered)


def _file_section(kind: SectionKind, entries: tuple[FileEntry, ...], *, keep_empty: bool = False) -> Section | None:
    if not entries and not keep_empty:
        return None
    return Section(kind=kind, title=SECTION_TITLES[kind], entries=entries)


def _status_header(head: HeadInfo, state: RepoState) -> tuple[str, ...]:
    lines = [f"Head: {head.describe()}"]
    if state is not RepoState.CLEAN:
        lines.append(f"In progress: {state.value}")
    return tuple(lines)


def build_status_snapshot(
    ctx: RepoContext,
    options: SnapshotOptions = SnapshotOptions(),
    *,
    runner: ProcessRunner = run_process,
    should_cancel: Callable[[], bool] | None = None,
) -> RepositorySnapshot:
    """Build the status screen snapshot."""
    context = f"-U{max(0, options.context_lines)}"
    status_out = _query(
        ctx,
        ["status", "--porcelain=v1", "-z", "--branch", "--untracked-files=normal"],
        runner,
        should_cancel,
    )
    report = parse_porcelain_status(status_out or "")
    unstaged_out = _query(ctx, ["diff", *DIFF_FLAGS, context], runner, should_cancel) or ""
    staged_out = _query(ctx, ["diff", "--cached", *DIFF_FLAGS, context], runner, should_cancel) or ""

    unstaged_all = parse_diff(unstaged_out)
    unstaged_files = [entry for entry in unstaged_all if not entry.is_combined]
    combined_files = [entry for entry in unstaged_all if entry.is_combined]
    staged_files = [entry for entry in parse_diff(staged_out) if not entry.is_combined]

    records = report.records
    untracked = tuple(
        FileEntry(path=record.path, change=ChangeKind.UNTRACKED) for record in records if record.is_untracked
    )
    unstaged = _order_entries(
        (record for record in records if record.is_unstaged),
        unstaged_files,
        StatusRecord.worktree_change,
    )
    unmerged = _order_entries(
        (record for record in records if record.is_unmerged),
        combined_files,
        lambda _record: ChangeKind.UNMERGED,
    )
    staged = _order_entries(
        (record for record in records if record.is_staged),
        staged_files,
        StatusRecord.index_change,
    )

    # A dirty repository always shows both Unstaged and Staged, even when one is empty.
    dirty = bool(untracked or unstaged or unmerged or staged)
    sections = [
        _file_section(SectionKind.UNTRACKED, untracked),
        _file_section(SectionKind.UNSTAGED, unstaged, keep_empty=dirty),
        _file_section(SectionKind.UNMERGED, unmerged),
        _file_section(SectionKind.STAGED, staged, keep_empty=dirty),
    ]

    if not report.head.unborn:
        stash_out = _query(ctx, ["stash", "list", f"--format={STASH_FORMAT}"], runner, should_cancel) or ""
        stashes = tuple(parse_stash_list(stash_out))
        if stashes:
            sections.append(Section(SectionKind.STASHES, SECTION_TITLES[SectionKind.STASHES], stashes))
        commits = tuple(fetch_log_page(ctx, 0, options.recent_commits, runner=runner, should_cancel=should_cancel))
        if commits:
            sections.append(
                Section(SectionKind.RECENT_COMMITS, SECTION_TITLES[SectionKind.RECENT_COMMITS], commits)
            )

    state = read_repo_state(ctx)
    snapshot = RepositorySnapshot(
        sections=tuple(section for section in sections if section is not None),
        head=report.head,
        repo_state=state,
        header_lines=_status_header(report.head, state),
    )
    logger.debug(
        "status snapshot: %s",
        ", ".join(f"{section.kind.value}={len(section.entries)}" for section in snapshot.sections) or "clean",
    )
    return snapshot


def fetch_log_page(
    ctx: RepoContext,
    skip: int,
    count: int,
    *,
    rev: str | None = None,
    runner: ProcessRunner = run_process,
    should_cancel: Callable[[], bool] | None = None,
) -> list[CommitEntry]:
    """Return up to ``count`` commits after skipping ``skip``; empty on an unborn branch."""
    if count <= 0:
        return []
    args = ["log", f"--format={LOG_FORMAT}", f"--skip={max(0, skip)}", "-n", str(count)]
    if rev:
        args.extend([rev, "--"])
    output = _query(ctx, args, runner, should_cancel, allow_failure=_NO_COMMITS_MARKERS)
    return parse_log(output or "")


def make_log_snapshot(commits: Sequence[CommitEntry], rev: str | None = None) -> RepositorySnapshot:
    title = f"Log {rev}" if rev else SECTION_TITLES[SectionKind.LOG]
    sections = (Section(SectionKind.LOG, title, tuple(commits)),) if commits else ()
    return RepositorySnapshot(sections=sections)


def build_log_snapshot(
    ctx: RepoContext,
    options: SnapshotOptions = SnapshotOptions(),
    *,
    count: int | None = None,
    rev: str | None = None,
    runner: ProcessRunner = run_process,
    should_cancel: Callable[[], bool] | None = None,
) -> RepositorySnapshot:
    """Build a log snapshot holding the first ``count`` commits (one page by default)."""
    limit = options.log_page_size if count is None else count
    commits = fetch_log_page(ctx, 0, limit, rev=rev, runner=runner, should_cancel=should_cancel)
    return make_log_snapshot(commits, rev)


def build_show_snapshot(
    ctx: RepoContext,
    rev: str,
    options: SnapshotOptions = SnapshotOptions(),
    *,
    stash: bool = False,
    runner: ProcessRunner = run_process,
    should_cancel: Callable[[], bool] | None = None,
) -> RepositorySnapshot:
    """Build a snapshot of one commit's (or stash's) diff."""
    context = f"-U{max(0, options.context_lines)}"
    if stash:
        args = ["stash", "show", "-p", *DIFF_FLAGS, context, rev]
    else:
        args = ["show", SHOW_FORMAT, *DIFF_FLAGS, context, rev, "--"]
    output = _query(ctx, args, runner, should_cancel) or ""
    preamble, _blocks = split_file_blocks(output)
    files = tuple(parse_diff(output))

    header = list(preamble)
    while header and not header[-1].strip():
        header.pop()
    if stash:
        header.insert(0, f"Stash {rev}")

    sections = (Section(SectionKind.COMMIT_DIFF, SECTION_TITLES[SectionKind.COMMIT_DIFF], files),) if files else ()
    return RepositorySnapshot(sections=sections, header_lines=tuple(header))


def build_staged_snapshot(
    ctx: RepoContext,
    options: SnapshotOptions = SnapshotOptions(),
    *,
    runner: ProcessRunner = run_process,
    should_cancel: Callable[[], bool] | None = None,
) -> RepositorySnapshot:
    """Staged changes only, as shown under the commit message editor."""
    context = f"-U{max(0, options.context_lines)}"
    output = _query(ctx, ["diff", "--cached", *DIFF_FLAGS, context], runner, should_cancel) or ""
    files = tuple(entry for entry in parse_diff(output) if not entry.is_combined)
    sections = (Section(SectionKind.STAGED, SECTION_TITLES[SectionKind.STAGED], files),) if files else ()
    return RepositorySnapshot(sections=sections)


def read_commit_message(
    ctx: RepoContext,
    rev: str = "HEAD",
    *,
    runner: ProcessRunner = run_process,
) -> str:
    """Full message of ``rev``; empty when the branch has no commits."""
    output = _query(ctx, ["log", "-1", "--format=%B", rev, "--"], runner, None, allow_failure=_NO_COMMITS_MARKERS)
    return (output or "").rstrip("\n")


def build_refs_snapshot(
    ctx: RepoContext,
    *,
    runner: ProcessRunner = run_process,
    should_cancel: Callable[[], bool] | None = None,
) -> RepositorySnapshot:
    """Build the refs screen: branches, one section per remote, then tags."""
    output = _query(ctx, ["for-each-ref", f"--format={REF_FORMAT}", *REF_PATTERNS], runner, should_cancel) or ""
    refs = parse_refs(output)

    branches: list[RefEntry] = []
    symbolic = ctx.git(["symbolic-ref", "-q", "HEAD"], runner=runner, should_cancel=should_cancel)
    if symbolic.returncode != 0 and not symbolic.cancelled:
        short = _query(ctx, ["rev-parse", "--short", "HEAD"], runner, should_cancel, allow_failure=_NO_COMMITS_MARKERS)
        if short:
            branches.append(
                RefEntry(
                    name="HEAD",
                    short_name=f"(HEAD detached at {short.strip()})",
                    kind=RefKind.LOCAL,
                    is_head=True,
                    short_oid=short.strip(),
                )
            )
    branches.extend(ref for ref in refs if ref.kind is RefKind.LOCAL)

    remotes: dict[str, list[RefEntry]] = {}
    for ref in refs:
        if ref.kind is RefKind.REMOTE:
            remotes.setdefault(ref.remote, []).append(ref)
    tags = tuple(ref for ref in refs if ref.kind is RefKind.TAG)

    sections: list[Section] = []
    if branches:
        sections.append(Section(SectionKind.BRANCHES, SECTION_TITLES[SectionKind.BRANCHES], tuple(branches)))
    for remote, entries in remotes.items():
        sections.append(Section(SectionKind.REMOTE, f"Remote {remote}", tuple(entries), key=remote))
    if tags:
        sections.append(Section(SectionKind.TAGS, SECTION_TITLES[SectionKind.TAGS], tags))
    return RepositorySnapshot(sections=tuple(sections))


__all__ = [
    "DIFF_FLAGS",
    "SnapshotOptions",
    "build_log_snapshot",
    "build_refs_snapshot",
    "build_show_snapshot",
    "build_staged_snapshot",
    "build_status_snapshot",
    "fetch_log_page",
    "make_log_snapshot",
    "read_commit_message",
    "read_repo_state",
]
