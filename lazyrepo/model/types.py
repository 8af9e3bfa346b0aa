"""Immutable snapshot datatypes and the closed item-kind set.

Everything here is produced by the git layer and consumed read-only by the
tree model, dispatcher, and renderer.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum

from ..errors import ParseError

Address = tuple[str, ...]


class SectionKind(Enum):
    UNTRACKED = "untracked"
    UNSTAGED = "unstaged"
    STAGED = "staged"
    UNMERGED = "unmerged"
    STASHES = "stashes"
    RECENT_COMMITS = "recent_commits"
    LOG = "log"
    COMMIT_DIFF = "commit_diff"
    BRANCHES = "branches"
    REMOTE = "remote"
    TAGS = "tags"


FILE_SECTION_KINDS = frozenset(
    {
        SectionKind.UNTRACKED,
        SectionKind.UNSTAGED,
        SectionKind.STAGED,
        SectionKind.UNMERGED,
        SectionKind.COMMIT_DIFF,
    }
)


class ChangeKind(Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "type changed"
    UNMERGED = "unmerged"
    UNTRACKED = "untracked"


class LineTag(Enum):
    CONTEXT = " "
    ADDITION = "+"
    DELETION = "-"


class RepoState(Enum):
    CLEAN = "clean"
    MERGING = "merging"
    REBASING = "rebasing"
    CHERRY_PICKING = "cherry-picking"
    REVERTING = "reverting"


class RefKind(Enum):
    LOCAL = "local"
    REMOTE = "remote"
    TAG = "tag"


class Granularity(Enum):
    FILE = "file"
    HUNK = "hunk"
    LINE = "line"


class ItemKind(Enum):
    """Every kind of node that can appear in an item tree."""

    HEADER = "header"
    SECTION = "section"
    UNTRACKED_FILE = "untracked_file"
    UNSTAGED_FILE = "unstaged_file"
    STAGED_FILE = "staged_file"
    UNMERGED_FILE = "unmerged_file"
    UNSTAGED_HUNK = "unstaged_hunk"
    STAGED_HUNK = "staged_hunk"
    CONFLICT_HUNK = "conflict_hunk"
    RAW_HUNK = "raw_hunk"
    UNSTAGED_LINE = "unstaged_line"
    STAGED_LINE = "staged_line"
    DIFF_FILE = "diff_file"
    DIFF_HUNK = "diff_hunk"
    DIFF_LINE = "diff_line"
    COMMIT = "commit"
    STASH = "stash"
    BRANCH = "branch"
    REMOTE_BRANCH = "remote_branch"
    TAG = "tag"


FILE_ITEM_KINDS = frozenset(
    {
        ItemKind.UNTRACKED_FILE,
        ItemKind.UNSTAGED_FILE,
        ItemKind.STAGED_FILE,
        ItemKind.UNMERGED_FILE,
        ItemKind.DIFF_FILE,
    }
)
HUNK_ITEM_KINDS = frozenset(
    {
        ItemKind.UNSTAGED_HUNK,
        ItemKind.STAGED_HUNK,
        ItemKind.CONFLICT_HUNK,
        ItemKind.RAW_HUNK,
        ItemKind.DIFF_HUNK,
    }
)
LINE_ITEM_KINDS = frozenset({ItemKind.UNSTAGED_LINE, ItemKind.STAGED_LINE, ItemKind.DIFF_LINE})


def short_digest(*parts: str) -> str:
    """Return a short hex blake2b digest over ``parts``."""
    digest = hashlib.blake2b(digest_size=8)
    for part in parts:
        digest.update(part.encode("utf-8", errors="surrogateescape"))
        digest.update(b"\0")
    return digest.hexdigest()


@dataclass(frozen=True)
class Line:
    tag: LineTag
    text: str
    offset: int
    hunk_token: str = ""
    missing_newline: bool = False

    @property
    def token(self) -> str:
        return f"{self.hunk_token}:{self.offset}{self.tag.value}{short_digest(self.text)}"

    @property
    def is_change(self) -> bool:
        return self.tag is not LineTag.CONTEXT


@dataclass(frozen=True)
class Hunk:
    """One ``@@`` block; ``parse_error`` marks a raw fallback."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section_text: str
    lines: tuple[Line, ...]
    token: str
    is_conflict: bool = False
    parse_error: ParseError | None = field(default=None, compare=False)
    raw_text: str = ""

    @property
    def is_raw(self) -> bool:
        return self.parse_error is not None

    @property
    def header(self) -> str:
        if self.is_raw:
            return self.raw_text.split("\n", 1)[0]
        header = f"@@ -{format_range(self.old_start, self.old_count)} +{format_range(self.new_start, self.new_count)} @@"
        if self.section_text:
            header = f"{header} {self.section_text}"
        return header

    @property
    def has_changes(self) -> bool:
        return any(line.is_change for line in self.lines)


def format_range(start: int, count: int) -> str:
    """Format a hunk range the way git does (``start`` alone when count is 1)."""
    if count == 1:
        return str(start)
    return f"{start},{count}"


@dataclass(frozen=True)
class FileEntry:
    path: str
    change: ChangeKind
    old_path: str | None = None
    hunks: tuple[Hunk, ...] = ()
    is_binary: bool = False
    header_lines: tuple[str, ...] = ()
    is_combined: bool = False
    old_mode: str | None = None
    new_mode: str | None = None

    @property
    def display_path(self) -> str:
        if self.old_path and self.old_path != self.path:
            return f"{self.old_path} -> {self.path}"
        return self.path


@dataclass(frozen=True)
class CommitEntry:
    oid: str
    short_oid: str
    refs: tuple[str, ...]
    author: str
    date: str
    subject: str


@dataclass(frozen=True)
class StashEntry:
    ref: str
    index: int
    oid: str
    subject: str


@dataclass(frozen=True)
class RefEntry:
    name: str
    short_name: str
    kind: RefKind
    is_head: bool = False
    short_oid: str = ""
    upstream: str = ""
    remote: str = ""


@dataclass(frozen=True)
class HeadInfo:
    branch: str | None = None
    detached: bool = False
    unborn: bool = False
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0

    def describe(self) -> str:
        if self.detached:
            return "HEAD (detached)"
        name = self.branch or "HEAD"
        if self.unborn:
            return f"{name} (no commits yet)"
        parts = [name]
        if self.upstream:
            parts.append(f"-> {self.upstream}")
        if self.ahead:
            parts.append(f"ahead {self.ahead}")
        if self.behind:
            parts.append(f"behind {self.behind}")
        return " ".join(parts)


SectionEntry = FileEntry | CommitEntry | StashEntry | RefEntry


@dataclass(frozen=True)
class Section:
    kind: SectionKind
    title: str
    entries: tuple[SectionEntry, ...]
    key: str = ""

    @property
    def token(self) -> str:
        if self.key:
            return f"{self.kind.value}:{self.key}"
        return self.kind.value


@dataclass(frozen=True)
class RepositorySnapshot:
    sections: tuple[Section, ...]
    head: HeadInfo = HeadInfo()
    repo_state: RepoState = RepoState.CLEAN
    header_lines: tuple[str, ...] = ()

    def section(self, kind: SectionKind) -> Section | None:
        for section in self.sections:
            if section.kind is kind:
                return section
        return None

    def has_entries(self, kind: SectionKind) -> bool:
        section = self.section(kind)
        return section is not None and bool(section.entries)


@dataclass(frozen=True)
class Selection:
    addresses: frozenset[Address]
    granularity: Granularity


__all__ = [
    "Address",
    "ChangeKind",
    "CommitEntry",
    "FILE_ITEM_KINDS",
    "FILE_SECTION_KINDS",
    "FileEntry",
    "Granularity",
    "HUNK_ITEM_KINDS",
    "HeadInfo",
    "Hunk",
    "ItemKind",
    "LINE_ITEM_KINDS",
    "Line",
    "LineTag",
    "RefEntry",
    "RefKind",
    "RepoState",
    "RepositorySnapshot",
    "Section",
    "SectionEntry",
    "SectionKind",
    "Selection",
    "StashEntry",
    "format_range",
    "short_digest",
]
