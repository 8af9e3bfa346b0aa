"""Porcelain status parsing.

Reads ``git status --porcelain=v1 -z --branch`` output into head information
and per-path index/worktree codes, preserving the order git reports them in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..model.types import ChangeKind, HeadInfo

UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
_AHEAD_BEHIND_RE = re.compile(r"\[(.*)\]$")

_CODE_CHANGE = {
    "A": ChangeKind.ADDED,
    "M": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
    "R": ChangeKind.RENAMED,
    "C": ChangeKind.COPIED,
    "T": ChangeKind.TYPE_CHANGED,
}


@dataclass(frozen=True)
class StatusRecord:
    """One porcelain entry: two-letter code, path, and rename source."""

    code: str
    path: str
    orig_path: str | None = None

    @property
    def index_code(self) -> str:
        return self.code[0]

    @property
    def worktree_code(self) -> str:
        return self.code[1]

    @property
    def is_untracked(self) -> bool:
        return self.code == "??"

    @property
    def is_ignored(self) -> bool:
        return self.code == "!!"

    @property
    def is_unmerged(self) -> bool:
        return self.code in UNMERGED_CODES

    @property
    def is_staged(self) -> bool:
        return not (self.is_untracked or self.is_ignored or self.is_unmerged) and self.index_code not in {" ", "?"}

    @property
    def is_unstaged(self) -> bool:
        return not (self.is_untracked or self.is_ignored or self.is_unmerged) and self.worktree_code != " "

    def index_change(self) -> ChangeKind:
        return _CODE_CHANGE.get(self.index_code, ChangeKind.MODIFIED)

    def worktree_change(self) -> ChangeKind:
        return _CODE_CHANGE.get(self.worktree_code, ChangeKind.MODIFIED)


@dataclass(frozen=True)
class StatusReport:
    head: HeadInfo
    records: tuple[StatusRecord, ...]


def parse_branch_header(header: str) -> HeadInfo:
    """Parse the ``## ...`` branch line (without the leading ``## ``)."""
    for prefix in ("No commits yet on ", "Initial commit on "):
        if header.startswith(prefix):
            return HeadInfo(branch=header[len(prefix) :].strip(), unborn=True)
    if header.startswith("HEAD (no branch)"):
        return HeadInfo(detached=True)

    ahead = behind = 0
    counts = _AHEAD_BEHIND_RE.search(header)
    if counts is not None:
        header = header[: counts.start()].rstrip()
        for part in counts.group(1).split(","):
            word, _, number = part.strip().partition(" ")
            if word == "ahead" and number.isdigit():
                ahead = int(number)
            elif word == "behind" and number.isdigit():
                behind = int(number)

    branch, sep, upstream = header.partition("...")
    return HeadInfo(
        branch=branch.strip() or None,
        upstream=upstream.strip() if sep and upstream.strip() else None,
        ahead=ahead,
        behind=behind,
    )


def parse_porcelain_status(output: str) -> StatusReport:
    """Parse NUL-separated porcelain v1 output into a ``StatusReport``."""
    head = HeadInfo()
    records: list[StatusRecord] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if not token:
            continue
        if token.startswith("## "):
            head = parse_branch_header(token[3:])
            continue
        if len(token) < 4:
            continue

        code = token[:2]
        path = token[3:]
        orig_path = None
        # Renamed/copied entries carry the source path as an extra token.
        if "R" in code or "C" in code:
            if index < len(tokens):
                orig_path = tokens[index] or None
            index += 1
        records.append(StatusRecord(code=code, path=path, orig_path=orig_path))

    return StatusReport(head=head, records=tuple(records))


__all__ = [
    "StatusRecord",
    "StatusReport",
    "UNMERGED_CODES",
    "parse_branch_header",
    "parse_porcelain_status",
]
