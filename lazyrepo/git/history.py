"""Parsers for log, stash list, and ref listings."""

from __future__ import annotations

from ..model.types import CommitEntry, RefEntry, RefKind, StashEntry

FIELD_SEP = "\x1f"
LOG_FORMAT = "%H%x1f%h%x1f%D%x1f%an%x1f%ar%x1f%s"
STASH_FORMAT = "%gd%x1f%H%x1f%gs"
REF_FORMAT = "%(refname)%1f%(refname:short)%1f%(HEAD)%1f%(objectname:short)%1f%(upstream:short)"
REF_PATTERNS = ("refs/heads", "refs/remotes", "refs/tags")


def parse_log(output: str) -> list[CommitEntry]:
    commits: list[CommitEntry] = []
    for line in output.splitlines():
        fields = line.split(FIELD_SEP)
        if len(fields) < 6:
            continue
        oid, short_oid, decorations, author, date = fields[:5]
        subject = FIELD_SEP.join(fields[5:])
        refs = tuple(ref.strip() for ref in decorations.split(",") if ref.strip())
        commits.append(
            CommitEntry(
                oid=oid,
                short_oid=short_oid,
                refs=refs,
                author=author,
                date=date,
                subject=subject,
            )
        )
    return commits


def parse_stash_list(output: str) -> list[StashEntry]:
    stashes: list[StashEntry] = []
    for line in output.splitlines():
        fields = line.split(FIELD_SEP)
        if len(fields) < 3:
            continue
        ref, oid, subject = fields[0], fields[1], FIELD_SEP.join(fields[2:])
        index = -1
        if ref.startswith("stash@{") and ref.endswith("}"):
            inner = ref[len("stash@{") : -1]
            if inner.isdigit():
                index = int(inner)
        stashes.append(StashEntry(ref=ref, index=index, oid=oid, subject=subject))
    return stashes


def parse_refs(output: str) -> list[RefEntry]:
    """Parse ``for-each-ref`` output; symbolic ``<remote>/HEAD`` refs are skipped."""
    refs: list[RefEntry] = []
    for line in output.splitlines():
        fields = line.split(FIELD_SEP)
        if len(fields) < 5:
            continue
        name, short_name, head_marker, short_oid, upstream = fields[:5]
        remote = ""
        if name.startswith("refs/heads/"):
            kind = RefKind.LOCAL
        elif name.startswith("refs/remotes/"):
            kind = RefKind.REMOTE
            remote_and_branch = name[len("refs/remotes/") :]
            remote, _, branch = remote_and_branch.partition("/")
            if branch == "HEAD" or not branch:
                continue
        elif name.startswith("refs/tags/"):
            kind = RefKind.TAG
        else:
            continue
        refs.append(
            RefEntry(
                name=name,
                short_name=short_name,
                kind=kind,
                is_head=head_marker.strip() == "*",
                short_oid=short_oid,
                upstream=upstream,
                remote=remote,
            )
        )
    return refs


__all__ = [
    "LOG_FORMAT",
    "REF_FORMAT",
    "REF_PATTERNS",
    "STASH_FORMAT",
    "parse_log",
    "parse_refs",
    "parse_stash_list",
]
