"""Git subprocess boundary: process runner, output parsers, snapshot builders.

This package contains everything that talks to the ``git`` executable:
- process execution with process-group cancellation
- repository resolution and the explicit ``RepoContext``
- diff, porcelain status, log/stash/ref parsers
- snapshot builders and git-dir watch signatures
"""

from __future__ import annotations

from .process import ProcessResult, ProcessRunner, run_process
from .repo import RepoContext, resolve_repo
from .diff_parser import parse_diff, unquote_path
from .status import StatusRecord, StatusReport, parse_porcelain_status
from .snapshot import (
    SnapshotOptions,
    build_log_snapshot,
    build_refs_snapshot,
    build_show_snapshot,
    build_status_snapshot,
    fetch_log_page,
)
from .watch import GitWatcher, build_git_watch_signature

__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "run_process",
    "RepoContext",
    "resolve_repo",
    "parse_diff",
    "unquote_path",
    "StatusRecord",
    "StatusReport",
    "parse_porcelain_status",
    "SnapshotOptions",
    "build_status_snapshot",
    "build_log_snapshot",
    "build_show_snapshot",
    "build_refs_snapshot",
    "fetch_log_page",
    "GitWatcher",
    "build_git_watch_signature",
]
