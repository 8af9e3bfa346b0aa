"""Git-dir watch signatures.

Computes cheap hashes over git control files for poll-based refreshes.
The runtime compares successive signatures to decide when to rebuild the
status snapshot.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

WATCHED_CONTROL_FILES = (
    "index",
    "MERGE_HEAD",
    "CHERRY_PICK_HEAD",
    "REVERT_HEAD",
    "REBASE_HEAD",
    "ORIG_HEAD",
    "packed-refs",
    "refs/stash",
    "logs/refs/stash",
)


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def _path_stat_signature(path: Path) -> tuple[str, int, int, int]:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_mode)


def build_git_watch_signature(git_dir: Path) -> str:
    """Build a digest over git metadata that signals status-relevant changes."""
    digest = hashlib.blake2b(digest_size=20)
    git_dir = git_dir.resolve()
    _update_digest(digest, f"git_dir:{git_dir}")

    def add_path_token(label: str, path: Path) -> None:
        state, mtime_ns, size, mode = _path_stat_signature(path)
        _update_digest(digest, f"{label}:{state}:{mtime_ns}:{size}:{mode}")

    head_path = git_dir / "HEAD"
    add_path_token("head", head_path)
    ref_name = ""
    try:
        head_text = head_path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        head_text = ""
    if head_text.startswith("ref: "):
        ref_name = head_text[5:].strip()
    _update_digest(digest, f"head_ref:{ref_name}")
    if ref_name:
        add_path_token("head_ref_file", git_dir / ref_name)

    for name in WATCHED_CONTROL_FILES:
        add_path_token(name, git_dir / name)
    add_path_token("rebase_merge", git_dir / "rebase-merge")
    add_path_token("rebase_apply", git_dir / "rebase-apply")

    return digest.hexdigest()


class GitWatcher:
    """Poll-driven change detector over a git dir.

    ``poll(now)`` returns ``True`` when the signature changed, or when
    ``fallback_seconds`` elapsed since the last reported change so worktree
    edits (which never touch the git dir) are still picked up.
    """

    def __init__(self, git_dir: Path, poll_seconds: float = 1.0, fallback_seconds: float = 5.0) -> None:
        self.git_dir = git_dir
        self.poll_seconds = poll_seconds
        self.fallback_seconds = fallback_seconds
        self._signature = build_git_watch_signature(git_dir)
        self._last_poll = 0.0
        self._last_change = 0.0

    def reset(self, now: float) -> None:
        """Record the current state as seen, e.g. after an explicit refresh."""
        self._signature = build_git_watch_signature(self.git_dir)
        self._last_poll = now
        self._last_change = now

    def poll(self, now: float) -> bool:
        if now - self._last_poll < self.poll_seconds:
            return False
        self._last_poll = now
        signature = build_git_watch_signature(self.git_dir)
        if signature != self._signature:
            self._signature = signature
            self._last_change = now
            return True
        if self.fallback_seconds > 0 and now - self._last_change >= self.fallback_seconds:
            self._last_change = now
            return True
        return False


__all__ = [
    "GitWatcher",
    "build_git_watch_signature",
]
