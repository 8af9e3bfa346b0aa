"""Snapshot builder tests against a scripted git runner.

The runner answers by subcommand, so these tests exercise section assembly,
ordering, and failure mapping without a real repository.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from lazyrepo.errors import Cancelled, NotARepository
from lazyrepo.git.history import FIELD_SEP
from lazyrepo.git.process import ProcessResult
from lazyrepo.git.repo import RepoContext
from lazyrepo.git.snapshot import (
    SnapshotOptions,
    build_refs_snapshot,
    build_show_snapshot,
    build_status_snapshot,
    fetch_log_page,
    read_commit_message,
)
from lazyrepo.model.types import ChangeKind, RepoState, SectionKind

UNSTAGED_DIFF = (
    "diff --git a/b.txt b/b.txt\n"
    "--- a/b.txt\n"
    "+++ b/b.txt\n"
    "@@ -1 +1 @@\n"
    "-old\n"
    "+new\n"
    "diff --git a/a.txt b/a.txt\n"
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -1 +1 @@\n"
    "-x\n"
    "+y\n"
)
STAGED_DIFF = (
    "diff --git a/s.txt b/s.txt\n"
    "new file mode 100644\n"
    "--- /dev/null\n"
    "+++ b/s.txt\n"
    "@@ -0,0 +1 @@\n"
    "+staged\n"
)


def _log_line(oid: str, subject: str) -> str:
    return FIELD_SEP.join([oid * 40, oid * 7, "", "Ann", "now", subject])


class ScriptedGit:
    """Answers git invocations by their first arguments."""

    def __init__(self, responses: dict[tuple[str, ...], ProcessResult | str]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, ...]] = []

    def __call__(self, argv, cwd, *, stdin=None, env=None, should_cancel=None, timeout_seconds=None):
        args = tuple(argv[3:])
        self.calls.append(args)
        for length in range(len(args), 0, -1):
            response = self.responses.get(args[:length])
            if response is None:
                continue
            if isinstance(response, ProcessResult):
                return response
            return ProcessResult(argv=tuple(argv), returncode=0, stdout=response, stderr="")
        return ProcessResult(argv=tuple(argv), returncode=0, stdout="", stderr="")


class StatusSnapshotTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name).resolve()
        (root / ".git").mkdir()
        self.ctx = RepoContext(root=root, git_dir=root / ".git")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_sections_follow_fixed_order_and_status_file_order(self) -> None:
        status = "\0".join(["## main", " M a.txt", " M b.txt", "A  s.txt", "?? u.txt", ""])
        runner = ScriptedGit(
            {
                ("status",): status,
                ("diff", "--cached"): STAGED_DIFF,
                ("diff",): UNSTAGED_DIFF,
                ("stash",): FIELD_SEP.join(["stash@{0}", "c" * 40, "WIP on main"]) + "\n",
                ("log",): _log_line("1", "first") + "\n",
            }
        )

        snapshot = build_status_snapshot(self.ctx, SnapshotOptions(context_lines=5), runner=runner)

        self.assertEqual(
            [section.kind for section in snapshot.sections],
            [
                SectionKind.UNTRACKED,
                SectionKind.UNSTAGED,
                SectionKind.STAGED,
                SectionKind.STASHES,
                SectionKind.RECENT_COMMITS,
            ],
        )
        unstaged = snapshot.section(SectionKind.UNSTAGED)
        self.assertEqual([entry.path for entry in unstaged.entries], ["a.txt", "b.txt"])
        staged = snapshot.section(SectionKind.STAGED)
        self.assertEqual(staged.entries[0].change, ChangeKind.ADDED)
        untracked = snapshot.section(SectionKind.UNTRACKED)
        self.assertEqual(untracked.entries[0].change, ChangeKind.UNTRACKED)
        self.assertEqual(snapshot.head.branch, "main")
        self.assertEqual(snapshot.repo_state, RepoState.CLEAN)
        self.assertIn(("diff", "--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/", "-U5"), runner.calls)

    def test_clean_repository_omits_empty_sections(self) -> None:
        runner = ScriptedGit({("status",): "## main\0"})

        snapshot = build_status_snapshot(self.ctx, runner=runner)

        self.assertEqual(snapshot.sections, ())

    def test_fully_staged_repository_keeps_empty_unstaged_section(self) -> None:
        runner = ScriptedGit(
            {
                ("status",): "\0".join(["## main", "A  s.txt", ""]),
                ("diff", "--cached"): STAGED_DIFF,
            }
        )

        snapshot = build_status_snapshot(self.ctx, runner=runner)

        self.assertEqual([section.kind for section in snapshot.sections], [SectionKind.UNSTAGED, SectionKind.STAGED])
        self.assertEqual(snapshot.section(SectionKind.UNSTAGED).entries, ())
        self.assertFalse(snapshot.has_entries(SectionKind.UNSTAGED))
        self.assertTrue(snapshot.has_entries(SectionKind.STAGED))

    def test_unborn_branch_skips_stash_and_log_queries(self) -> None:
        runner = ScriptedGit({("status",): "## No commits yet on main\0?? a.txt\0"})

        snapshot = build_status_snapshot(self.ctx, runner=runner)

        self.assertTrue(snapshot.head.unborn)
        self.assertFalse(any(call[0] in {"stash", "log"} for call in runner.calls))
        self.assertEqual(
            [section.kind for section in snapshot.sections],
            [SectionKind.UNTRACKED, SectionKind.UNSTAGED, SectionKind.STAGED],
        )
        self.assertEqual(snapshot.section(SectionKind.STAGED).entries, ())

    def test_status_without_diff_synthesizes_hunkless_entry(self) -> None:
        runner = ScriptedGit({("status",): "## main\0 T link\0"})

        snapshot = build_status_snapshot(self.ctx, runner=runner)

        entry = snapshot.section(SectionKind.UNSTAGED).entries[0]
        self.assertEqual(entry.path, "link")
        self.assertEqual(entry.change, ChangeKind.TYPE_CHANGED)
        self.assertEqual(entry.hunks, ())

    def test_merge_in_progress_is_reported(self) -> None:
        (self.ctx.git_dir / "MERGE_HEAD").write_text("abc\n", encoding="utf-8")
        runner = ScriptedGit({("status",): "## main\0"})

        snapshot = build_status_snapshot(self.ctx, runner=runner)

        self.assertEqual(snapshot.repo_state, RepoState.MERGING)
        self.assertIn("In progress: merging", snapshot.header_lines)

    def test_not_a_repository_failure_is_mapped(self) -> None:
        failure = ProcessResult(argv=(), returncode=128, stdout="", stderr="fatal: not a git repository")
        runner = ScriptedGit({("status",): failure})

        with self.assertRaises(NotARepository):
            build_status_snapshot(self.ctx, runner=runner)

    def test_cancelled_query_raises_cancelled(self) -> None:
        cancelled = ProcessResult(argv=(), returncode=-15, stdout="", stderr="", cancelled=True)
        runner = ScriptedGit({("status",): cancelled})

        with self.assertRaises(Cancelled):
            build_status_snapshot(self.ctx, runner=runner, should_cancel=lambda: True)


class HistorySnapshotTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ctx = RepoContext(root=Path("/repo"), git_dir=Path("/repo/.git"))

    def test_fetch_log_page_passes_skip_count_and_rev(self) -> None:
        runner = ScriptedGit({("log",): _log_line("2", "second") + "\n"})

        commits = fetch_log_page(self.ctx, 256, 10, rev="--all", runner=runner)

        self.assertEqual([commit.subject for commit in commits], ["second"])
        args = runner.calls[0]
        self.assertIn("--skip=256", args)
        self.assertEqual(args[-2:], ("--all", "--"))

    def test_fetch_log_page_on_unborn_branch_is_empty(self) -> None:
        failure = ProcessResult(
            argv=(),
            returncode=128,
            stdout="",
            stderr="fatal: your current branch 'main' does not have any commits yet",
        )
        runner = ScriptedGit({("log",): failure})

        self.assertEqual(fetch_log_page(self.ctx, 0, 10, runner=runner), [])

    def test_read_commit_message_strips_trailing_newlines(self) -> None:
        runner = ScriptedGit({("log", "-1"): "Subject\n\nBody\n\n"})

        self.assertEqual(read_commit_message(self.ctx, runner=runner), "Subject\n\nBody")

    def test_show_snapshot_keeps_commit_header_lines(self) -> None:
        output = "commit abc\nAuthor: Ann <a@x>\n\n    Subject\n\n" + UNSTAGED_DIFF
        runner = ScriptedGit({("show",): output})

        snapshot = build_show_snapshot(self.ctx, "abc", runner=runner)

        self.assertEqual(snapshot.header_lines, ("commit abc", "Author: Ann <a@x>", "", "    Subject"))
        section = snapshot.section(SectionKind.COMMIT_DIFF)
        self.assertEqual([entry.path for entry in section.entries], ["b.txt", "a.txt"])

    def test_refs_snapshot_groups_branches_remotes_and_tags(self) -> None:
        rows = "\n".join(
            [
                FIELD_SEP.join(["refs/heads/main", "main", "*", "1111111", ""]),
                FIELD_SEP.join(["refs/remotes/origin/main", "origin/main", " ", "1111111", ""]),
                FIELD_SEP.join(["refs/tags/v1", "v1", " ", "2222222", ""]),
            ]
        )
        runner = ScriptedGit({("for-each-ref",): rows, ("symbolic-ref",): "refs/heads/main\n"})

        snapshot = build_refs_snapshot(self.ctx, runner=runner)

        kinds = [section.kind for section in snapshot.sections]
        self.assertEqual(kinds, [SectionKind.BRANCHES, SectionKind.REMOTE, SectionKind.TAGS])
        self.assertEqual(snapshot.sections[1].key, "origin")


if __name__ == "__main__":
    unittest.main()
