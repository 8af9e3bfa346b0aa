"""Every contiguous line selection of a hunk, applied to a real index.

Applying a selection and then whatever is left, in either order, must leave
the index exactly where applying the whole hunk does. Fixtures cover a mixed
hunk, an added file and a last line without a trailing newline.
"""

from __future__ import annotations

import shutil
import subprocess
import tempfile
import unittest
from dataclasses import dataclass
from pathlib import Path

from lazyrepo.commands.patch import build_file_patch, build_partial_patch
from lazyrepo.git.diff_parser import parse_diff
from lazyrepo.git.repo import RepoContext
from lazyrepo.git.snapshot import DIFF_FLAGS
from lazyrepo.model.types import FileEntry


@dataclass(frozen=True)
class Fixture:
    name: str
    old: bytes | None
    new: bytes
    # Whether the lines left over must match the unapplied selection exactly.
    exact: bool = True


FIXTURES = (
    Fixture(
        "mixed.txt",
        old=b"keep1\nold-a\nold-b\nkeep2\nold-c\nkeep3\n",
        new=b"keep1\nnew-a\nkeep2\nnew-b\nnew-c\nkeep3\n",
    ),
    Fixture("added.txt", old=None, new=b"first\nsecond\nthird\n"),
    Fixture("tail.txt", old=b"one\ntwo\nthree", new=b"one\nTWO\nthree\nfour", exact=False),
)


def _git(root: Path, *args: str, stdin: bytes | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(["git", *args], cwd=root, input=stdin, capture_output=True)


def _contiguous_runs(count: int) -> list[range]:
    return [range(start, end) for start in range(count) for end in range(start + 1, count + 1)]


def _changes(entries: list[FileEntry]) -> list[tuple[str, str]]:
    return sorted((line.tag.value, line.text) for entry in entries for hunk in entry.hunks for line in hunk.lines if line.is_change)


@unittest.skipIf(shutil.which("git") is None, "git is required for line selection sweeps")
class LineSelectionSweepTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _repo(self, fixture: Fixture) -> RepoContext:
        root = self.base / fixture.name.replace(".", "-")
        root.mkdir()
        for args in (
            ("init", "-q"),
            ("config", "user.email", "tests@example.com"),
            ("config", "user.name", "Tests"),
            ("config", "commit.gpgsign", "false"),
            ("config", "core.autocrlf", "false"),
        ):
            self.assertEqual(_git(root, *args).returncode, 0)
        (root / "README").write_bytes(b"sweep\n")
        if fixture.old is not None:
            (root / fixture.name).write_bytes(fixture.old)
        _git(root, "add", "-A")
        self.assertEqual(_git(root, "commit", "-q", "-m", "base").returncode, 0)
        (root / fixture.name).write_bytes(fixture.new)
        return RepoContext(root=root, git_dir=root / ".git")

    def _reset(self, ctx: RepoContext, fixture: Fixture, *, staged: bool) -> None:
        self.assertEqual(_git(ctx.root, "reset", "-q").returncode, 0)
        if staged:
            self.assertEqual(_git(ctx.root, "add", "--", fixture.name).returncode, 0)
        elif fixture.old is None:
            self.assertEqual(_git(ctx.root, "add", "-N", "--", fixture.name).returncode, 0)

    def _diff(self, ctx: RepoContext, fixture: Fixture, *, staged: bool) -> list[FileEntry]:
        args = ["diff", *(["--cached"] if staged else []), *DIFF_FLAGS, "-U3", "--", fixture.name]
        result = ctx.git(args)
        self.assertTrue(result.ok, result.stderr)
        return parse_diff(result.stdout)

    def _apply(self, ctx: RepoContext, patch: str, *, reverse: bool) -> None:
        args = ["apply", "--cached", *(["--reverse"] if reverse else []), "-"]
        result = ctx.git(args, stdin=patch, read_only=False)
        self.assertTrue(result.ok, f"{result.stderr}\n{patch}")

    def _index_bytes(self, ctx: RepoContext, fixture: Fixture) -> bytes | None:
        listed = _git(ctx.root, "ls-files", "--cached", "--", fixture.name).stdout
        if not listed.strip():
            return None
        return _git(ctx.root, "show", f":{fixture.name}").stdout

    def _sweep(self, fixture: Fixture, *, reverse: bool) -> None:
        ctx = self._repo(fixture)
        self._reset(ctx, fixture, staged=reverse)
        (file,) = self._diff(ctx, fixture, staged=reverse)
        (hunk,) = file.hunks
        offsets = [line.offset for line in hunk.lines]
        expected = fixture.old if reverse else fixture.new

        for run in _contiguous_runs(len(offsets)):
            chosen = [offsets[index] for index in run]
            rest = [offset for offset in offsets if offset not in chosen]
            for first, second in ((chosen, rest), (rest, chosen)):
                with self.subTest(file=fixture.name, first=first):
                    self._reset(ctx, fixture, staged=reverse)
                    patch = build_partial_patch(file, hunk, first, reverse=reverse)
                    if patch is not None:
                        self._apply(ctx, patch, reverse=reverse)

                    remaining = self._diff(ctx, fixture, staged=reverse)
                    if fixture.exact:
                        left = [line for line in hunk.lines if line.offset in second and line.is_change]
                        self.assertEqual(_changes(remaining), sorted((line.tag.value, line.text) for line in left))
                    for entry in remaining:
                        rest_patch = build_file_patch(entry, reverse=reverse)
                        if rest_patch is not None:
                            self._apply(ctx, rest_patch, reverse=reverse)

                    self.assertEqual(self._index_bytes(ctx, fixture), expected)
                    self.assertEqual(self._diff(ctx, fixture, staged=reverse), [])

    def test_staging_any_run_then_the_rest_equals_staging_the_hunk(self) -> None:
        for fixture in FIXTURES:
            self._sweep(fixture, reverse=False)

    def test_unstaging_any_run_then_the_rest_equals_unstaging_the_hunk(self) -> None:
        for fixture in FIXTURES:
            self._sweep(fixture, reverse=True)


if __name__ == "__main__":
    unittest.main()
