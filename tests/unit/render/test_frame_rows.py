"""Frame rendering tests with the plain theme, so rows compare as text."""

from __future__ import annotations

import unittest

from lazyrepo.git.diff_parser import parse_diff
from lazyrepo.input.bindings import build_binding_table
from lazyrepo.model.types import (
    ChangeKind,
    CommitEntry,
    FileEntry,
    HeadInfo,
    ItemKind,
    RepositorySnapshot,
    Section,
    SectionKind,
)
from lazyrepo.render import RenderContext, frame_text, help_lines, render_frame
from lazyrepo.render.ansi import strip_ansi
from lazyrepo.render.help import menu_lines
from lazyrepo.render.theme import DEFAULT_THEME, PLAIN_THEME
from lazyrepo.runtime.screen import CommitDraft, Screen, ScreenKind

EDIT_DIFF = (
    "diff --git a/a.txt b/a.txt\n"
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -1 +1 @@\n"
    "-old\n"
    "+new\n"
)


def _screen(snapshot: RepositorySnapshot, kind: ScreenKind = ScreenKind.STATUS, title: str = "repo") -> Screen:
    screen = Screen(1, kind, title, lambda should_cancel: snapshot)
    screen.apply_snapshot(snapshot)
    return screen


def _status_snapshot() -> RepositorySnapshot:
    return RepositorySnapshot(
        sections=(
            Section(SectionKind.UNTRACKED, "Untracked files", (FileEntry("notes.md", ChangeKind.UNTRACKED),)),
            Section(SectionKind.UNSTAGED, "Unstaged changes", tuple(parse_diff(EDIT_DIFF))),
        ),
        head=HeadInfo(branch="main"),
    )


class RenderFrameTests(unittest.TestCase):
    def test_rows_show_sections_files_and_cursor(self) -> None:
        screen = _screen(_status_snapshot())
        ctx = RenderContext(screen=screen, width=80, height=None, theme=PLAIN_THEME, repo_name="repo", head=HeadInfo(branch="main"))

        rows = render_frame(ctx)

        self.assertEqual(
            rows,
            [
                ">Untracked files (1)",
                "   notes.md",
                " Unstaged changes (1)",
                "   modified   a.txt …",
                " repo  main  [repo]",
            ],
        )

    def test_expanded_file_shows_hunk_and_lines(self) -> None:
        screen = _screen(_status_snapshot())
        screen.nav.move_to("unstaged:file:a.txt")
        screen.nav.toggle_expand()
        ctx = RenderContext(screen=screen, width=80, height=None, theme=PLAIN_THEME)

        rows = render_frame(ctx)

        self.assertIn("     @@ -1 +1 @@", rows)
        self.assertIn("       -old", rows)
        self.assertIn("       +new", rows)

    def test_fixed_height_pads_body_and_keeps_footer_last(self) -> None:
        screen = _screen(_status_snapshot())
        ctx = RenderContext(screen=screen, width=40, height=10, theme=PLAIN_THEME, status_message="Done: Stage")

        rows = render_frame(ctx)

        self.assertEqual(len(rows), 10)
        self.assertTrue(rows[-1].endswith("Done: Stage"))
        self.assertEqual(rows[-2], "")

    def test_clean_status_screen_says_so(self) -> None:
        screen = _screen(RepositorySnapshot(sections=()))
        ctx = RenderContext(screen=screen, width=80, height=None, theme=PLAIN_THEME)

        rows = render_frame(ctx)

        self.assertIn("Nothing to commit, working tree clean", rows)

    def test_error_pane_prompt_and_confirm(self) -> None:
        screen = _screen(_status_snapshot())
        ctx = RenderContext(
            screen=screen,
            width=80,
            height=None,
            theme=PLAIN_THEME,
            error_lines=["git apply failed (exit 1)", "error: patch does not apply"],
            confirm_message="Really discard a.txt?",
        )

        rows = render_frame(ctx)

        self.assertEqual(rows[-4:-1], ["git apply failed (exit 1)", "error: patch does not apply", "Really discard a.txt? (y/N)"])

    def test_rows_are_clipped_to_width(self) -> None:
        commit = CommitEntry(oid="a" * 40, short_oid="aaaaaaa", refs=(), author="", date="", subject="x" * 200)
        screen = _screen(RepositorySnapshot(sections=(Section(SectionKind.LOG, "Log", (commit,)),)), ScreenKind.LOG)

        rows = render_frame(RenderContext(screen=screen, width=30, height=None, theme=DEFAULT_THEME))

        self.assertTrue(all(len(strip_ansi(row)) <= 30 for row in rows))

    def test_commit_editor_shows_draft_above_staged_diff(self) -> None:
        snapshot = RepositorySnapshot(sections=(Section(SectionKind.STAGED, "Staged changes", tuple(parse_diff(EDIT_DIFF))),))
        screen = _screen(snapshot, ScreenKind.COMMIT_EDITOR, "Commit")
        screen.draft = CommitDraft(text="Subject\n\nBody")

        rows = render_frame(RenderContext(screen=screen, width=80, height=None, theme=PLAIN_THEME))

        self.assertEqual(rows[:5], ["Commit message", "  Subject", "  ", "  Body ", "ctrl+s commit  esc abort"])

    def test_frame_text_homes_cursor_and_clears_tail(self) -> None:
        text = frame_text(["a", "b"])

        self.assertEqual(text, "\033[Ha\033[K\r\nb\033[K\033[J")


class HelpAndMenuTests(unittest.TestCase):
    def test_help_lists_applicable_item_actions_then_general(self) -> None:
        lines = help_lines(build_binding_table(), "status", ItemKind.STAGED_FILE, PLAIN_THEME)

        self.assertEqual(lines[0], "Help: status / staged file")
        item_block = lines[lines.index("Item") + 1 : lines.index("General")]
        self.assertTrue(any(line.strip().startswith("u ") and line.endswith("Unstage") for line in item_block))
        self.assertFalse(any(line.endswith(" Stage") for line in item_block))
        self.assertTrue(any(line.endswith("Quit / close") for line in lines))

    def test_help_reflects_overrides(self) -> None:
        table = build_binding_table([{"keys": "S", "action": "stage"}])

        lines = help_lines(table, "status", ItemKind.UNSTAGED_FILE, PLAIN_THEME)

        stage_row = next(line for line in lines if line.endswith(" Stage"))
        self.assertIn("S, s", stage_row)

    def test_menu_lays_out_columns(self) -> None:
        rows = [("a", "Amend"), ("c", "Commit"), ("e", "Extend"), ("f", "Fixup")]

        lines = menu_lines(rows, 52, PLAIN_THEME)

        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].startswith("  a Amend"))
        self.assertIn("  c Commit", lines[0])


if __name__ == "__main__":
    unittest.main()
