"""Item tree and navigation engine tests.

Exercises token addressing, item/line movement, contiguous selection rules,
and cursor/selection re-resolution when a refreshed snapshot replaces the tree.
"""

from __future__ import annotations

import unittest

from lazyrepo.errors import InvalidSelection
from lazyrepo.git.diff_parser import parse_diff
from lazyrepo.model.navigation import Direction, NavigationEngine
from lazyrepo.model.tree import ROOT_TOKEN, build_item_tree
from lazyrepo.model.types import (
    CommitEntry,
    Granularity,
    ItemKind,
    RepositorySnapshot,
    Section,
    SectionKind,
)

A_DIFF = (
    "diff --git a/a.txt b/a.txt\n"
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -1,2 +1,2 @@\n"
    "-one\n"
    "+ONE\n"
    " two\n"
    "@@ -10,2 +10,2 @@\n"
    " ten\n"
    "-eleven\n"
    "+ELEVEN\n"
)
A_SECOND_HUNK_ONLY = (
    "diff --git a/a.txt b/a.txt\n"
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -10,2 +10,2 @@\n"
    " ten\n"
    "-eleven\n"
    "+ELEVEN\n"
)
B_DIFF = (
    "diff --git a/b.txt b/b.txt\n"
    "--- a/b.txt\n"
    "+++ b/b.txt\n"
    "@@ -1 +1 @@\n"
    "-b\n"
    "+B\n"
)
S_DIFF = (
    "diff --git a/s.txt b/s.txt\n"
    "new file mode 100644\n"
    "--- /dev/null\n"
    "+++ b/s.txt\n"
    "@@ -0,0 +1 @@\n"
    "+staged\n"
)


def _snapshot(unstaged: str = "", staged: str = "") -> RepositorySnapshot:
    sections = []
    if unstaged:
        sections.append(Section(SectionKind.UNSTAGED, "Unstaged changes", tuple(parse_diff(unstaged))))
    if staged:
        sections.append(Section(SectionKind.STAGED, "Staged changes", tuple(parse_diff(staged))))
    return RepositorySnapshot(sections=tuple(sections))


def _engine(unstaged: str = A_DIFF + B_DIFF, staged: str = S_DIFF) -> NavigationEngine:
    return NavigationEngine(build_item_tree(_snapshot(unstaged, staged)))


def _hunk_tokens(nav: NavigationEngine, path: str = "a.txt") -> list[str]:
    return list(nav.tree.node(f"unstaged:file:{path}").children)


class ItemTreeTests(unittest.TestCase):
    def test_tree_mirrors_sections_files_hunks_and_lines(self) -> None:
        tree = build_item_tree(_snapshot(A_DIFF + B_DIFF, S_DIFF))

        self.assertEqual(tree.root.children, ["section:unstaged", "section:staged"])
        file_a = tree.node("unstaged:file:a.txt")
        self.assertEqual(file_a.kind, ItemKind.UNSTAGED_FILE)
        self.assertEqual(len(file_a.children), 2)
        hunk = tree.node(file_a.children[0])
        self.assertEqual(hunk.kind, ItemKind.UNSTAGED_HUNK)
        self.assertEqual(len(hunk.children), 3)
        self.assertEqual(tree.node(hunk.children[0]).kind, ItemKind.UNSTAGED_LINE)
        self.assertEqual(tree.node("staged:file:s.txt").kind, ItemKind.STAGED_FILE)
        self.assertEqual(
            tree.address_of(hunk.token),
            (ROOT_TOKEN, "section:unstaged", "unstaged:file:a.txt", hunk.token),
        )

    def test_same_file_in_two_sections_gets_distinct_tokens(self) -> None:
        tree = build_item_tree(_snapshot(B_DIFF, B_DIFF))

        self.assertIn("unstaged:file:b.txt", tree)
        self.assertIn("staged:file:b.txt", tree)
        self.assertEqual(tree.node("staged:file:b.txt").kind, ItemKind.STAGED_FILE)

    def test_resolve_falls_back_to_nearest_surviving_ancestor(self) -> None:
        old = build_item_tree(_snapshot(A_DIFF))
        new = build_item_tree(_snapshot(A_SECOND_HUNK_ONLY))
        first_hunk = old.node("unstaged:file:a.txt").children[0]

        resolved = new.resolve(old.address_of(first_hunk))

        self.assertEqual(resolved, "unstaged:file:a.txt")

    def test_commit_entries_become_commit_items(self) -> None:
        commit = CommitEntry(oid="f" * 40, short_oid="fffffff", refs=(), author="A", date="now", subject="msg")
        snapshot = RepositorySnapshot(sections=(Section(SectionKind.LOG, "Log", (commit,)),))

        tree = build_item_tree(snapshot)

        node = tree.node(f"log:commit:{'f' * 40}")
        self.assertEqual(node.kind, ItemKind.COMMIT)
        self.assertEqual(node.label, "fffffff msg")


class CursorMovementTests(unittest.TestCase):
    def test_files_start_collapsed_and_sections_expanded(self) -> None:
        nav = _engine()

        self.assertEqual(
            nav.visible_rows(),
            [
                "section:unstaged",
                "unstaged:file:a.txt",
                "unstaged:file:b.txt",
                "section:staged",
                "staged:file:s.txt",
            ],
        )
        self.assertEqual(nav.cursor, "section:unstaged")

    def test_next_skips_line_rows_and_next_line_enters_them(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        self.assertTrue(nav.toggle_expand())
        first, second = _hunk_tokens(nav)

        nav.move_cursor(Direction.NEXT)
        self.assertEqual(nav.cursor, first)
        nav.move_cursor(Direction.NEXT)
        self.assertEqual(nav.cursor, second)

        nav.move_cursor(Direction.PREVIOUS)
        nav.move_cursor(Direction.NEXT_LINE)
        self.assertEqual(nav.focused().kind, ItemKind.UNSTAGED_LINE)

    def test_parent_first_and_last(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.toggle_expand()
        nav.move_cursor(Direction.NEXT)

        nav.move_cursor(Direction.PARENT)
        self.assertEqual(nav.cursor, "unstaged:file:a.txt")
        nav.move_cursor(Direction.LAST)
        self.assertEqual(nav.cursor, "staged:file:s.txt")
        nav.move_cursor(Direction.FIRST)
        self.assertEqual(nav.cursor, "section:unstaged")

    def test_movement_clamps_at_edges(self) -> None:
        nav = _engine()

        self.assertFalse(nav.move_cursor(Direction.PREVIOUS))
        self.assertFalse(nav.move_cursor(Direction.PARENT))
        nav.move_cursor(Direction.LAST)
        self.assertFalse(nav.move_cursor(Direction.NEXT))

    def test_collapsing_an_ancestor_pulls_cursor_up(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.toggle_expand()
        nav.move_cursor(Direction.NEXT)

        nav.collapse_all()

        self.assertEqual(nav.cursor, "section:unstaged")
        self.assertEqual(nav.visible_rows(), ["section:unstaged", "section:staged"])

    def test_expand_all_shows_every_row(self) -> None:
        nav = _engine()

        nav.expand_all()

        self.assertEqual(len(nav.visible_rows()), len(nav.tree) - 1)

    def test_empty_tree_has_no_focus(self) -> None:
        nav = NavigationEngine(build_item_tree(RepositorySnapshot(sections=())))

        self.assertIsNone(nav.focused())
        self.assertIsNone(nav.current_selection())
        self.assertFalse(nav.move_cursor(Direction.NEXT))


class SelectionTests(unittest.TestCase):
    def test_implicit_selection_is_the_focused_item(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)

        selection = nav.current_selection()

        self.assertEqual(selection.granularity, Granularity.FILE)
        self.assertEqual(selection.addresses, frozenset({nav.cursor_address}))
        self.assertFalse(nav.has_explicit_selection())

    def test_sections_have_no_implicit_selection(self) -> None:
        self.assertIsNone(_engine().current_selection())

    def test_range_selection_extends_over_sibling_hunks(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.toggle_expand()
        nav.move_cursor(Direction.NEXT)

        self.assertTrue(nav.begin_range())
        nav.move_cursor(Direction.NEXT)

        self.assertTrue(nav.has_explicit_selection())
        self.assertEqual(nav.current_selection().granularity, Granularity.HUNK)
        self.assertEqual(nav.selected_tokens(), _hunk_tokens(nav))

    def test_range_ignores_cursor_outside_the_anchor_run(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.begin_range()
        nav.move_cursor(Direction.NEXT)
        self.assertEqual(nav.selected_tokens(), ["unstaged:file:a.txt", "unstaged:file:b.txt"])

        nav.move_cursor(Direction.NEXT)

        self.assertEqual(nav.selected_tokens(), ["unstaged:file:a.txt", "unstaged:file:b.txt"])

    def test_selection_must_share_one_parent(self) -> None:
        nav = _engine()
        a = nav.tree.address_of("unstaged:file:a.txt")
        s = nav.tree.address_of("staged:file:s.txt")

        with self.assertRaises(InvalidSelection):
            nav.set_selection([a, s], Granularity.FILE)

    def test_selection_must_match_granularity(self) -> None:
        nav = _engine()
        a = nav.tree.address_of("unstaged:file:a.txt")

        with self.assertRaises(InvalidSelection):
            nav.set_selection([a], Granularity.HUNK)

    def test_selection_must_be_contiguous(self) -> None:
        nav = _engine(unstaged=A_DIFF + B_DIFF + S_DIFF.replace("s.txt", "c.txt"), staged="")
        a = nav.tree.address_of("unstaged:file:a.txt")
        c = nav.tree.address_of("unstaged:file:c.txt")

        with self.assertRaises(InvalidSelection):
            nav.set_selection([a, c], Granularity.FILE)

    def test_clear_selection_drops_anchor(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.begin_range()
        nav.move_cursor(Direction.NEXT)

        nav.clear_selection()

        self.assertFalse(nav.has_explicit_selection())
        self.assertFalse(nav.has_range_anchor())


class ReplaceTreeTests(unittest.TestCase):
    def test_cursor_stays_on_same_logical_item(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.move_cursor(Direction.NEXT)
        self.assertEqual(nav.cursor, "unstaged:file:b.txt")

        nav.replace_tree(build_item_tree(_snapshot(B_DIFF, S_DIFF)))

        self.assertEqual(nav.cursor, "unstaged:file:b.txt")

    def test_cursor_on_removed_hunk_moves_to_its_file(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.toggle_expand()
        nav.move_cursor(Direction.NEXT)

        nav.replace_tree(build_item_tree(_snapshot(A_SECOND_HUNK_ONLY + B_DIFF, S_DIFF)))

        self.assertEqual(nav.cursor, "unstaged:file:a.txt")
        self.assertTrue(nav.is_expanded(nav.tree.node("unstaged:file:a.txt")))

    def test_cursor_on_removed_section_lands_on_first_row(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.LAST)

        nav.replace_tree(build_item_tree(_snapshot(B_DIFF)))

        self.assertEqual(nav.cursor, "section:unstaged")

    def test_empty_snapshot_leaves_cursor_on_root(self) -> None:
        nav = _engine()

        nav.replace_tree(build_item_tree(RepositorySnapshot(sections=())))

        self.assertIsNone(nav.focused())

    def test_selection_keeps_surviving_members(self) -> None:
        nav = _engine()
        nav.move_cursor(Direction.NEXT)
        nav.begin_range()
        nav.move_cursor(Direction.NEXT)

        nav.replace_tree(build_item_tree(_snapshot(B_DIFF, S_DIFF)))

        self.assertEqual(nav.selected_tokens(), ["unstaged:file:b.txt"])

    def test_selection_that_splits_is_dropped(self) -> None:
        c_diff = B_DIFF.replace("b.txt", "c.txt")
        nav = _engine(unstaged=A_DIFF + B_DIFF + c_diff, staged="")
        a, b, c = (nav.tree.address_of(f"unstaged:file:{name}") for name in ("a.txt", "b.txt", "c.txt"))
        nav.set_selection([a, b, c], Granularity.FILE)
        middle_changed = B_DIFF.replace("+B", "+b2").replace("b.txt", "z.txt")

        nav.replace_tree(build_item_tree(_snapshot(A_DIFF + middle_changed + c_diff)))

        self.assertFalse(nav.has_explicit_selection())


if __name__ == "__main__":
    unittest.main()
