"""Chord dispatcher tests: prefixes, timeouts, prompts, and confirmations."""

from __future__ import annotations

import unittest

from lazyrepo.commands.actions import ActionName
from lazyrepo.commands.dispatcher import CommandDispatcher, Mode, OutcomeKind
from lazyrepo.commands.ops import OpContext
from lazyrepo.git.diff_parser import parse_diff
from lazyrepo.input.bindings import build_binding_table
from lazyrepo.model.types import CommitEntry, RepositorySnapshot, Section, SectionKind
from lazyrepo.runtime.screen import Screen, ScreenKind

EDIT_DIFF = (
    "diff --git a/f.txt b/f.txt\n"
    "--- a/f.txt\n"
    "+++ b/f.txt\n"
    "@@ -1,2 +1,2 @@\n"
    "-a\n"
    "+b\n"
    " c\n"
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _file_context() -> OpContext:
    snapshot = RepositorySnapshot(
        sections=(Section(SectionKind.UNSTAGED, "Unstaged changes", tuple(parse_diff(EDIT_DIFF))),)
    )
    screen = Screen(1, ScreenKind.STATUS, "repo", lambda should_cancel: snapshot)
    screen.apply_snapshot(snapshot)
    screen.nav.move_to("unstaged:file:f.txt")
    return screen.op_context()


def _commit_context() -> OpContext:
    commit = CommitEntry(oid="d" * 40, short_oid="ddddddd", refs=(), author="A", date="now", subject="s")
    snapshot = RepositorySnapshot(sections=(Section(SectionKind.LOG, "Log", (commit,)),))
    screen = Screen(2, ScreenKind.LOG, "Log", lambda should_cancel: snapshot)
    screen.apply_snapshot(snapshot)
    screen.nav.move_to(f"log:commit:{'d' * 40}")
    return screen.op_context()


class DispatcherTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.dispatcher = CommandDispatcher(build_binding_table(), chord_timeout=1.5, clock=self.clock)

    def feed(self, keys: str, context: OpContext | None = None):
        context = context if context is not None else _file_context()
        outcome = None
        for key in keys:
            outcome = self.dispatcher.handle_key(key, context)
        return outcome


class ChordTests(DispatcherTestCase):
    def test_single_key_action(self) -> None:
        outcome = self.feed("s")

        self.assertEqual(outcome.kind, OutcomeKind.ACTION)
        self.assertEqual(outcome.action.name, ActionName.STAGE)
        self.assertEqual(outcome.action.commands[0].args, ("add", "--", "f.txt"))
        self.assertEqual(self.dispatcher.mode, Mode.IDLE)

    def test_prefix_waits_then_completes(self) -> None:
        first = self.feed("c")

        self.assertEqual(first.kind, OutcomeKind.PENDING)
        self.assertEqual(self.dispatcher.mode, Mode.CHORD_PENDING)
        self.assertEqual(self.dispatcher.pending, ("c",))

        outcome = self.feed("e")

        self.assertEqual(outcome.kind, OutcomeKind.ACTION)
        self.assertEqual(outcome.action.name, ActionName.COMMIT_EXTEND)
        self.assertEqual(outcome.action.commands[0].args, ("commit", "--amend", "--no-edit"))

    def test_pending_menu_lists_continuations(self) -> None:
        context = _file_context()
        self.dispatcher.handle_key("c", context)

        menu = self.dispatcher.menu(context)

        self.assertEqual(
            menu,
            [("a", "Amend"), ("c", "Commit"), ("e", "Extend"), ("f", "Fixup")],
        )

    def test_unknown_continuation_reports_full_chord(self) -> None:
        outcome = self.feed("cq")

        self.assertEqual(outcome.kind, OutcomeKind.UNBOUND)
        self.assertEqual(outcome.message, "c q is undefined")
        self.assertEqual(self.dispatcher.mode, Mode.IDLE)

    def test_cancel_key_abandons_pending_chord(self) -> None:
        context = _file_context()
        self.dispatcher.handle_key("z", context)

        outcome = self.dispatcher.handle_key("ESC", context)

        self.assertEqual(outcome.kind, OutcomeKind.CANCELLED)
        self.assertEqual(self.dispatcher.pending, ())

    def test_pending_chord_times_out(self) -> None:
        self.feed("c")
        self.clock.now += 2.0

        self.assertTrue(self.dispatcher.tick())
        self.assertEqual(self.dispatcher.mode, Mode.IDLE)

        outcome = self.feed("s")
        self.assertEqual(outcome.action.name, ActionName.STAGE)

    def test_key_after_timeout_starts_a_new_chord(self) -> None:
        self.feed("c")
        self.clock.now += 2.0

        outcome = self.feed("u")

        self.assertEqual(outcome.kind, OutcomeKind.HINT)
        self.assertEqual(outcome.message, "Unstage: not applicable to f.txt")

    def test_tick_before_timeout_keeps_chord(self) -> None:
        self.feed("c")
        self.clock.now += 1.0

        self.assertFalse(self.dispatcher.tick())
        self.assertEqual(self.dispatcher.mode, Mode.CHORD_PENDING)

    def test_item_action_on_commit_uses_its_payload(self) -> None:
        outcome = self.feed("cf", _commit_context())

        self.assertEqual(outcome.action.commands[0].args, ("commit", "--fixup", "d" * 40))

    def test_item_action_without_focus_is_a_hint(self) -> None:
        outcome = self.feed("s", OpContext())

        self.assertEqual(outcome.kind, OutcomeKind.HINT)
        self.assertEqual(outcome.message, "Stage: not applicable to nothing")


class PromptTests(DispatcherTestCase):
    def test_prompt_collects_value_and_submits(self) -> None:
        outcome = self.feed("bc")

        self.assertEqual(outcome.kind, OutcomeKind.PROMPT)
        self.assertEqual(self.dispatcher.prompt_label, "Create and checkout branch")
        self.assertEqual(self.dispatcher.mode, Mode.PROMPT)

        self.feed("topx")
        self.feed(["BACKSPACE"])
        self.feed("ic")
        outcome = self.feed(["ENTER_LF"])

        self.assertEqual(outcome.kind, OutcomeKind.ACTION)
        self.assertEqual(outcome.action.value, "topic")
        self.assertEqual(outcome.action.commands[0].args, ("checkout", "-b", "topic"))

    def test_prompt_is_prefilled_from_focused_commit(self) -> None:
        self.feed("Xs", _commit_context())

        self.assertEqual(self.dispatcher.prompt_buffer, "ddddddd")

    def test_prompt_cancel(self) -> None:
        self.feed("zz")

        outcome = self.feed(["CTRL_G"])

        self.assertEqual(outcome.kind, OutcomeKind.CANCELLED)
        self.assertEqual(self.dispatcher.mode, Mode.IDLE)
        self.assertEqual(self.dispatcher.prompt_buffer, "")

    def test_stash_worktree_without_worktree_changes_never_prompts(self) -> None:
        snapshot = RepositorySnapshot(
            sections=(
                Section(SectionKind.UNSTAGED, "Unstaged changes", ()),
                Section(SectionKind.STAGED, "Staged changes", tuple(parse_diff(EDIT_DIFF))),
            )
        )

        outcome = self.feed("zw", OpContext(snapshot=snapshot))

        self.assertEqual(outcome.kind, OutcomeKind.HINT)
        self.assertEqual(outcome.message, "Cannot stash: working tree is empty")
        self.assertEqual(self.dispatcher.mode, Mode.IDLE)
        self.assertEqual(self.feed("zw", _commit_context()).message, "Stash worktree: not available on the log screen")

        self.assertEqual(self.feed("zw").kind, OutcomeKind.PROMPT)

    def test_empty_required_value_becomes_hint(self) -> None:
        self.feed("bc")

        outcome = self.feed(["ENTER_CR"])

        self.assertEqual(outcome.kind, OutcomeKind.HINT)
        self.assertEqual(outcome.message, "No branch name given")


class ConfirmTests(DispatcherTestCase):
    def test_discard_waits_for_y(self) -> None:
        outcome = self.feed("x")

        self.assertEqual(outcome.kind, OutcomeKind.CONFIRM)
        self.assertEqual(self.dispatcher.confirm_message, "Really discard f.txt?")

        outcome = self.feed("y")

        self.assertEqual(outcome.kind, OutcomeKind.ACTION)
        self.assertEqual(outcome.action.name, ActionName.DISCARD)
        self.assertEqual(self.dispatcher.mode, Mode.IDLE)

    def test_any_other_key_cancels_confirmation(self) -> None:
        self.feed("x")

        outcome = self.feed("n")

        self.assertEqual(outcome.kind, OutcomeKind.CANCELLED)
        self.assertEqual(outcome.message, "Cancelled")
        self.assertEqual(self.dispatcher.confirm_message, "")


class OverrideTests(unittest.TestCase):
    def test_rebound_key_dispatches_new_action(self) -> None:
        table = build_binding_table([{"keys": "S", "action": "stage"}, {"keys": "s", "action": "none"}])
        dispatcher = CommandDispatcher(table, clock=FakeClock())
        context = _file_context()

        self.assertEqual(dispatcher.handle_key("s", context).kind, OutcomeKind.UNBOUND)
        self.assertEqual(dispatcher.handle_key("S", context).action.name, ActionName.STAGE)

    def test_set_bindings_resets_pending_state(self) -> None:
        dispatcher = CommandDispatcher(build_binding_table(), clock=FakeClock())
        dispatcher.handle_key("c", _file_context())

        dispatcher.set_bindings(build_binding_table())

        self.assertEqual(dispatcher.mode, Mode.IDLE)


if __name__ == "__main__":
    unittest.main()
