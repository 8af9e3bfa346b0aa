"""Runtime composition layer for lazyrepo.

Builds the screen stack, dispatcher, executor, and watcher for one repository,
turns dispatched actions into navigation changes or git work, and folds
background results back into screens. This is the highest-level module where
git, model, commands, and rendering meet.
"""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import os
import shutil
import sys
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..commands.actions import Action, ActionName, GitCommand
from ..commands.dispatcher import CommandDispatcher, Mode, OutcomeKind
from ..commands.ops import commit_commands
from ..errors import ApplyPatchFailed, BindingConflict, CommandFailed, LazyRepoError, StartupError
from ..git.process import ProcessRunner, run_process
from ..git.repo import RepoContext, resolve_repo
from ..git.snapshot import SnapshotOptions, read_commit_message
from ..git.watch import GitWatcher
from ..input.bindings import BindingTable, build_binding_table
from ..input.keys import format_chord, parse_keys
from ..model.navigation import Direction
from ..model.types import CommitEntry, HeadInfo, ItemKind, RefEntry, SectionKind, StashEntry
from ..render import RenderContext, help_lines, render_frame
from ..render.highlight import normalize_style
from ..render.theme import resolve_theme
from .config import CONFIG_PATH, AppConfig, load_app_config
from .editor import launch_editor
from .executor import GitOperationExecutor
from .loop import RuntimeLoopCallbacks, RuntimeLoopTiming, run_main_loop
from .screen import (
    Screen,
    ScreenKind,
    commit_editor_screen,
    edit_location,
    log_screen,
    refs_screen,
    show_screen,
    status_screen,
)
from .screen_stack import ScreenStack
from .state import AppState
from .tasks import TaskKind, TaskResult
from .terminal import TerminalController

logger = logging.getLogger(__name__)

STATUS_MESSAGE_SECONDS = 3.0
SPINNER_FRAME_SECONDS = 0.12
WATCH_FALLBACK_SECONDS = 5.0
SETTLE_TIMEOUT_SECONDS = 30.0

_MOVES = {
    ActionName.MOVE_NEXT: Direction.NEXT,
    ActionName.MOVE_PREVIOUS: Direction.PREVIOUS,
    ActionName.MOVE_NEXT_LINE: Direction.NEXT_LINE,
    ActionName.MOVE_PREVIOUS_LINE: Direction.PREVIOUS_LINE,
    ActionName.MOVE_PARENT: Direction.PARENT,
    ActionName.MOVE_FIRST: Direction.FIRST,
    ActionName.MOVE_LAST: Direction.LAST,
    ActionName.HALF_PAGE_DOWN: Direction.HALF_PAGE_DOWN,
    ActionName.HALF_PAGE_UP: Direction.HALF_PAGE_UP,
}
_EDITOR_MOVES = {
    "UP": Direction.PREVIOUS_LINE,
    "DOWN": Direction.NEXT_LINE,
    "PAGE_UP": Direction.HALF_PAGE_UP,
    "PAGE_DOWN": Direction.HALF_PAGE_DOWN,
}
_REF_KINDS = frozenset({ItemKind.BRANCH, ItemKind.REMOTE_BRANCH, ItemKind.TAG})


def error_lines(exc: BaseException) -> list[str]:
    """Error pane text for ``exc``."""
    if isinstance(exc, ApplyPatchFailed):
        lines = [f"Patch rejected: {' '.join(exc.argv)} (exit {exc.returncode})"]
        lines.extend(line for line in exc.stderr.strip().splitlines() if line.strip())
        return lines
    if isinstance(exc, CommandFailed):
        lines = [f"{' '.join(exc.argv)} failed (exit {exc.returncode})"]
        lines.extend(line for line in exc.stderr.strip().splitlines() if line.strip())
        return lines
    if isinstance(exc, BindingConflict):
        return ["Key bindings rejected:", *(f"  {conflict}" for conflict in exc.conflicts)]
    if isinstance(exc, LazyRepoError):
        return [str(exc)]
    return [f"{type(exc).__name__}: {exc}"]


class LazyRepoApp:
    """One interactive session over one repository."""

    def __init__(
        self,
        ctx: RepoContext,
        config: AppConfig,
        *,
        runner: ProcessRunner = run_process,
        theme: str | None = None,
        style: str | None = None,
        no_color: bool = False,
        terminal: TerminalController | None = None,
        config_path: Path | None = None,
        overrides: Mapping[str, object] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ctx = ctx
        self._overrides = dict(overrides or {})
        self.config = dataclasses.replace(config, **self._overrides)
        self.config_path = config_path
        self.runner = runner
        self.terminal = terminal
        self._theme_name = theme
        self._style_name = style
        self._no_color = no_color
        self._clock = clock
        self.theme = resolve_theme(theme or self.config.theme, no_color=no_color)
        self.style = normalize_style(style or self.config.style)
        self.state = AppState()
        self.executor = GitOperationExecutor(ctx, runner=runner)
        self.stack = ScreenStack(on_pop=self.executor.cancel_owner)
        self._next_screen_id = 1
        self.bindings = self._initial_bindings(self.config)
        self.dispatcher = CommandDispatcher(
            self.bindings,
            chord_timeout=self.config.chord_timeout_ms / 1000.0,
            clock=clock,
        )
        self.watcher = GitWatcher(
            ctx.git_dir,
            poll_seconds=self.config.watch_poll_seconds,
            fallback_seconds=WATCH_FALLBACK_SECONDS,
        )
        self.watcher.reset(clock())
        # Mutation task ids whose results the loop has not applied yet.
        self._unsettled_mutations: set[int] = set()

    # Setup

    def _initial_bindings(self, config: AppConfig) -> BindingTable:
        try:
            return build_binding_table(config.bindings)
        except BindingConflict as exc:
            logger.warning("ignoring key-binding overrides: %s", exc)
            self.state.error_lines = error_lines(exc)
            return build_binding_table()

    @property
    def options(self) -> SnapshotOptions:
        return SnapshotOptions(
            context_lines=self.config.context_lines,
            recent_commits=self.config.recent_commits,
            log_page_size=self.config.log_page_size,
        )

    def _new_id(self) -> int:
        screen_id = self._next_screen_id
        self._next_screen_id += 1
        return screen_id

    def open_status(self) -> Screen:
        return self.push(status_screen(self._new_id(), self.ctx, self.options, runner=self.runner))

    def push(self, screen: Screen) -> Screen:
        self.dispatcher.reset()
        self.stack.push(screen)
        self.request_refresh(screen)
        self.state.dirty = True
        return screen

    # Background work

    def request_refresh(self, screen: Screen) -> None:
        """Start (or restart) loading ``screen``'s snapshot."""
        if screen.refresh_task is not None:
            screen.refresh_task.cancel()
        screen.refresh_task = self.executor.submit_query(
            screen.load,
            owner=screen.screen_id,
            label=f"load {screen.kind.value}",
        )

    def _request_more(self, screen: Screen) -> None:
        screen.page_task = self.executor.submit_query(
            screen.load_more,
            owner=screen.screen_id,
            label="load log page",
        )

    def process_results(self) -> bool:
        """Fold finished background work into screens; ``True`` if anything arrived."""
        results = self.executor.drain()
        for result in results:
            self._apply_result(result)
        if results:
            self.state.dirty = True
        return bool(results)

    def _apply_result(self, result: TaskResult) -> None:
        if result.kind is TaskKind.QUERY:
            self._apply_query_result(result)
            return

        self._unsettled_mutations.discard(result.task_id)
        owner = self.stack.find(result.owner)
        if result.cancelled:
            self.flash(f"Cancelled: {result.label}")
        elif result.error is not None:
            if isinstance(result.error, ApplyPatchFailed):
                logger.error("rejected patch for %s:\n%s", result.label, result.error.patch)
            self.show_error(result.error)
        else:
            self.state.error_lines = []
            self.flash(f"Done: {result.label}")

        if owner is not None and owner.kind is ScreenKind.COMMIT_EDITOR and result.ok:
            if self.stack.top is owner:
                self._pop_or_quit(refresh_revealed=False)

        if not result.refresh:
            return
        top = self.stack.top if self.stack else None
        self.stack.mark_stale(except_id=top.screen_id if top is not None else None)
        if top is not None:
            self.request_refresh(top)

    def _apply_query_result(self, result: TaskResult) -> None:
        screen = self.stack.find(result.owner)
        if screen is None:
            return
        if screen.refresh_task is not None and screen.refresh_task.task_id == result.task_id:
            screen.refresh_task = None
            if result.ok:
                screen.apply_snapshot(result.value)
                if screen.wants_more():
                    self._request_more(screen)
            elif result.error is not None:
                self.show_error(result.error)
            return
        if screen.page_task is not None and screen.page_task.task_id == result.task_id:
            screen.page_task = None
            if result.ok:
                screen.extend_log(list(result.value))
            elif result.error is not None:
                self.show_error(result.error)
            return
        logger.debug("ignoring superseded result #%d (%s)", result.task_id, result.label)

    def settle(self, timeout: float = SETTLE_TIMEOUT_SECONDS) -> bool:
        """Block until queued work and the loads it triggers have been applied."""
        deadline = time.monotonic() + timeout
        while True:
            self.executor.wait_idle(max(0.0, deadline - time.monotonic()))
            self.process_results()
            pending = self.executor.busy or any(
                screen.refresh_task is not None or screen.page_task is not None for screen in self.stack
            )
            if not pending:
                return True
            if time.monotonic() >= deadline:
                return False

    # Messages

    def flash(self, message: str) -> None:
        self.state.status_message = message
        self.state.status_message_until = self._clock() + STATUS_MESSAGE_SECONDS
        self.state.dirty = True

    def show_error(self, exc: BaseException) -> None:
        if isinstance(exc, LazyRepoError) and not isinstance(exc, CommandFailed):
            logger.info("error: %s", exc)
        self.state.error_lines = error_lines(exc)
        self.state.dirty = True

    def report_failure(self, exc: Exception) -> None:
        self.dispatcher.reset()
        self.show_error(exc)

    # Periodic work

    def tick(self, now: float | None = None) -> None:
        now = self._clock() if now is None else now
        state = self.state
        if self.dispatcher.tick(now):
            state.dirty = True
        if state.status_message and now >= state.status_message_until:
            state.status_message = ""
            state.dirty = True
        self.process_results()

        if self.config.refresh_on_file_change and self.watcher.poll(now):
            self._on_repository_change()

        if self.executor.busy:
            frame = int(now / SPINNER_FRAME_SECONDS)
            if frame != state.spinner_frame:
                state.spinner_frame = frame
                state.dirty = True

        if self.stack:
            top = self.stack.top
            if top.wants_more():
                self._request_more(top)

    def _on_repository_change(self) -> None:
        if not self.stack:
            return
        top = self.stack.top
        for screen in self.stack:
            if screen.kind is not ScreenKind.STATUS:
                continue
            if screen is top:
                if screen.refresh_task is None and not self.executor.busy:
                    self.request_refresh(screen)
            else:
                screen.stale = True

    # Keys

    def handle_key(self, key: str) -> bool:
        """Handle one key token; returns ``True`` when the session should end."""
        state = self.state
        state.dirty = True
        if not self.stack:
            return True
        if state.show_help and self.dispatcher.mode is Mode.IDLE:
            state.show_help = False
            if key in {"?", "ESC", "q", "CTRL_C"}:
                return False

        top = self.stack.top
        if top.kind is ScreenKind.COMMIT_EDITOR and self.dispatcher.mode is Mode.IDLE:
            self._handle_editor_key(top, key)
            return state.quit

        outcome = self.dispatcher.handle_key(key, top.op_context())
        if outcome.kind is OutcomeKind.ACTION and outcome.action is not None:
            self.perform(outcome.action)
        elif outcome.kind in {OutcomeKind.HINT, OutcomeKind.UNBOUND, OutcomeKind.CANCELLED}:
            if outcome.message:
                self.flash(outcome.message)
        return state.quit

    def replay(self, keys: Iterable[str]) -> None:
        """Feed ``keys`` one by one, letting each one's git work finish first."""
        self.settle()
        for key in keys:
            if self.handle_key(key):
                break
            self.settle()

    def _handle_editor_key(self, screen: Screen, key: str) -> None:
        draft = screen.draft
        assert draft is not None
        if key == "CTRL_S":
            if not draft.message:
                self.flash("Aborting commit due to empty commit message")
                return
            self._submit_mutation(
                commit_commands(draft.message, amend=draft.amend),
                screen,
                "amend" if draft.amend else "commit",
            )
            return
        if key in {"ESC", "CTRL_C", "CTRL_G"}:
            self.flash("Commit aborted")
            self._pop_or_quit()
            return
        if key in _EDITOR_MOVES:
            screen.nav.move_cursor(_EDITOR_MOVES[key])
        elif key in {"ENTER_CR", "ENTER_LF"}:
            draft.insert("\n")
        elif key == "BACKSPACE":
            draft.backspace()
        elif key == "CTRL_U":
            draft.clear_line()
        elif key == "TAB":
            draft.insert("    ")
        elif len(key) == 1 and key.isprintable():
            draft.insert(key)

    # Actions

    def perform(self, action: Action) -> None:
        """Consume one dispatched ``action``."""
        name = action.name
        screen = self.stack.top
        nav = screen.nav
        logger.debug("perform %s on %s", name.value, screen.kind.value)

        if name in _MOVES:
            nav.move_cursor(_MOVES[name])
            if screen.wants_more():
                self._request_more(screen)
        elif name is ActionName.TOGGLE_EXPAND:
            nav.toggle_expand()
        elif name is ActionName.EXPAND_ALL:
            nav.expand_all()
        elif name is ActionName.COLLAPSE_ALL:
            nav.collapse_all()
        elif name is ActionName.TOGGLE_RANGE:
            if nav.has_range_anchor():
                nav.clear_selection()
            elif not nav.begin_range():
                self.flash("Nothing selectable here")
        elif name is ActionName.CANCEL:
            self._cancel(screen)
        elif name is ActionName.REFRESH:
            self.request_refresh(screen)
        elif name is ActionName.HELP:
            self.state.show_help = True
        elif name is ActionName.QUIT:
            self._pop_or_quit()
        elif name is ActionName.RELOAD_CONFIG:
            self.reload_config()
        elif name is ActionName.SHOW:
            self._show(screen)
        elif name is ActionName.SHOW_LOG:
            self.push(log_screen(self._new_id(), self.ctx, self.options, runner=self.runner))
        elif name is ActionName.SHOW_LOG_ALL:
            self.push(log_screen(self._new_id(), self.ctx, self.options, rev="--all", runner=self.runner))
        elif name is ActionName.SHOW_REFS:
            self.push(refs_screen(self._new_id(), self.ctx, runner=self.runner))
        elif name in {ActionName.COMMIT, ActionName.COMMIT_AMEND}:
            self._open_commit_editor(screen, amend=name is ActionName.COMMIT_AMEND)
        else:
            self._run_commands(action, screen)

    def _run_commands(self, action: Action, screen: Screen) -> None:
        if not action.commands:
            self.flash(f"{action.description}: nothing to do")
            return
        if action.is_interactive:
            for command in action.commands:
                result = self.executor.run_interactive(command, screen.screen_id, self._release_terminal)
                self._apply_result(result)
                if not result.ok:
                    break
            return
        if any(command.is_apply for command in action.commands) and not self.snapshot_settled(screen):
            # The patch was cut from a snapshot an earlier change may already have applied.
            self.flash(f"{action.description}: waiting for refresh")
            return
        self._submit_mutation(action.commands, screen, action.description)
        screen.nav.clear_selection()
        self.flash(f"{action.description}…")

    def _submit_mutation(self, commands: Sequence[GitCommand], screen: Screen, label: str) -> None:
        handle = self.executor.submit_mutation(commands, owner=screen.screen_id, label=label)
        self._unsettled_mutations.add(handle.task_id)

    def snapshot_settled(self, screen: Screen) -> bool:
        """Whether ``screen`` shows the repository as every submitted change left it."""
        return not self._unsettled_mutations and screen.refresh_task is None and not screen.stale

    def _release_terminal(self) -> contextlib.AbstractContextManager:
        if self.terminal is None:
            return contextlib.nullcontext()
        return self.terminal.released()

    def _cancel(self, screen: Screen) -> None:
        if self.executor.cancel_busy():
            self.flash("Cancelling…")
        elif screen.nav.has_explicit_selection() or screen.nav.has_range_anchor():
            screen.nav.clear_selection()
        elif self.state.error_lines:
            self.state.error_lines = []

    def _pop_or_quit(self, *, refresh_revealed: bool = True) -> None:
        self.dispatcher.reset()
        revealed = self.stack.pop()
        if revealed is None:
            self.state.quit = True
            return
        if refresh_revealed and revealed.stale:
            self.request_refresh(revealed)

    def _show(self, screen: Screen) -> None:
        node = screen.nav.focused()
        if node is None:
            return
        payload = node.payload
        if node.kind in {ItemKind.SECTION, ItemKind.HEADER}:
            screen.nav.toggle_expand()
        elif isinstance(payload, CommitEntry):
            self.push(show_screen(self._new_id(), self.ctx, payload.oid, self.options, runner=self.runner))
        elif isinstance(payload, StashEntry):
            self.push(show_screen(self._new_id(), self.ctx, payload.ref, self.options, stash=True, runner=self.runner))
        elif node.kind in _REF_KINDS and isinstance(payload, RefEntry):
            self.push(log_screen(self._new_id(), self.ctx, self.options, rev=payload.name, runner=self.runner))
        else:
            self._edit(screen, node)

    def _edit(self, screen: Screen, node) -> None:
        location = edit_location(self.ctx.root, node)
        if location is None:
            return
        path, line = location
        if not path.exists():
            self.flash(f"{path.name} does not exist in the work tree")
            return
        self.executor.wait_idle(include_queries=False)
        message = launch_editor(path, self._release_terminal, line)
        if message:
            self.flash(message)
        self.stack.mark_stale(except_id=screen.screen_id)
        self.request_refresh(screen)

    def _open_commit_editor(self, screen: Screen, *, amend: bool) -> None:
        snapshot = screen.snapshot
        if (
            not amend
            and screen.kind is ScreenKind.STATUS
            and snapshot is not None
            and not snapshot.has_entries(SectionKind.STAGED)
        ):
            self.flash("Nothing staged to commit")
            return
        message = ""
        if amend:
            try:
                message = read_commit_message(self.ctx, runner=self.runner)
            except LazyRepoError as exc:
                self.show_error(exc)
                return
        self.push(
            commit_editor_screen(
                self._new_id(),
                self.ctx,
                self.options,
                amend=amend,
                message=message,
                runner=self.runner,
            )
        )

    # Config

    def reload_config(self) -> bool:
        """Re-read the config file; rejected bindings keep the current table."""
        config = dataclasses.replace(load_app_config(self.config_path), **self._overrides)
        try:
            bindings = build_binding_table(config.bindings)
        except BindingConflict as exc:
            self.show_error(exc)
            return False
        self.config = config
        self.bindings = bindings
        self.dispatcher.set_bindings(bindings)
        self.dispatcher.chord_timeout = config.chord_timeout_ms / 1000.0
        self.theme = resolve_theme(self._theme_name or config.theme, no_color=self._no_color)
        self.style = normalize_style(self._style_name or config.style)
        self.watcher.poll_seconds = config.watch_poll_seconds
        self.state.error_lines = []
        self.flash(f"Reloaded {self.config_path or CONFIG_PATH}")
        return True

    # Rendering

    def render_context(self, width: int, height: int | None) -> RenderContext:
        screen = self.stack.top
        dispatcher = self.dispatcher
        context = screen.op_context()
        help_rows = None
        if self.state.show_help:
            help_rows = help_lines(self.bindings, screen.binding_screen, context.kind, self.theme)
        head = next(
            (s.snapshot.head for s in self.stack if s.kind is ScreenKind.STATUS and s.snapshot is not None),
            HeadInfo(),
        )
        return RenderContext(
            screen=screen,
            width=width,
            height=height,
            theme=self.theme,
            style=self.style,
            repo_name=self.ctx.root.name,
            head=head,
            busy_label=self.executor.busy_label(),
            spinner_frame=self.state.spinner_frame,
            pending_chord=format_chord(dispatcher.pending) if dispatcher.mode is Mode.CHORD_PENDING else "",
            menu=dispatcher.menu(context),
            prompt_label=dispatcher.prompt_label if dispatcher.mode is Mode.PROMPT else "",
            prompt_buffer=dispatcher.prompt_buffer,
            confirm_message=dispatcher.confirm_message if dispatcher.mode is Mode.CONFIRM else "",
            status_message=self.state.status_message,
            error_lines=list(self.state.error_lines),
            help=help_rows,
        )

    def render(self, width: int, height: int | None) -> list[str]:
        if not self.stack:
            return []
        return render_frame(self.render_context(width, height))

    def close(self) -> None:
        self.executor.shutdown()


@dataclass(frozen=True)
class LaunchOptions:
    path: Path
    print_only: bool = False
    keys: str = ""
    theme: str | None = None
    style: str | None = None
    no_color: bool = False
    context_lines: int | None = None
    width: int | None = None
    config_path: Path | None = None


def run_app(options: LaunchOptions, *, runner: ProcessRunner = run_process) -> int:
    """Start a session for ``options``; returns the process exit status.

    Raises ``StartupError`` before any terminal state is touched when the
    repository cannot be opened.
    """
    ctx = resolve_repo(options.path, runner=runner)
    config = load_app_config(options.config_path)
    overrides: dict[str, object] = {}
    if options.context_lines is not None:
        overrides["context_lines"] = options.context_lines
    try:
        keys = parse_keys(options.keys)
    except ValueError as exc:
        raise StartupError(f"--keys: {exc}") from exc

    interactive = not options.print_only
    if interactive and not os.isatty(sys.stdin.fileno()):
        raise StartupError("lazyrepo needs an interactive terminal (try --print)")

    app = LazyRepoApp(
        ctx,
        config,
        runner=runner,
        theme=options.theme,
        style=options.style,
        no_color=options.no_color,
        config_path=options.config_path,
        overrides=overrides,
    )
    try:
        app.open_status()
        if options.print_only:
            app.replay(keys)
            width = options.width or shutil.get_terminal_size((100, 30)).columns
            rows = app.render(width, None)
            reset = app.theme.reset
            sys.stdout.write("".join(f"{row}{reset}\n" for row in rows))
            sys.stdout.flush()
            return 0

        terminal = TerminalController(sys.stdin.fileno(), sys.stdout.fileno())
        app.terminal = terminal
        if keys:
            app.replay(keys)
            if app.state.quit:
                return 0
        run_main_loop(
            app.state,
            terminal,
            sys.stdin.fileno(),
            RuntimeLoopTiming(),
            RuntimeLoopCallbacks(
                tick=app.tick,
                render=app.render,
                handle_key=app.handle_key,
                report_failure=app.report_failure,
            ),
        )
    finally:
        app.close()
    return 0


__all__ = [
    "LaunchOptions",
    "LazyRepoApp",
    "error_lines",
    "run_app",
]
