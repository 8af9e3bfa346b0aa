"""Key-chord state machine producing ``Action`` values.

Modes: idle, chord pending (a bound prefix was typed), prompt (collecting a
text argument), confirm (waiting for ``y`` on a destructive action). Each
completed chord yields at most one ``Action``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import NotApplicable
from ..input.keys import format_chord, normalize_key
from .actions import ACTION_INFO, Action, ActionName, is_applicable
from .ops import OpContext, build_action, check_preconditions, prompt_default

if TYPE_CHECKING:
    from ..input.bindings import BindingTable

logger = logging.getLogger(__name__)

DEFAULT_CHORD_TIMEOUT_SECONDS = 1.5
CANCEL_KEYS = frozenset({"ESC", "CTRL_C", "CTRL_G"})
SUBMIT_KEYS = frozenset({"ENTER_CR"})


class Mode(Enum):
    IDLE = "idle"
    CHORD_PENDING = "chord_pending"
    PROMPT = "prompt"
    CONFIRM = "confirm"


class OutcomeKind(Enum):
    PENDING = "pending"
    ACTION = "action"
    UNBOUND = "unbound"
    HINT = "hint"
    PROMPT = "prompt"
    CONFIRM = "confirm"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DispatchOutcome:
    kind: OutcomeKind
    action: Action | None = None
    message: str = ""


class CommandDispatcher:
    """Turns key tokens into actions for the focused screen and item."""

    def __init__(
        self,
        bindings: BindingTable,
        *,
        chord_timeout: float = DEFAULT_CHORD_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bindings = bindings
        self.chord_timeout = chord_timeout
        self._clock = clock
        self.mode = Mode.IDLE
        self.pending: tuple[str, ...] = ()
        self._pending_since = 0.0
        self._pending_context: OpContext | None = None
        self._prompt_action: ActionName | None = None
        self.prompt_label = ""
        self.prompt_buffer = ""
        self._confirm_action: Action | None = None

    # Introspection for rendering

    @property
    def confirm_message(self) -> str:
        if self._confirm_action is None:
            return ""
        return self._confirm_action.confirm or ""

    def menu(self, context: OpContext) -> list[tuple[str, str]]:
        """Continuations of the pending prefix as (keys, description) rows."""
        if self.mode is not Mode.CHORD_PENDING:
            return []
        rows: list[tuple[str, str]] = []
        item = context.kind.value if context.kind is not None else "*"
        for chord, name in self.bindings.continuations(context.screen, item, self.pending):
            rows.append((format_chord(chord[len(self.pending) :]), ACTION_INFO[name].description))
        return rows

    def reset(self) -> None:
        self.mode = Mode.IDLE
        self.pending = ()
        self._pending_context = None
        self._prompt_action = None
        self.prompt_label = ""
        self.prompt_buffer = ""
        self._confirm_action = None

    def set_bindings(self, bindings: BindingTable) -> None:
        self.bindings = bindings
        self.reset()

    # Timing

    def tick(self, now: float | None = None) -> bool:
        """Expire a pending chord; returns ``True`` if one was discarded."""
        if self.mode is not Mode.CHORD_PENDING:
            return False
        now = self._clock() if now is None else now
        if now - self._pending_since < self.chord_timeout:
            return False
        logger.debug("chord %s timed out", format_chord(self.pending))
        self.reset()
        return True

    # Key handling

    def handle_key(self, key: str, context: OpContext) -> DispatchOutcome:
        key = normalize_key(key)
        if self.mode is Mode.CONFIRM:
            return self._handle_confirm(key)
        if self.mode is Mode.PROMPT:
            return self._handle_prompt(key)

        if self.mode is Mode.CHORD_PENDING:
            self.tick()
        if self.mode is Mode.CHORD_PENDING and key in CANCEL_KEYS:
            self.reset()
            return DispatchOutcome(OutcomeKind.CANCELLED)

        chord = (*self.pending, key)
        item = context.kind.value if context.kind is not None else "*"
        name = self.bindings.lookup(context.screen, item, chord)
        if name is None and self.bindings.is_prefix(context.screen, item, chord):
            self.mode = Mode.CHORD_PENDING
            self.pending = chord
            self._pending_since = self._clock()
            return DispatchOutcome(OutcomeKind.PENDING)

        self.reset()
        if name is None:
            return DispatchOutcome(OutcomeKind.UNBOUND, message=f"{format_chord(chord)} is undefined")
        return self._complete(name, context)

    def _complete(self, name: ActionName, context: OpContext) -> DispatchOutcome:
        info = ACTION_INFO[name]
        if not is_applicable(name, context.kind):
            target = context.focused.label if context.focused is not None else "nothing"
            message = f"{info.description}: not applicable to {target}"
            logger.debug("dispatch %s ignored on %s", name.value, context.kind)
            return DispatchOutcome(OutcomeKind.HINT, message=message)
        try:
            check_preconditions(name, context)
        except NotApplicable as exc:
            return DispatchOutcome(OutcomeKind.HINT, message=str(exc))
        if info.prompt is not None:
            self.mode = Mode.PROMPT
            self._prompt_action = name
            self._pending_context = context
            self.prompt_label = info.prompt
            self.prompt_buffer = prompt_default(name, context.focused)
            return DispatchOutcome(OutcomeKind.PROMPT, message=info.prompt)
        return self._finalize(name, context, None)

    def _finalize(self, name: ActionName, context: OpContext, value: str | None) -> DispatchOutcome:
        try:
            action = build_action(name, context, value)
        except NotApplicable as exc:
            self.reset()
            return DispatchOutcome(OutcomeKind.HINT, message=str(exc))
        if action.confirm is not None:
            self.mode = Mode.CONFIRM
            self._confirm_action = action
            return DispatchOutcome(OutcomeKind.CONFIRM, message=action.confirm)
        self.reset()
        logger.debug("dispatch %s", name.value)
        return DispatchOutcome(OutcomeKind.ACTION, action=action)

    def _handle_confirm(self, key: str) -> DispatchOutcome:
        action = self._confirm_action
        self.reset()
        if key == "y" and action is not None:
            logger.debug("confirmed %s", action.name.value)
            return DispatchOutcome(OutcomeKind.ACTION, action=action)
        return DispatchOutcome(OutcomeKind.CANCELLED, message="Cancelled")

    def _handle_prompt(self, key: str) -> DispatchOutcome:
        if key in CANCEL_KEYS:
            self.reset()
            return DispatchOutcome(OutcomeKind.CANCELLED, message="Cancelled")
        if key in SUBMIT_KEYS:
            name = self._prompt_action
            context = self._pending_context or OpContext()
            value = self.prompt_buffer
            self.mode = Mode.IDLE
            self.prompt_label = ""
            self.prompt_buffer = ""
            self._prompt_action = None
            self._pending_context = None
            if name is None:
                return DispatchOutcome(OutcomeKind.CANCELLED)
            return self._finalize(name, context, value)
        if key == "BACKSPACE":
            self.prompt_buffer = self.prompt_buffer[:-1]
        elif key == "CTRL_U":
            self.prompt_buffer = ""
        elif len(key) == 1 and key.isprintable():
            self.prompt_buffer += key
        return DispatchOutcome(OutcomeKind.PROMPT, message=self.prompt_label)


__all__ = [
    "CommandDispatcher",
    "DispatchOutcome",
    "Mode",
    "OutcomeKind",
]
