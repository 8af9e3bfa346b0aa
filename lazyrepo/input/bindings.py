"""Key-binding table: (screen, item kind, chord) -> action.

Defaults are layered with user overrides from the config file. A table is
validated as a whole; an override set that introduces a conflict is rejected
with every problem listed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ..commands.actions import ActionName
from ..errors import BindingConflict
from ..model.types import ItemKind
from .keys import format_chord, parse_chord

logger = logging.getLogger(__name__)

ANY = "*"
SCREEN_NAMES = ("status", "log", "show", "refs")


@dataclass(frozen=True)
class Binding:
    screen: str
    item: str
    chord: tuple[str, ...]
    action: ActionName | None

    @property
    def context(self) -> tuple[str, str]:
        return (self.screen, self.item)


def _b(keys: str, action: ActionName, screen: str = ANY, item: str = ANY) -> Binding:
    return Binding(screen=screen, item=item, chord=parse_chord(keys), action=action)


DEFAULT_BINDINGS: tuple[Binding, ...] = (
    _b("j", ActionName.MOVE_NEXT),
    _b("down", ActionName.MOVE_NEXT),
    _b("k", ActionName.MOVE_PREVIOUS),
    _b("up", ActionName.MOVE_PREVIOUS),
    _b("ctrl+n", ActionName.MOVE_NEXT_LINE),
    _b("ctrl+p", ActionName.MOVE_PREVIOUS_LINE),
    _b("left", ActionName.MOVE_PARENT),
    _b("home", ActionName.MOVE_FIRST),
    _b("end", ActionName.MOVE_LAST),
    _b("ctrl+d", ActionName.HALF_PAGE_DOWN),
    _b("ctrl+u", ActionName.HALF_PAGE_UP),
    _b("pagedown", ActionName.HALF_PAGE_DOWN),
    _b("pageup", ActionName.HALF_PAGE_UP),
    _b("tab", ActionName.TOGGLE_EXPAND),
    _b("+", ActionName.EXPAND_ALL),
    _b("-", ActionName.COLLAPSE_ALL),
    _b("v", ActionName.TOGGLE_RANGE),
    _b("esc", ActionName.CANCEL),
    _b("ctrl+c", ActionName.CANCEL),
    _b("g", ActionName.REFRESH),
    _b("?", ActionName.HELP),
    _b("q", ActionName.QUIT),
    _b("ctrl+r", ActionName.RELOAD_CONFIG),
    _b("enter", ActionName.SHOW),
    _b("y", ActionName.SHOW_REFS),
    _b("l l", ActionName.SHOW_LOG),
    _b("l a", ActionName.SHOW_LOG_ALL),
    _b("s", ActionName.STAGE),
    _b("u", ActionName.UNSTAGE),
    _b("x", ActionName.DISCARD),
    _b("c c", ActionName.COMMIT),
    _b("c a", ActionName.COMMIT_AMEND),
    _b("c e", ActionName.COMMIT_EXTEND),
    _b("c f", ActionName.COMMIT_FIXUP),
    _b("b b", ActionName.CHECKOUT),
    _b("b c", ActionName.CHECKOUT_NEW_BRANCH),
    _b("b k", ActionName.DELETE_BRANCH),
    _b("P p", ActionName.PUSH),
    _b("P f", ActionName.PUSH_FORCE),
    _b("F p", ActionName.PULL),
    _b("f f", ActionName.FETCH),
    _b("f a", ActionName.FETCH_ALL),
    _b("z z", ActionName.STASH),
    _b("z i", ActionName.STASH_INDEX),
    _b("z w", ActionName.STASH_WORKTREE),
    _b("z x", ActionName.STASH_KEEP_INDEX),
    _b("z p", ActionName.STASH_POP),
    _b("z a", ActionName.STASH_APPLY),
    _b("z k", ActionName.STASH_DROP),
    _b("X s", ActionName.RESET_SOFT),
    _b("X m", ActionName.RESET_MIXED),
    _b("X h", ActionName.RESET_HARD),
    _b("r i", ActionName.REBASE_INTERACTIVE),
    _b("r e", ActionName.REBASE_ELSEWHERE),
    _b("r c", ActionName.REBASE_CONTINUE),
    _b("r a", ActionName.REBASE_ABORT),
    _b("r s", ActionName.REBASE_SKIP),
)

_ITEM_NAMES = {kind.value for kind in ItemKind}
_ACTION_NAMES = {name.value: name for name in ActionName}


def _contexts_for(screen: str, item: str) -> list[tuple[str, str]]:
    """Binding contexts consulted for a concrete context, most specific first."""
    return [(screen, item), (screen, ANY), (ANY, item), (ANY, ANY)]


class BindingTable:
    """Validated, layered binding lookup."""

    def __init__(self, bindings: Iterable[Binding] = DEFAULT_BINDINGS) -> None:
        self._by_context: dict[tuple[str, str], dict[tuple[str, ...], ActionName]] = {}
        problems: list[str] = []
        for binding in bindings:
            table = self._by_context.setdefault(binding.context, {})
            existing = table.get(binding.chord)
            if binding.action is None:
                table.pop(binding.chord, None)
                continue
            if existing is not None and existing is not binding.action:
                problems.append(
                    f"{binding.screen}/{binding.item}: {format_chord(binding.chord)!r} bound to both "
                    f"{existing.value} and {binding.action.value}"
                )
                continue
            table[binding.chord] = binding.action
        problems.extend(self._prefix_problems())
        if problems:
            raise BindingConflict(problems)

    def _prefix_problems(self) -> list[str]:
        problems: list[str] = []
        screens = {ANY, *SCREEN_NAMES, *(screen for screen, _item in self._by_context)}
        items = {ANY, *_ITEM_NAMES, *(item for _screen, item in self._by_context)}
        seen: set[tuple[tuple[str, ...], tuple[str, ...]]] = set()
        for screen in sorted(screens):
            for item in sorted(items):
                chords = sorted(self.effective(screen, item))
                for index, chord in enumerate(chords):
                    for other in chords[index + 1 :]:
                        if other[: len(chord)] != chord:
                            break
                        if (chord, other) in seen:
                            continue
                        seen.add((chord, other))
                        problems.append(
                            f"{screen}/{item}: {format_chord(chord)!r} is a prefix of {format_chord(other)!r}"
                        )
        return problems

    def effective(self, screen: str, item: str) -> dict[tuple[str, ...], ActionName]:
        """Chord table for a concrete context; more specific layers win."""
        merged: dict[tuple[str, ...], ActionName] = {}
        for context in reversed(_contexts_for(screen, item)):
            merged.update(self._by_context.get(context, {}))
        return merged

    def lookup(self, screen: str, item: str, chord: tuple[str, ...]) -> ActionName | None:
        return self.effective(screen, item).get(chord)

    def continuations(self, screen: str, item: str, prefix: tuple[str, ...]) -> list[tuple[tuple[str, ...], ActionName]]:
        """Bindings that extend ``prefix`` (strictly longer), sorted by chord."""
        return sorted(
            (
                (chord, action)
                for chord, action in self.effective(screen, item).items()
                if len(chord) > len(prefix) and chord[: len(prefix)] == prefix
            ),
            key=lambda item: item[0],
        )

    def is_prefix(self, screen: str, item: str, chord: tuple[str, ...]) -> bool:
        return bool(self.continuations(screen, item, chord))


def _binding_from_mapping(entry: Mapping[str, object]) -> Binding:
    screen = str(entry.get("screen", ANY) or ANY)
    item = str(entry.get("item", ANY) or ANY)
    if screen != ANY and screen not in SCREEN_NAMES:
        raise ValueError(f"unknown screen {screen!r}")
    if item != ANY and item not in _ITEM_NAMES:
        raise ValueError(f"unknown item kind {item!r}")
    keys = entry.get("keys")
    if not isinstance(keys, (str, list, tuple)):
        raise ValueError("missing 'keys'")
    chord = parse_chord(keys)
    raw_action = entry.get("action")
    if raw_action in (None, "", "none"):
        return Binding(screen, item, chord, None)
    action = _ACTION_NAMES.get(str(raw_action))
    if action is None:
        raise ValueError(f"unknown action {raw_action!r}")
    return Binding(screen, item, chord, action)


def build_binding_table(overrides: Iterable[object] = ()) -> BindingTable:
    """Layer config ``overrides`` over the defaults.

    Raises ``BindingConflict`` listing malformed entries and conflicts.
    """
    parsed: list[Binding] = []
    problems: list[str] = []
    for index, entry in enumerate(overrides):
        if not isinstance(entry, Mapping):
            problems.append(f"binding #{index}: expected an object")
            continue
        try:
            parsed.append(_binding_from_mapping(entry))
        except ValueError as exc:
            problems.append(f"binding #{index}: {exc}")
    if problems:
        raise BindingConflict(problems)

    # An override replaces the default for the same context and chord.
    overridden = {(binding.context, binding.chord) for binding in parsed}
    defaults = [binding for binding in DEFAULT_BINDINGS if (binding.context, binding.chord) not in overridden]
    table = BindingTable([*defaults, *parsed])
    logger.debug("binding table built with %d overrides", len(parsed))
    return table


__all__ = [
    "ANY",
    "Binding",
    "BindingTable",
    "DEFAULT_BINDINGS",
    "SCREEN_NAMES",
    "build_binding_table",
]
