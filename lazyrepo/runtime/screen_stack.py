"""Stack of screens; the top one receives keys and is rendered."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from .screen import Screen

logger = logging.getLogger(__name__)


class ScreenStack:
    """Push/pop with per-screen task cleanup.

    ``on_pop`` receives the popped screen's id so its in-flight read tasks
    can be cancelled and their results dropped.
    """

    def __init__(self, on_pop: Callable[[int], None] | None = None) -> None:
        self._screens: list[Screen] = []
        self._on_pop = on_pop

    def __len__(self) -> int:
        return len(self._screens)

    def __iter__(self) -> Iterator[Screen]:
        return iter(self._screens)

    def __bool__(self) -> bool:
        return bool(self._screens)

    @property
    def top(self) -> Screen:
        if not self._screens:
            raise IndexError("screen stack is empty")
        return self._screens[-1]

    def push(self, screen: Screen) -> Screen:
        self._screens.append(screen)
        logger.debug("push %s #%d (depth %d)", screen.kind.value, screen.screen_id, len(self._screens))
        return screen

    def pop(self) -> Screen | None:
        """Discard the top screen and return the one now focused (``None`` when empty)."""
        if not self._screens:
            return None
        popped = self._screens.pop()
        logger.debug("pop %s #%d", popped.kind.value, popped.screen_id)
        popped.refresh_task = None
        popped.page_task = None
        if self._on_pop is not None:
            self._on_pop(popped.screen_id)
        return self._screens[-1] if self._screens else None

    def find(self, screen_id: int) -> Screen | None:
        for screen in self._screens:
            if screen.screen_id == screen_id:
                return screen
        return None

    def mark_stale(self, *, except_id: int | None = None) -> None:
        """Flag every screen but ``except_id`` for a refresh when revealed."""
        for screen in self._screens:
            if screen.screen_id != except_id:
                screen.stale = True


__all__ = ["ScreenStack"]
