"""Cursor, expansion, and selection state over an ``ItemTree``.

State is stored as token addresses and token-keyed overrides, never as row
indexes, so it can be carried onto the tree built from the next snapshot.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..errors import InvalidSelection
from .tree import ROOT_TOKEN, ItemNode, ItemTree
from .types import (
    FILE_ITEM_KINDS,
    HUNK_ITEM_KINDS,
    LINE_ITEM_KINDS,
    Address,
    Granularity,
    ItemKind,
    Selection,
)

logger = logging.getLogger(__name__)


class Direction(Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    NEXT_LINE = "next_line"
    PREVIOUS_LINE = "previous_line"
    PARENT = "parent"
    FIRST = "first"
    LAST = "last"
    HALF_PAGE_DOWN = "half_page_down"
    HALF_PAGE_UP = "half_page_up"


GRANULARITY_KINDS = {
    Granularity.FILE: FILE_ITEM_KINDS,
    Granularity.HUNK: HUNK_ITEM_KINDS,
    Granularity.LINE: LINE_ITEM_KINDS,
}

# Kinds whose children are shown until the user collapses them.
EXPANDED_BY_DEFAULT = frozenset({ItemKind.SECTION}) | HUNK_ITEM_KINDS


def granularity_for(kind: ItemKind) -> Granularity | None:
    for granularity, kinds in GRANULARITY_KINDS.items():
        if kind in kinds:
            return granularity
    return None


class NavigationEngine:
    """Cursor plus selection plus expansion for one screen's tree."""

    def __init__(self, tree: ItemTree, page_size: int = 20) -> None:
        self.tree = tree
        self.page_size = max(2, page_size)
        self._expanded: dict[str, bool] = {}
        self._selection: Selection | None = None
        self._anchor: Address | None = None
        rows = self.visible_rows()
        self._cursor: str = rows[0] if rows else ROOT_TOKEN

    # Cursor

    @property
    def cursor(self) -> str:
        return self._cursor

    @property
    def cursor_address(self) -> Address:
        return self.tree.address_of(self._cursor)

    def focused(self) -> ItemNode | None:
        if self._cursor == ROOT_TOKEN:
            return None
        return self.tree.node(self._cursor)

    def is_expanded(self, node: ItemNode) -> bool:
        override = self._expanded.get(node.token)
        if override is not None:
            return override
        return node.kind in EXPANDED_BY_DEFAULT

    def visible_rows(self) -> list[str]:
        return self.tree.visible_tokens(self.is_expanded)

    def move_to(self, token: str) -> None:
        """Put the cursor on ``token``, expanding its ancestors."""
        node = self.tree.node(token)
        parent = node.parent
        while parent is not None and parent != ROOT_TOKEN:
            self._expanded[parent] = True
            parent = self.tree.node(parent).parent
        self._cursor = token
        self._update_range()

    def _ensure_cursor_visible(self, rows: list[str]) -> None:
        if self._cursor in rows:
            return
        current: str | None = self._cursor
        while current is not None and current not in rows:
            current = self.tree.node(current).parent
        if current is None or current == ROOT_TOKEN:
            self._cursor = rows[0] if rows else ROOT_TOKEN
        else:
            self._cursor = current

    def move_cursor(self, direction: Direction) -> bool:
        """Move the cursor; returns ``True`` when it changed."""
        rows = self.visible_rows()
        if not rows:
            self._cursor = ROOT_TOKEN
            return False
        self._ensure_cursor_visible(rows)
        before = self._cursor
        index = rows.index(self._cursor)

        def is_item(token: str) -> bool:
            return self.tree.node(token).kind not in LINE_ITEM_KINDS

        if direction is Direction.NEXT:
            for token in rows[index + 1 :]:
                if is_item(token):
                    self._cursor = token
                    break
        elif direction is Direction.PREVIOUS:
            for token in reversed(rows[:index]):
                if is_item(token):
                    self._cursor = token
                    break
        elif direction is Direction.NEXT_LINE:
            self._cursor = rows[min(len(rows) - 1, index + 1)]
        elif direction is Direction.PREVIOUS_LINE:
            self._cursor = rows[max(0, index - 1)]
        elif direction is Direction.PARENT:
            parent = self.tree.node(self._cursor).parent
            if parent is not None and parent != ROOT_TOKEN:
                self._cursor = parent
        elif direction is Direction.FIRST:
            self._cursor = rows[0]
        elif direction is Direction.LAST:
            self._cursor = rows[-1]
        elif direction is Direction.HALF_PAGE_DOWN:
            self._cursor = rows[min(len(rows) - 1, index + self.page_size // 2)]
        elif direction is Direction.HALF_PAGE_UP:
            self._cursor = rows[max(0, index - self.page_size // 2)]

        self._update_range()
        return self._cursor != before

    # Expansion

    def toggle_expand(self, address: Address | None = None) -> bool:
        """Flip expansion of the addressed node (cursor by default)."""
        token = self.tree.resolve(address) if address is not None else self._cursor
        if token == ROOT_TOKEN:
            return False
        node = self.tree.node(token)
        if not node.children:
            return False
        expanded = not self.is_expanded(node)
        self._expanded[token] = expanded
        if not expanded and self.tree.is_ancestor(token, self._cursor):
            self._cursor = token
        return True

    def expand_all(self) -> None:
        for node in self.tree.nodes.values():
            if node.children and node.token != ROOT_TOKEN:
                self._expanded[node.token] = True

    def collapse_all(self) -> None:
        for node in self.tree.nodes.values():
            if node.children and node.token != ROOT_TOKEN:
                self._expanded[node.token] = False
        self._ensure_cursor_visible(self.visible_rows())

    # Selection

    def _validate(self, tokens: list[str], granularity: Granularity) -> None:
        allowed = GRANULARITY_KINDS[granularity]
        parents = {self.tree.node(token).parent for token in tokens}
        if len(parents) != 1:
            raise InvalidSelection("selection must share a single parent")
        for token in tokens:
            kind = self.tree.node(token).kind
            if kind not in allowed:
                raise InvalidSelection(f"{kind.value} cannot be selected at {granularity.value} granularity")
        siblings = self.tree.node(parents.pop() or ROOT_TOKEN).children
        positions = sorted(siblings.index(token) for token in tokens)
        if positions[-1] - positions[0] + 1 != len(positions):
            raise InvalidSelection("selection must be one contiguous run")

    def set_selection(self, addresses: list[Address] | frozenset[Address], granularity: Granularity) -> Selection | None:
        """Replace the selection; raises ``InvalidSelection`` on a bad run."""
        addresses = list(dict.fromkeys(addresses))
        if not addresses:
            self._selection = None
            return None
        tokens: list[str] = []
        for address in addresses:
            token = address[-1] if address else ROOT_TOKEN
            if token not in self.tree or self.tree.address_of(token) != tuple(address):
                raise InvalidSelection(f"unknown address {'/'.join(address)}")
            tokens.append(token)
        self._validate(tokens, granularity)
        self._selection = Selection(frozenset(tuple(address) for address in addresses), granularity)
        return self._selection

    def current_selection(self) -> Selection | None:
        """Explicit selection, else the focused node at its own granularity."""
        if self._selection is not None:
            return self._selection
        node = self.focused()
        if node is None:
            return None
        granularity = granularity_for(node.kind)
        if granularity is None:
            return None
        return Selection(frozenset({self.cursor_address}), granularity)

    def has_explicit_selection(self) -> bool:
        return self._selection is not None

    def selected_tokens(self) -> list[str]:
        """Tokens of the current selection in sibling order."""
        selection = self.current_selection()
        if selection is None:
            return []
        tokens = [address[-1] for address in selection.addresses]
        parent = self.tree.node(tokens[0]).parent or ROOT_TOKEN
        siblings = self.tree.node(parent).children
        return sorted(tokens, key=siblings.index)

    def begin_range(self) -> bool:
        """Anchor a contiguous range at the cursor; moves extend it."""
        node = self.focused()
        if node is None or granularity_for(node.kind) is None:
            return False
        self._anchor = self.cursor_address
        self._update_range()
        return True

    def has_range_anchor(self) -> bool:
        return self._anchor is not None

    def clear_selection(self) -> None:
        self._selection = None
        self._anchor = None

    def _update_range(self) -> None:
        if self._anchor is None:
            return
        anchor_token = self._anchor[-1]
        anchor = self.tree.get(anchor_token)
        cursor = self.focused()
        if anchor is None or cursor is None:
            return
        if cursor.parent != anchor.parent or granularity_for(cursor.kind) != granularity_for(anchor.kind):
            return
        siblings = self.tree.node(anchor.parent or ROOT_TOKEN).children
        start, end = sorted((siblings.index(anchor_token), siblings.index(cursor.token)))
        run = [self.tree.address_of(token) for token in siblings[start : end + 1]]
        granularity = granularity_for(anchor.kind)
        if granularity is not None:
            self.set_selection(run, granularity)

    # Refresh

    def replace_tree(self, tree: ItemTree) -> None:
        """Adopt ``tree`` and re-resolve cursor, selection, and range anchor."""
        old_address = self.cursor_address
        self.tree = tree
        self._expanded = {token: value for token, value in self._expanded.items() if token in tree}

        resolved = tree.resolve(old_address)
        rows = self.visible_rows()
        if resolved == ROOT_TOKEN:
            # The root has no row of its own; land on the first one.
            self._cursor = rows[0] if rows else ROOT_TOKEN
        else:
            self._cursor = resolved
            self._ensure_cursor_visible(rows)

        if self._anchor is not None and tree.resolve(self._anchor) != self._anchor[-1]:
            self._anchor = None

        previous = self._selection
        self._selection = None
        if previous is not None:
            survivors = [address for address in previous.addresses if tree.resolve(address) == address[-1]]
            try:
                self.set_selection(survivors, previous.granularity)
            except InvalidSelection:
                logger.debug("dropping selection that no longer forms a valid run")
                self._selection = None


__all__ = [
    "Direction",
    "EXPANDED_BY_DEFAULT",
    "GRANULARITY_KINDS",
    "NavigationEngine",
    "granularity_for",
]
