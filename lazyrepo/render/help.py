"""Help overlay and chord-menu content.

Both are generated from the live binding table, so overrides loaded from the
config file show up without any extra bookkeeping.
"""

from __future__ import annotations

from ..commands.actions import ACTION_INFO, ActionName, Scope, is_applicable
from ..input.bindings import BindingTable
from ..input.keys import format_chord
from ..model.types import ItemKind
from .theme import UITheme

MENU_COLUMN_WIDTH = 26


def _group_by_action(
    table: dict[tuple[str, ...], ActionName],
) -> list[tuple[ActionName, list[str]]]:
    grouped: dict[ActionName, list[str]] = {}
    for chord, name in table.items():
        grouped.setdefault(name, []).append(format_chord(chord))
    order = list(ActionName)
    return sorted(((name, sorted(keys)) for name, keys in grouped.items()), key=lambda item: order.index(item[0]))


def help_lines(
    bindings: BindingTable,
    screen: str,
    kind: ItemKind | None,
    theme: UITheme,
) -> list[str]:
    """Bindings of the focused context: item actions first, then global ones."""
    item = kind.value if kind is not None else "*"
    effective = bindings.effective(screen, item)
    item_rows: list[str] = []
    global_rows: list[str] = []
    for name, keys in _group_by_action(effective):
        info = ACTION_INFO[name]
        row = f"  {theme.menu_key}{', '.join(keys):<14}{theme.reset} {info.description}"
        if info.scope is Scope.ITEM:
            if is_applicable(name, kind):
                item_rows.append(row)
        else:
            global_rows.append(row)

    target = kind.value.replace("_", " ") if kind is not None else "nothing focused"
    lines = [f"{theme.help_heading}Help: {screen} / {target}{theme.reset}", ""]
    if item_rows:
        lines.append(f"{theme.help_heading}Item{theme.reset}")
        lines.extend(item_rows)
        lines.append("")
    lines.append(f"{theme.help_heading}General{theme.reset}")
    lines.extend(global_rows)
    lines.append("")
    lines.append(f"{theme.dim}Press ? or esc to close{theme.reset}")
    return lines


def menu_lines(rows: list[tuple[str, str]], width: int, theme: UITheme) -> list[str]:
    """Lay chord continuations out in columns across ``width``."""
    if not rows:
        return []
    columns = max(1, width // MENU_COLUMN_WIDTH)
    cells = [f"{theme.menu_key}{keys:>3}{theme.reset} {description}" for keys, description in rows]
    lines: list[str] = []
    for start in range(0, len(cells), columns):
        chunk = cells[start : start + columns]
        padded = []
        for cell, (keys, description) in zip(chunk, rows[start : start + columns]):
            visible = len(f"{keys:>3} {description}")
            padded.append(cell + " " * max(1, MENU_COLUMN_WIDTH - visible))
        lines.append("".join(padded).rstrip())
    return lines


__all__ = [
    "help_lines",
    "menu_lines",
]
