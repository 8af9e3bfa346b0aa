"""Frame rendering for the top screen.

Builds a list of ANSI rows: the item rows of the focused screen (or the help
overlay), then the error pane, chord menu, prompt line, and status bar.
Rendering never mutates navigation state beyond the screen's scroll offset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..model.navigation import NavigationEngine
from ..model.tree import ItemNode, ItemTree
from ..model.types import (
    ChangeKind,
    CommitEntry,
    FILE_ITEM_KINDS,
    HUNK_ITEM_KINDS,
    HeadInfo,
    ItemKind,
    LINE_ITEM_KINDS,
    Line,
    LineTag,
    RefEntry,
    Section,
    StashEntry,
)
from .ansi import clip_ansi_line, pad_ansi_line
from .help import help_lines, menu_lines
from .highlight import DEFAULT_STYLE, highlight_line, sanitize_terminal_text
from .theme import DEFAULT_THEME, UITheme

if TYPE_CHECKING:
    from ..runtime.screen import Screen

SPINNER_FRAMES = "|/-\\"
COLLAPSED_MARKER = "…"
MAX_ERROR_ROWS = 6

_CHANGE_CODES = {
    ChangeKind.ADDED: "new file",
    ChangeKind.MODIFIED: "modified",
    ChangeKind.DELETED: "deleted",
    ChangeKind.RENAMED: "renamed",
    ChangeKind.COPIED: "copied",
    ChangeKind.TYPE_CHANGED: "typechange",
    ChangeKind.UNMERGED: "unmerged",
    ChangeKind.UNTRACKED: "",
}


@dataclass
class RenderContext:
    """Everything one frame needs; ``height=None`` renders every row."""

    screen: Screen
    width: int = 100
    height: int | None = 30
    theme: UITheme = DEFAULT_THEME
    style: str = DEFAULT_STYLE
    repo_name: str = ""
    head: HeadInfo = field(default_factory=HeadInfo)
    busy_label: str = ""
    spinner_frame: int = 0
    pending_chord: str = ""
    menu: list[tuple[str, str]] = field(default_factory=list)
    prompt_label: str = ""
    prompt_buffer: str = ""
    confirm_message: str = ""
    status_message: str = ""
    error_lines: list[str] = field(default_factory=list)
    help: list[str] | None = None


def _change_color(change: ChangeKind, theme: UITheme) -> str:
    if change in {ChangeKind.ADDED, ChangeKind.UNTRACKED}:
        return theme.change_added
    if change is ChangeKind.DELETED:
        return theme.change_deleted
    return theme.change_other


def _line_row(node: ItemNode, line: Line, theme: UITheme, style: str) -> str:
    path = node.file.path if node.file is not None else ""
    marker = line.tag.value
    if line.tag is LineTag.ADDITION:
        color = theme.addition
    elif line.tag is LineTag.DELETION:
        color = theme.deletion
    else:
        color = ""
    if theme.reset:
        text = highlight_line(line.text, path, style)
    else:
        text = sanitize_terminal_text(line.text)
    suffix = f" {theme.dim}(no newline at end of file){theme.reset}" if line.missing_newline else ""
    return f"{color}{marker}{theme.reset}{text}{theme.reset}{suffix}"


def render_node(node: ItemNode, expanded: bool, theme: UITheme, style: str = DEFAULT_STYLE) -> str:
    """One display row for ``node`` without cursor/selection styling."""
    indent = "  " * max(0, node.depth)
    collapsed = f" {theme.dim}{COLLAPSED_MARKER}{theme.reset}" if node.children and not expanded else ""
    payload = node.payload
    kind = node.kind

    if kind is ItemKind.HEADER:
        return f"{theme.header}{sanitize_terminal_text(node.label)}{theme.reset}"
    if kind is ItemKind.SECTION:
        count = f" ({len(payload.entries)})" if isinstance(payload, Section) else ""
        return f"{theme.section}{node.label}{count}{theme.reset}{collapsed}"
    if kind in FILE_ITEM_KINDS and node.file is not None:
        entry = node.file
        code = _CHANGE_CODES[entry.change]
        label = f"{_change_color(entry.change, theme)}{code:<11}{theme.reset}" if code else ""
        binary = f" {theme.dim}(binary){theme.reset}" if entry.is_binary else ""
        return f"{indent}{label}{theme.file}{sanitize_terminal_text(entry.display_path)}{theme.reset}{binary}{collapsed}"
    if kind in HUNK_ITEM_KINDS:
        if kind is ItemKind.RAW_HUNK:
            return f"{indent}{theme.raw}{sanitize_terminal_text(node.label)} (unparsed){theme.reset}{collapsed}"
        color = theme.conflict if kind is ItemKind.CONFLICT_HUNK else theme.hunk_header
        return f"{indent}{color}{sanitize_terminal_text(node.label)}{theme.reset}{collapsed}"
    if kind in LINE_ITEM_KINDS and isinstance(payload, Line):
        return f"{indent}{_line_row(node, payload, theme, style)}"
    if isinstance(payload, CommitEntry):
        refs = f" {theme.commit_refs}({', '.join(payload.refs)}){theme.reset}" if payload.refs else ""
        subject = sanitize_terminal_text(payload.subject)
        meta = f" {theme.dim}{payload.author}, {payload.date}{theme.reset}" if payload.author else ""
        return f"{indent}{theme.commit_oid}{payload.short_oid}{theme.reset}{refs} {subject}{meta}"
    if isinstance(payload, StashEntry):
        return f"{indent}{theme.commit_oid}{payload.ref}{theme.reset} {sanitize_terminal_text(payload.subject)}"
    if isinstance(payload, RefEntry):
        if payload.is_head:
            mark = f"{theme.ref_head}{'?' if payload.name == 'HEAD' else '*'}{theme.reset} "
        else:
            mark = "  "
        upstream = f" {theme.dim}-> {payload.upstream}{theme.reset}" if payload.upstream else ""
        oid = f" {theme.commit_oid}{payload.short_oid}{theme.reset}" if payload.short_oid and payload.name != "HEAD" else ""
        return f"{indent}{mark}{payload.short_name}{oid}{upstream}"
    return f"{indent}{sanitize_terminal_text(node.label)}"


def _decorate(row: str, style: str, width: int | None, theme: UITheme) -> str:
    if not style:
        return row
    body = pad_ansi_line(row, width) if width else row
    # Re-apply the row style after every reset emitted inside the row.
    if theme.reset:
        body = body.replace(theme.reset, theme.reset + style)
    return f"{style}{body}{theme.reset}"


def render_rows(
    tree: ItemTree,
    nav: NavigationEngine,
    tokens: list[str],
    theme: UITheme,
    *,
    width: int | None = None,
    style: str = DEFAULT_STYLE,
) -> list[str]:
    """Render ``tokens`` with cursor, selection, and cursor-subtree highlighting."""
    selected = set(nav.selected_tokens()) if nav.has_explicit_selection() else set()
    cursor = nav.cursor
    plain_marks = not theme.reverse
    rows: list[str] = []
    for token in tokens:
        node = tree.node(token)
        row = render_node(node, nav.is_expanded(node), theme, style)
        if plain_marks:
            if token == cursor:
                prefix = ">"
            elif token in selected:
                prefix = "+"
            else:
                prefix = " "
            rows.append(f"{prefix}{row}")
            continue
        if token == cursor:
            rows.append(_decorate(row, theme.reverse, width, theme))
        elif token in selected:
            rows.append(_decorate(row, theme.selected, width, theme))
        elif cursor in tree and tree.is_ancestor(cursor, token):
            rows.append(_decorate(row, theme.subtree, width, theme))
        else:
            rows.append(row)
    return rows


def _status_bar(ctx: RenderContext) -> str:
    theme = ctx.theme
    parts = [ctx.repo_name, ctx.head.describe(), f"[{ctx.screen.title}]"]
    if ctx.screen.loading:
        parts.append("loading")
    if ctx.busy_label:
        spinner = SPINNER_FRAMES[ctx.spinner_frame % len(SPINNER_FRAMES)]
        parts.append(f"{theme.busy}{spinner} {ctx.busy_label}{theme.reset}{theme.status_bar}")
    if ctx.pending_chord:
        parts.append(f"{ctx.pending_chord} -")
    if ctx.status_message:
        parts.append(ctx.status_message)
    text = " " + "  ".join(part for part in parts if part)
    if not theme.status_bar:
        return text
    return f"{theme.status_bar}{pad_ansi_line(text, ctx.width)}{theme.reset}"


def _editor_rows(ctx: RenderContext) -> list[str]:
    draft = ctx.screen.draft
    if draft is None:
        return []
    theme = ctx.theme
    lines = draft.lines()
    rows = [f"{theme.section}Commit message{' (amend)' if draft.amend else ''}{theme.reset}"]
    for index, line in enumerate(lines):
        cursor = f"{theme.reverse} {theme.reset}" if index == len(lines) - 1 else ""
        rows.append(f"  {sanitize_terminal_text(line)}{cursor}")
    rows.append(f"{theme.dim}ctrl+s commit  esc abort{theme.reset}")
    rows.append("")
    return rows


def _footer(ctx: RenderContext) -> list[str]:
    theme = ctx.theme
    footer: list[str] = []
    if ctx.error_lines:
        shown = ctx.error_lines[:MAX_ERROR_ROWS]
        footer.extend(f"{theme.error}{sanitize_terminal_text(line)}{theme.reset}" for line in shown)
    footer.extend(menu_lines(ctx.menu, ctx.width, theme))
    if ctx.confirm_message:
        footer.append(f"{theme.prompt}{ctx.confirm_message}{theme.reset} (y/N)")
    elif ctx.prompt_label:
        footer.append(f"{theme.prompt}{ctx.prompt_label}:{theme.reset} {sanitize_terminal_text(ctx.prompt_buffer)}")
    footer.append(_status_bar(ctx))
    return footer


def render_frame(ctx: RenderContext) -> list[str]:
    """Return the rows of one frame, each clipped to ``ctx.width`` columns."""
    screen = ctx.screen
    footer = _footer(ctx)
    head_rows = _editor_rows(ctx)

    if ctx.help is not None:
        body = list(ctx.help)
        if ctx.height is not None:
            body = body[: max(0, ctx.height - len(footer))]
    else:
        if ctx.height is None:
            tokens = screen.nav.visible_rows()
        else:
            available = max(1, ctx.height - len(footer) - len(head_rows))
            screen.nav.page_size = max(2, available)
            tokens, _start = screen.visible_window(available)
        body = head_rows + render_rows(
            screen.tree,
            screen.nav,
            tokens,
            ctx.theme,
            width=ctx.width,
            style=ctx.style,
        )
        if not tokens and not screen.loading and screen.snapshot is not None and screen.kind.value == "status":
            body.append(f"{ctx.theme.dim}Nothing to commit, working tree clean{ctx.theme.reset}")

    if ctx.height is not None:
        filler = max(0, ctx.height - len(footer) - len(body))
        body.extend([""] * filler)
    return [clip_ansi_line(row, ctx.width) for row in body + footer]


def frame_text(rows: list[str]) -> str:
    """Terminal output for a full redraw of ``rows``."""
    return "\033[H" + "\r\n".join(f"{row}\033[K" for row in rows) + "\033[J"


__all__ = [
    "RenderContext",
    "frame_text",
    "help_lines",
    "render_frame",
    "render_node",
    "render_rows",
]
