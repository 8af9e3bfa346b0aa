"""UI theme definitions and selection helpers.

Themes are UI-only ANSI palettes. Syntax highlighting style for diff line text
remains a separate setting.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UITheme:
    """Semantic ANSI palette used by renderers."""

    name: str
    reset: str
    reverse: str
    selected: str
    subtree: str
    header: str
    section: str
    file: str
    change_added: str
    change_deleted: str
    change_other: str
    hunk_header: str
    addition: str
    deletion: str
    conflict: str
    raw: str
    commit_oid: str
    commit_refs: str
    ref_head: str
    dim: str
    status_bar: str
    busy: str
    error: str
    hint: str
    prompt: str
    menu_key: str
    help_heading: str


DEFAULT_THEME = UITheme(
    name="default",
    reset="\033[0m",
    reverse="\033[7m",
    selected="\033[48;5;238m",
    subtree="\033[48;5;235m",
    header="\033[1;38;5;252m",
    section="\033[1;38;5;81m",
    file="\033[38;5;252m",
    change_added="\033[38;5;42m",
    change_deleted="\033[38;5;203m",
    change_other="\033[38;5;214m",
    hunk_header="\033[38;5;110m",
    addition="\033[38;5;42m",
    deletion="\033[38;5;203m",
    conflict="\033[1;38;5;207m",
    raw="\033[2;38;5;214m",
    commit_oid="\033[38;5;179m",
    commit_refs="\033[1;38;5;44m",
    ref_head="\033[1;38;5;42m",
    dim="\033[2;38;5;250m",
    status_bar="\033[48;5;236;38;5;252m",
    busy="\033[1;38;5;214m",
    error="\033[38;5;203m",
    hint="\033[38;5;229m",
    prompt="\033[1;38;5;81m",
    menu_key="\033[38;5;229m",
    help_heading="\033[1;38;5;81m",
)

OCEAN_THEME = UITheme(
    name="ocean",
    reset="\033[0m",
    reverse="\033[7m",
    selected="\033[48;5;24m",
    subtree="\033[48;5;17m",
    header="\033[1;38;5;153m",
    section="\033[1;38;5;45m",
    file="\033[38;5;252m",
    change_added="\033[38;5;84m",
    change_deleted="\033[38;5;210m",
    change_other="\033[38;5;215m",
    hunk_header="\033[38;5;117m",
    addition="\033[38;5;84m",
    deletion="\033[38;5;210m",
    conflict="\033[1;38;5;213m",
    raw="\033[2;38;5;215m",
    commit_oid="\033[38;5;39m",
    commit_refs="\033[1;38;5;45m",
    ref_head="\033[1;38;5;84m",
    dim="\033[2;38;5;110m",
    status_bar="\033[48;5;23;38;5;153m",
    busy="\033[1;38;5;215m",
    error="\033[38;5;210m",
    hint="\033[38;5;153m",
    prompt="\033[1;38;5;45m",
    menu_key="\033[38;5;153m",
    help_heading="\033[1;38;5;45m",
)

PLAIN_THEME = UITheme(
    name="plain",
    reset="",
    reverse="",
    selected="",
    subtree="",
    header="",
    section="",
    file="",
    change_added="",
    change_deleted="",
    change_other="",
    hunk_header="",
    addition="",
    deletion="",
    conflict="",
    raw="",
    commit_oid="",
    commit_refs="",
    ref_head="",
    dim="",
    status_bar="",
    busy="",
    error="",
    hint="",
    prompt="",
    menu_key="",
    help_heading="",
)

_THEMES: dict[str, UITheme] = {
    DEFAULT_THEME.name: DEFAULT_THEME,
    OCEAN_THEME.name: OCEAN_THEME,
}


def available_theme_names() -> tuple[str, ...]:
    """Return selectable non-plain theme names."""
    return tuple(sorted(_THEMES.keys()))


def normalize_theme_name(name: str | None) -> str:
    """Return a valid theme name, falling back to default."""
    if not name:
        return DEFAULT_THEME.name
    candidate = str(name).strip().lower()
    if candidate in _THEMES:
        return candidate
    return DEFAULT_THEME.name


def resolve_theme(name: str | None, *, no_color: bool = False) -> UITheme:
    """Return concrete theme for requested name and color mode."""
    if no_color:
        return PLAIN_THEME
    return _THEMES[normalize_theme_name(name)]


__all__ = [
    "DEFAULT_THEME",
    "OCEAN_THEME",
    "PLAIN_THEME",
    "UITheme",
    "available_theme_names",
    "normalize_theme_name",
    "resolve_theme",
]
