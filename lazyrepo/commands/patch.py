"""Patch text construction for whole-file, whole-hunk, and line selections.

Patches are built in the orientation of the diff they came from and fed to
``git apply`` (optionally ``--reverse``). With ``reverse=False`` the old side
of each hunk is what the patch is applied onto; with ``reverse=True`` it is
the new side. That side is always emitted in full, so only the counts and
start of the other side need recomputing.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from ..git.diff_parser import NO_NEWLINE_MARKER
from ..model.types import ChangeKind, FileEntry, Hunk, LineTag, format_range

_DROPPED_HEADER_PREFIXES = ("new file mode ", "deleted file mode ", "index ")


def is_patchable(hunk: Hunk) -> bool:
    """Raw fallbacks and conflict hunks never go through ``git apply``."""
    return not hunk.is_raw and not hunk.is_conflict


def _restrict_hunk(
    hunk: Hunk,
    selected: frozenset[int] | None,
    reverse: bool,
) -> tuple[list[str], int, int, int]:
    """Emit body lines for ``hunk`` restricted to ``selected`` line offsets.

    Returns ``(body, old_count, new_count, selected_changes)``. ``selected``
    of ``None`` means every line.

    A "no newline" marker may only follow the last line of a side. When a
    restriction leaves lines of that side after a marked line, the marked line
    gains its newline on that side.
    """
    rows: list[tuple[str, str, bool]] = []
    changes = 0
    # Unselected lines on the side being patched stay as context; the rest go.
    keep_as_context = LineTag.ADDITION if reverse else LineTag.DELETION
    for line in hunk.lines:
        chosen = selected is None or line.offset in selected
        if line.tag is LineTag.CONTEXT or (not chosen and line.tag is keep_as_context):
            rows.append((" ", line.text, line.missing_newline))
        elif chosen:
            rows.append((line.tag.value, line.text, line.missing_newline))
            changes += 1

    body: list[str] = []
    old_count = new_count = 0
    for index, (prefix, text, missing_newline) in enumerate(rows):
        later = {row[0] for row in rows[index + 1 :]}
        if missing_newline and prefix == " " and "+" in later:
            # Unchanged on the old side; on the new side it is no longer last.
            body.extend([f"-{text}", NO_NEWLINE_MARKER, f"+{text}"])
            old_count += 1
            new_count += 1
            continue
        if missing_newline and prefix == "-" and " " in later:
            missing_newline = False
        body.append(f"{prefix}{text}")
        if prefix != "+":
            old_count += 1
        if prefix != "-":
            new_count += 1
        if missing_newline:
            body.append(NO_NEWLINE_MARKER)
    return body, old_count, new_count, changes


def _hunk_header(hunk: Hunk, old_count: int, new_count: int, delta: int, reverse: bool) -> str:
    """Format the ``@@`` line; ``delta`` is the running count shift of earlier hunks."""
    if reverse:
        new_start = hunk.new_start
        old_start = new_start + delta
        if new_count == 0:
            old_start += 1
        if old_count == 0:
            old_start -= 1
    else:
        old_start = hunk.old_start
        new_start = old_start + delta
        if old_count == 0:
            new_start += 1
        if new_count == 0:
            new_start -= 1
    header = f"@@ -{format_range(old_start, old_count)} +{format_range(new_start, new_count)} @@"
    if hunk.section_text:
        header = f"{header} {hunk.section_text}"
    return header


def _swap_side(marker_value: str, source: str, target: str) -> str:
    if marker_value.startswith(f'"{source}'):
        return f'"{target}{marker_value[len(source) + 1 :]}'
    if marker_value.startswith(source):
        return f"{target}{marker_value[len(source) :]}"
    return marker_value


def patch_header(file: FileEntry, *, partial: bool) -> list[str]:
    """Return the file header, rewritten to a plain modification when ``partial``."""
    header = list(file.header_lines)
    if not partial or file.change not in {ChangeKind.ADDED, ChangeKind.DELETED}:
        return header

    minus = next((line[4:] for line in header if line.startswith("--- ")), None)
    plus = next((line[4:] for line in header if line.startswith("+++ ")), None)
    rewritten: list[str] = []
    for line in header:
        if line.startswith(_DROPPED_HEADER_PREFIXES):
            continue
        if line == "--- /dev/null" and plus is not None:
            line = f"--- {_swap_side(plus, 'b/', 'a/')}"
        elif line == "+++ /dev/null" and minus is not None:
            line = f"+++ {_swap_side(minus, 'a/', 'b/')}"
        rewritten.append(line)
    return rewritten


def _assemble(
    file: FileEntry,
    restrictions: Sequence[tuple[Hunk, frozenset[int] | None]],
    reverse: bool,
) -> str | None:
    if file.is_binary:
        return None
    total_changes = sum(1 for hunk in file.hunks for line in hunk.lines if line.is_change)
    body: list[str] = []
    delta = 0
    emitted_changes = 0
    for hunk, selected in sorted(restrictions, key=lambda item: item[0].new_start if reverse else item[0].old_start):
        if not is_patchable(hunk):
            raise ValueError(f"hunk {hunk.header!r} cannot be applied as a patch")
        lines, old_count, new_count, changes = _restrict_hunk(hunk, selected, reverse)
        if changes == 0:
            continue
        body.append(_hunk_header(hunk, old_count, new_count, delta, reverse))
        body.extend(lines)
        delta += (old_count - new_count) if reverse else (new_count - old_count)
        emitted_changes += changes
    if emitted_changes == 0:
        return None
    header = patch_header(file, partial=emitted_changes < total_changes)
    return "\n".join([*header, *body]) + "\n"


def build_hunks_patch(file: FileEntry, hunks: Iterable[Hunk], *, reverse: bool = False) -> str | None:
    """Patch containing ``hunks`` of ``file`` in full."""
    return _assemble(file, [(hunk, None) for hunk in hunks], reverse)


def build_file_patch(file: FileEntry, *, reverse: bool = False) -> str | None:
    return build_hunks_patch(file, file.hunks, reverse=reverse)


def build_hunk_patch(file: FileEntry, hunk: Hunk, *, reverse: bool = False) -> str | None:
    return build_hunks_patch(file, [hunk], reverse=reverse)


def build_partial_patch(
    file: FileEntry,
    hunk: Hunk,
    offsets: Iterable[int],
    *,
    reverse: bool = False,
) -> str | None:
    """Patch restricted to the lines of ``hunk`` at ``offsets``.

    Returns ``None`` when the selection contains no added or deleted line.
    """
    return _assemble(file, [(hunk, frozenset(offsets))], reverse)


__all__ = [
    "build_file_patch",
    "build_hunk_patch",
    "build_hunks_patch",
    "build_partial_patch",
    "is_patchable",
    "patch_header",
]
