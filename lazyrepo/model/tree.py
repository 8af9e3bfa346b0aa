"""Item tree arena built from a repository snapshot.

Nodes are stored in a flat ``dict`` keyed by content-derived tokens, so an
old and a new tree can be compared by lookup alone.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .types import (
    Address,
    CommitEntry,
    FileEntry,
    Hunk,
    ItemKind,
    RefEntry,
    RepositorySnapshot,
    Section,
    SectionKind,
    StashEntry,
)

ROOT_TOKEN = "root"

_FILE_KIND = {
    SectionKind.UNTRACKED: ItemKind.UNTRACKED_FILE,
    SectionKind.UNSTAGED: ItemKind.UNSTAGED_FILE,
    SectionKind.STAGED: ItemKind.STAGED_FILE,
    SectionKind.UNMERGED: ItemKind.UNMERGED_FILE,
    SectionKind.COMMIT_DIFF: ItemKind.DIFF_FILE,
}
_HUNK_KIND = {
    SectionKind.UNSTAGED: ItemKind.UNSTAGED_HUNK,
    SectionKind.STAGED: ItemKind.STAGED_HUNK,
    SectionKind.UNMERGED: ItemKind.CONFLICT_HUNK,
    SectionKind.COMMIT_DIFF: ItemKind.DIFF_HUNK,
}
_LINE_KIND = {
    SectionKind.UNSTAGED: ItemKind.UNSTAGED_LINE,
    SectionKind.STAGED: ItemKind.STAGED_LINE,
}


@dataclass
class ItemNode:
    token: str
    kind: ItemKind
    parent: str | None
    depth: int
    label: str = ""
    payload: object = None
    section_kind: SectionKind | None = None
    file: FileEntry | None = None
    hunk: Hunk | None = None
    children: list[str] = field(default_factory=list)


class ItemTree:
    """Arena of ``ItemNode`` values rooted at ``ROOT_TOKEN``."""

    def __init__(self, snapshot: RepositorySnapshot | None = None) -> None:
        self.snapshot = snapshot
        self.nodes: dict[str, ItemNode] = {
            ROOT_TOKEN: ItemNode(token=ROOT_TOKEN, kind=ItemKind.SECTION, parent=None, depth=-1)
        }

    def __contains__(self, token: object) -> bool:
        return token in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, token: str) -> ItemNode:
        return self.nodes[token]

    def get(self, token: str) -> ItemNode | None:
        return self.nodes.get(token)

    @property
    def root(self) -> ItemNode:
        return self.nodes[ROOT_TOKEN]

    def add(self, node: ItemNode) -> ItemNode:
        if node.token in self.nodes:
            raise ValueError(f"duplicate item token {node.token!r}")
        self.nodes[node.token] = node
        parent = self.nodes[node.parent or ROOT_TOKEN]
        parent.children.append(node.token)
        return node

    def address_of(self, token: str) -> Address:
        """Return the token path from the root down to ``token``."""
        path: list[str] = []
        current: str | None = token
        while current is not None:
            path.append(current)
            current = self.nodes[current].parent
        path.reverse()
        return tuple(path)

    def resolve(self, address: Address) -> str:
        """Return the deepest token of ``address`` that still exists here.

        Tokens are walked from the node upwards, so the result is the same
        logical node, its nearest surviving ancestor, or the root.
        """
        for token in reversed(address):
            node = self.nodes.get(token)
            if node is None:
                continue
            if self.address_of(token) == tuple(address[: address.index(token) + 1]):
                return token
        return ROOT_TOKEN

    def iter_subtree(self, token: str) -> Iterator[ItemNode]:
        stack = [token]
        while stack:
            current = self.nodes[stack.pop()]
            yield current
            stack.extend(reversed(current.children))

    def is_ancestor(self, ancestor: str, token: str) -> bool:
        current = self.nodes[token].parent
        while current is not None:
            if current == ancestor:
                return True
            current = self.nodes[current].parent
        return False

    def visible_tokens(self, is_expanded: Callable[[ItemNode], bool]) -> list[str]:
        """Pre-order walk of rows, descending only into expanded nodes."""
        rows: list[str] = []
        stack = list(reversed(self.root.children))
        while stack:
            node = self.nodes[stack.pop()]
            rows.append(node.token)
            if node.children and is_expanded(node):
                stack.extend(reversed(node.children))
        return rows


def _add_file(tree: ItemTree, section: Section, section_token: str, entry: FileEntry) -> None:
    kind = section.kind
    file_token = f"{section.token}:file:{entry.path}"
    tree.add(
        ItemNode(
            token=file_token,
            kind=_FILE_KIND[kind],
            parent=section_token,
            depth=1,
            label=entry.display_path,
            payload=entry,
            section_kind=kind,
            file=entry,
        )
    )
    for hunk in entry.hunks:
        if hunk.is_raw:
            hunk_kind = ItemKind.RAW_HUNK
        elif hunk.is_conflict:
            hunk_kind = ItemKind.CONFLICT_HUNK
        else:
            hunk_kind = _HUNK_KIND[kind]
        hunk_token = f"{section.token}:hunk:{hunk.token}"
        tree.add(
            ItemNode(
                token=hunk_token,
                kind=hunk_kind,
                parent=file_token,
                depth=2,
                label=hunk.header,
                payload=hunk,
                section_kind=kind,
                file=entry,
                hunk=hunk,
            )
        )
        line_kind = _LINE_KIND.get(kind, ItemKind.DIFF_LINE)
        for line in hunk.lines:
            tree.add(
                ItemNode(
                    token=f"{section.token}:line:{line.token}",
                    kind=line_kind,
                    parent=hunk_token,
                    depth=3,
                    label=line.text,
                    payload=line,
                    section_kind=kind,
                    file=entry,
                    hunk=hunk,
                )
            )


def _entry_node(section: Section, section_token: str, entry: object) -> ItemNode:
    if isinstance(entry, CommitEntry):
        return ItemNode(
            token=f"{section.token}:commit:{entry.oid}",
            kind=ItemKind.COMMIT,
            parent=section_token,
            depth=1,
            label=f"{entry.short_oid} {entry.subject}",
            payload=entry,
            section_kind=section.kind,
        )
    if isinstance(entry, StashEntry):
        return ItemNode(
            token=f"stash:{entry.oid or entry.ref}",
            kind=ItemKind.STASH,
            parent=section_token,
            depth=1,
            label=f"{entry.ref} {entry.subject}",
            payload=entry,
            section_kind=section.kind,
        )
    if isinstance(entry, RefEntry):
        kind = {
            SectionKind.REMOTE: ItemKind.REMOTE_BRANCH,
            SectionKind.TAGS: ItemKind.TAG,
        }.get(section.kind, ItemKind.BRANCH)
        return ItemNode(
            token=f"ref:{entry.name}",
            kind=kind,
            parent=section_token,
            depth=1,
            label=entry.short_name,
            payload=entry,
            section_kind=section.kind,
        )
    raise TypeError(f"unsupported section entry {type(entry).__name__}")


def build_item_tree(snapshot: RepositorySnapshot) -> ItemTree:
    """Build the item arena for ``snapshot`` in display order."""
    tree = ItemTree(snapshot)
    for index, text in enumerate(snapshot.header_lines):
        tree.add(
            ItemNode(
                token=f"header:{index}",
                kind=ItemKind.HEADER,
                parent=ROOT_TOKEN,
                depth=0,
                label=text,
                payload=text,
            )
        )
    for section in snapshot.sections:
        section_token = f"section:{section.token}"
        tree.add(
            ItemNode(
                token=section_token,
                kind=ItemKind.SECTION,
                parent=ROOT_TOKEN,
                depth=0,
                label=section.title,
                payload=section,
                section_kind=section.kind,
            )
        )
        for entry in section.entries:
            if isinstance(entry, FileEntry):
                _add_file(tree, section, section_token, entry)
            else:
                tree.add(_entry_node(section, section_token, entry))
    return tree


__all__ = [
    "ItemNode",
    "ItemTree",
    "ROOT_TOKEN",
    "build_item_tree",
]
