"""Snapshot datatypes, the item tree arena, and navigation state."""

from __future__ import annotations

from .types import (
    Address,
    ChangeKind,
    FileEntry,
    Granularity,
    Hunk,
    ItemKind,
    Line,
    LineTag,
    RepositorySnapshot,
    Section,
    SectionKind,
    Selection,
)
from .tree import ROOT_TOKEN, ItemNode, ItemTree, build_item_tree
from .navigation import Direction, NavigationEngine

__all__ = [
    "Address",
    "ChangeKind",
    "FileEntry",
    "Granularity",
    "Hunk",
    "ItemKind",
    "Line",
    "LineTag",
    "RepositorySnapshot",
    "Section",
    "SectionKind",
    "Selection",
    "ROOT_TOKEN",
    "ItemNode",
    "ItemTree",
    "build_item_tree",
    "Direction",
    "NavigationEngine",
]
