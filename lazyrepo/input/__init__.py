"""Key decoding, key-name parsing, and the binding table."""

from __future__ import annotations

from .bindings import Binding, BindingTable, build_binding_table
from .keys import format_chord, parse_chord, parse_keys
from .reader import read_key

__all__ = [
    "Binding",
    "BindingTable",
    "build_binding_table",
    "format_chord",
    "parse_chord",
    "parse_keys",
    "read_key",
]
