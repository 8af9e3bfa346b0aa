"""Tests for ANSI clipping, control-byte sanitizing, highlighting and themes.

These primitives sit under every rendered row, so width math and escaping
regressions show up here first.
"""

from __future__ import annotations

import unittest

from lazyrepo.render.ansi import clip_ansi_line, display_width, pad_ansi_line, strip_ansi
from lazyrepo.render.highlight import highlight_line, lexer_for_path, normalize_style, sanitize_terminal_text
from lazyrepo.render.theme import DEFAULT_THEME, PLAIN_THEME, available_theme_names, resolve_theme


class AnsiClippingTests(unittest.TestCase):
    def test_clip_keeps_escapes_and_trailing_reset(self) -> None:
        line = "\033[31mabcdef\033[0m"

        clipped = clip_ansi_line(line, 3)

        self.assertEqual(clipped, "\033[31mabc\033[0m")
        self.assertEqual(display_width(clipped), 3)

    def test_wide_characters_count_double(self) -> None:
        self.assertEqual(display_width("日本"), 4)
        self.assertEqual(clip_ansi_line("日本語", 5), "日本")

    def test_tabs_expand_to_stops(self) -> None:
        self.assertEqual(clip_ansi_line("a\tb", 10), "a       b")
        self.assertEqual(display_width("a\tb"), 9)

    def test_pad_fills_to_exact_width(self) -> None:
        padded = pad_ansi_line("\033[1mab\033[0m", 5)

        self.assertEqual(strip_ansi(padded), "ab   ")

    def test_non_positive_width_gives_empty_row(self) -> None:
        self.assertEqual(clip_ansi_line("abc", 0), "")


class HighlightTests(unittest.TestCase):
    def test_sanitize_escapes_control_bytes_but_keeps_tabs(self) -> None:
        sanitized = sanitize_terminal_text("a\tb\x07c\x1bd")

        self.assertEqual(sanitized, "a\tb\\x07c\\x1bd")

    def test_sanitize_shows_carriage_returns_and_undecodable_bytes(self) -> None:
        self.assertEqual(sanitize_terminal_text("caf\udce9\r"), "caf\\xe9\\x0d")

    def test_unknown_file_type_is_left_plain(self) -> None:
        self.assertEqual(highlight_line("  spaced  out ", "NOTES"), "  spaced  out ")

    def test_known_file_type_is_colored_without_changing_text(self) -> None:
        rendered = highlight_line("def f(x): return x", "pkg/mod.py")

        self.assertIn("\033[", rendered)
        self.assertEqual(strip_ansi(rendered), "def f(x): return x")

    def test_lexer_is_chosen_by_basename(self) -> None:
        self.assertIs(type(lexer_for_path("a/b/c.py")), type(lexer_for_path("c.py")))
        self.assertEqual(lexer_for_path("a/b/c.py").name, "Python")

    def test_unknown_style_falls_back(self) -> None:
        self.assertEqual(normalize_style("no-such-style"), "monokai")
        self.assertEqual(normalize_style("friendly"), "friendly")


class ThemeTests(unittest.TestCase):
    def test_no_color_wins_over_name(self) -> None:
        self.assertIs(resolve_theme("ocean", no_color=True), PLAIN_THEME)

    def test_unknown_name_falls_back_to_default(self) -> None:
        self.assertIs(resolve_theme(" Nope "), DEFAULT_THEME)
        self.assertEqual(resolve_theme(" OCEAN ").name, "ocean")

    def test_plain_is_not_offered_by_name(self) -> None:
        self.assertEqual(available_theme_names(), ("default", "ocean"))


if __name__ == "__main__":
    unittest.main()
