"""Raw-key decoding tests over a pipe: ESC timing, CSI sequences, control bytes."""

import os
import time
import unittest

from lazyrepo.input import reader


class ReadKeyTests(unittest.TestCase):
    def setUp(self) -> None:
        reader._PENDING_BYTES.clear()
        self.read_fd, self.write_fd = os.pipe()

    def tearDown(self) -> None:
        reader._PENDING_BYTES.clear()
        os.close(self.read_fd)
        os.close(self.write_fd)

    def _keys(self, data: bytes, count: int) -> list[str]:
        os.write(self.write_fd, data)
        return [reader.read_key(self.read_fd, timeout_ms=20) for _ in range(count)]

    def test_lone_escape_does_not_wait_for_another_key(self) -> None:
        started = time.monotonic()

        self.assertEqual(self._keys(b"\x1b", 1), ["ESC"])
        self.assertLess(time.monotonic() - started, 0.2)

    def test_escape_keeps_following_printable_key(self) -> None:
        self.assertEqual(self._keys(b"\x1bq", 2), ["ESC", "q"])

    def test_arrow_and_paging_sequences(self) -> None:
        self.assertEqual(self._keys(b"\x1b[A\x1b[5~\x1b[6~\x1bOF", 4), ["UP", "PAGE_UP", "PAGE_DOWN", "END"])

    def test_control_bytes(self) -> None:
        self.assertEqual(
            self._keys(b"\r\n\t\x7f\x07\x13", 6),
            ["ENTER_CR", "ENTER_LF", "TAB", "BACKSPACE", "CTRL_G", "CTRL_S"],
        )

    def test_utf8_character_is_one_token(self) -> None:
        self.assertEqual(self._keys("é".encode("utf-8"), 1), ["é"])

    def test_timeout_returns_empty_token(self) -> None:
        self.assertEqual(reader.read_key(self.read_fd, timeout_ms=5), "")


if __name__ == "__main__":
    unittest.main()
