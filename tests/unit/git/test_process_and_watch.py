"""Process runner cancellation and git-dir watcher tests."""

from __future__ import annotations

import sys
import tempfile
import time
import unittest
from pathlib import Path

from lazyrepo.errors import ToolUnavailable
from lazyrepo.git.process import decode_stream, encode_stream, run_process
from lazyrepo.git.watch import GitWatcher, build_git_watch_signature


class RunProcessTests(unittest.TestCase):
    def test_captures_stdout_stderr_and_exit_status(self) -> None:
        script = "import sys; sys.stdout.write(sys.stdin.read().upper()); sys.stderr.write('warn'); sys.exit(3)"

        result = run_process([sys.executable, "-c", script], Path.cwd(), stdin="hello")

        self.assertEqual(result.stdout, "HELLO")
        self.assertEqual(result.stderr, "warn")
        self.assertEqual(result.returncode, 3)
        self.assertFalse(result.ok)
        self.assertFalse(result.cancelled)

    def test_carriage_returns_and_non_utf8_bytes_round_trip(self) -> None:
        script = "import sys; data = sys.stdin.buffer.read(); sys.stdout.buffer.write(data); sys.stderr.buffer.write(data)"
        text = "caf\udce9\r\nline\r\n"

        result = run_process([sys.executable, "-c", script], Path.cwd(), stdin=text)

        self.assertEqual(result.stdout, text)
        self.assertEqual(result.stderr, text)
        self.assertEqual(decode_stream(b"caf\xe9\r\n"), "caf\udce9\r\n")
        self.assertEqual(encode_stream(result.stdout), b"caf\xe9\r\nline\r\n")

    def test_should_cancel_terminates_child(self) -> None:
        started = time.monotonic()

        result = run_process(
            [sys.executable, "-c", "import time; time.sleep(30)"],
            Path.cwd(),
            should_cancel=lambda: True,
        )

        self.assertTrue(result.cancelled)
        self.assertFalse(result.ok)
        self.assertLess(time.monotonic() - started, 10.0)

    def test_missing_executable_raises_tool_unavailable(self) -> None:
        with self.assertRaises(ToolUnavailable):
            run_process(["lazyrepo-definitely-missing-tool"], Path.cwd())


class GitWatcherTests(unittest.TestCase):
    def test_signature_changes_when_index_changes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            git_dir = Path(tmp)
            (git_dir / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
            before = build_git_watch_signature(git_dir)
            (git_dir / "index").write_bytes(b"DIRC")
            after = build_git_watch_signature(git_dir)

        self.assertNotEqual(before, after)

    def test_poll_respects_interval_and_reports_changes_once(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            git_dir = Path(tmp)
            (git_dir / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
            watcher = GitWatcher(git_dir, poll_seconds=1.0, fallback_seconds=0)
            watcher.reset(100.0)

            (git_dir / "HEAD").write_text("ref: refs/heads/feature-branch\n", encoding="utf-8")

            self.assertFalse(watcher.poll(100.5))
            self.assertTrue(watcher.poll(101.0))
            self.assertFalse(watcher.poll(102.0))

    def test_fallback_interval_reports_periodic_change(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            watcher = GitWatcher(Path(tmp), poll_seconds=1.0, fallback_seconds=5.0)
            watcher.reset(0.0)

            self.assertFalse(watcher.poll(2.0))
            self.assertTrue(watcher.poll(5.0))
            self.assertFalse(watcher.poll(6.0))


if __name__ == "__main__":
    unittest.main()
