"""Command-line front door for lazyrepo.

Parses CLI options, sets up optional file logging, and opens a session on the
repository containing the target path.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .errors import StartupError
from .render.theme import available_theme_names
from .runtime import run_app
from .runtime.app import LaunchOptions

LOG_FILENAME = "lazyrepo.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def configure_logging(path: Path) -> logging.Handler:
    """Send debug logging for the ``lazyrepo`` package to ``path``."""
    handler = logging.FileHandler(path, encoding="utf-8", errors="backslashreplace")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("lazyrepo")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    return handler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazyrepo",
        description="Browse and edit a git repository's state from the terminal.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Path inside the repository. Defaults to current directory.")
    parser.add_argument("--print", dest="print_only", action="store_true", help="Render once to stdout and exit.")
    parser.add_argument(
        "--keys",
        default="",
        help="Keys to replay before showing the UI, e.g. 'jj<tab>s'.",
    )
    parser.add_argument("--log", action="store_true", help=f"Write debug logging to ./{LOG_FILENAME}.")
    parser.add_argument(
        "--context-lines",
        type=_non_negative_int,
        default=None,
        help="Lines of diff context (default from config, else 3).",
    )
    parser.add_argument(
        "--theme",
        default=None,
        help=f"UI theme name ({', '.join(available_theme_names())}).",
    )
    parser.add_argument("--style", default=None, help="Pygments style name for diff highlighting.")
    parser.add_argument("--no-color", action="store_true", help="Disable color output.")
    parser.add_argument(
        "--width",
        type=_positive_int,
        default=None,
        help="Column width for --print output (default: terminal width).",
    )
    parser.add_argument("--config", type=Path, default=None, help="Config file to load instead of the default.")
    return parser


def main(argv: list[str] | None = None, default_path: Path | None = None) -> int:
    """Parse CLI arguments and open lazyrepo on a repository.

    ``default_path`` is primarily for tests; when omitted the current working
    directory is used.
    """
    args = build_parser().parse_args(argv)
    if args.width is not None and not args.print_only:
        raise SystemExit("--width only applies together with --print.")

    if args.log:
        configure_logging(Path.cwd() / LOG_FILENAME)

    if default_path is None:
        default_path = Path.cwd()
    path = Path(args.path) if args.path is not None else default_path
    if not path.exists():
        raise SystemExit(f"Path not found: {path}")

    options = LaunchOptions(
        path=path,
        print_only=args.print_only,
        keys=args.keys,
        theme=args.theme,
        style=args.style,
        no_color=args.no_color,
        context_lines=args.context_lines,
        width=args.width,
        config_path=args.config,
    )
    try:
        return run_app(options)
    except StartupError as exc:
        logging.getLogger(__name__).error("startup failed: %s", exc)
        raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    raise SystemExit(main())
