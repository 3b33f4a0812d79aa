"""CLI entry point for skein."""
from __future__ import annotations

import argparse
import logging
import os
import sys

from skein.session import projects_dir

log = logging.getLogger("skein")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skein",
        description="Live terminal browser for Claude Code sessions",
    )
    parser.add_argument("--version", action="version", version="skein 0.1.0")
    parser.add_argument("--list", action="store_true",
                        help="Print the session hierarchy once and exit")
    return parser


def configure_logging() -> None:
    """Log to the file named by SKEIN_LOG; stay silent otherwise.

    The dashboard owns the terminal, so nothing may be written to
    stdout or stderr while it runs.
    """
    root = logging.getLogger("skein")
    root.handlers.clear()
    root.propagate = False
    path = os.environ.get("SKEIN_LOG")
    if not path:
        root.addHandler(logging.NullHandler())
        return
    handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)


def main(argv: list[str] | None = None):
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    from rich.markup import escape
    from skein.formatters.human import detect_ascii, err_console, init as init_human
    init_human(ascii_mode=detect_ascii())

    root = projects_dir()
    if not root.is_dir():
        err_console.print(f"[red]Claude projects directory not found: {escape(str(root))}[/]")
        err_console.print("[dim]Make sure Claude Code is installed and has run at least one session.[/]")
        sys.exit(1)

    if args.list:
        from skein.formatters.human import format_hierarchy
        from skein.hierarchy import discover
        format_hierarchy(discover(root))
        return

    from skein.app import App
    from skein.terminal import Terminal, TerminalError

    app = App(root, terminal=Terminal())
    try:
        app.run()
    except TerminalError as e:
        err_console.print(f"[red]{escape(str(e))}[/]")
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log.exception("fatal error in event loop")
        err_console.print(f"[red]Fatal error: {escape(str(e))}[/]")
        sys.exit(1)


if __name__ == "__main__":
    main()
