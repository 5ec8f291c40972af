# Command line entry point.
#
#   $ python -m rgpeek [root] [--query TEXT] [--glob GLOBS] [--hidden]
#                      [--no-preview] [--config PATH] [--log-file PATH]
#
# Sets up logging (never onto the curses screen), loads settings, and runs
# the UI. Opening a result leaves curses, runs the editor in the foreground
# and then starts the UI again with the same manager, so the query, results
# and selection survive the round trip.


import argparse
import logging
import os
import shlex
import sys
from typing import List, Optional

from . import __version__
from .config import load_settings, save_settings


# Description:
#   Build the argument parser.
#
# Returns:
#   argparse.ArgumentParser: Parser for the rgpeek command line.
#
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rgpeek",
        description="Search files interactively with ripgrep and preview matches with bat.",
    )
    parser.add_argument("root", nargs="?", default=".", help="Directory to search (default: current directory).")
    parser.add_argument("--query", default="", help="Initial search text.")
    parser.add_argument("--glob", default=None, help="Semicolon separated glob filters.")
    parser.add_argument("--hidden", action="store_true", default=None, help="Include hidden files.")
    parser.add_argument("--no-preview", action="store_true", help="Start with the preview pane closed.")
    parser.add_argument("--config", default=None, help="Settings file (default: $RGPEEK_CONFIG or ~/.rgpeek.json).")
    parser.add_argument("--search-command", default=None, help="Search program, e.g. 'rg --smart-case'.")
    parser.add_argument("--preview-command", default=None, help="Preview program, e.g. 'bat --theme=ansi'.")
    parser.add_argument("--editor", default=None, help="Editor command (default: $VISUAL or $EDITOR).")
    parser.add_argument("--batch-size", type=int, default=None, help="Search lines consumed per UI tick.")
    parser.add_argument("--log-file", default=None, help="Write logs to this file.")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


# Description:
#   Route logging to a file, or nowhere, so the terminal stays clean.
#
# Parameters:
#   log_file (str | None): Destination file.
#   level (str): Logging level name.
#
def configure_logging(log_file: Optional[str], level: str = "INFO") -> None:
    if log_file:
        logging.basicConfig(
            filename=log_file,
            level=getattr(logging, level),
            format="%(asctime)s %(levelname)s %(threadName)s %(module)s: %(message)s",
            force=True,
        )
    else:
        logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file, args.log_level)
    root = os.path.abspath(os.path.expanduser(args.root))
    if not os.path.isdir(root):
        print(f"rgpeek: {args.root!r} is not a directory.", file=sys.stderr)
        return 2

    settings = load_settings(args.config)
    if args.search_command:
        settings.search_command = shlex.split(args.search_command)
    if args.preview_command:
        settings.preview_command = shlex.split(args.preview_command)
    if args.editor:
        settings.editor = args.editor
    if args.batch_size:
        settings.batch_size = max(1, args.batch_size)
    if args.glob is not None:
        settings.globs = args.glob
    if args.hidden:
        settings.show_hidden = True
    if args.no_preview:
        settings.show_preview = False

    # Imported late so --help and --version work without a terminal.
    from .manager import ResultManager
    from .tui import OPEN, run_once

    os.environ.setdefault("ESCDELAY", "25")
    manager = ResultManager(settings, root=root)
    if args.query:
        manager.set_query(args.query)
    logging.info(f"rgpeek {__version__} searching {root}")
    try:
        while run_once(manager) == OPEN:
            manager.open_selection()
    finally:
        manager.close()
        settings.show_hidden = manager.is_showing_hidden
        settings.show_preview = manager.show_preview
        settings.globs = manager.globs_text
        save_settings(settings, args.config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
