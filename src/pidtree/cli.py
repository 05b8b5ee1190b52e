#!/usr/bin/env python3
# Filename: src/pidtree/cli.py
import argparse
import json
import logging
import os
import sys

from rich.console import Console
from rich.table import Table

from pidtree.errors import ListingError
from pidtree.log import LEVEL_NAMES, setup_logging
from pidtree.parse import ProcessRow
from pidtree.query import SOURCES, children_of_pid

COLUMNS = ["PPID", "PID", "STAT", "COMMAND"]


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parses command-line arguments for pidtree."""
    default_level = os.environ.get("LOGLEVEL", "WARNING").upper()
    if default_level not in LEVEL_NAMES:
        default_level = "WARNING"

    parser = argparse.ArgumentParser(
        prog="pidtree",
        description="Lists every descendant process of a PID.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
        "  pidtree 1234              # Table of descendants of PID 1234\n"
        "  pidtree --json 1234       # Same, as a JSON array\n"
        "  pidtree --pids-only 1234  # One PID per line, e.g. for kill",
    )
    parser.add_argument("pid", metavar="PID", help="Root process ID.")
    parser.add_argument(
        "--closure",
        action="store_true",
        help="Find descendants even when the listing puts children before parents.",
    )
    parser.add_argument(
        "--source",
        default="command",
        choices=SOURCES,
        help="Where to read the process table from (default: command)",
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument("--json", action="store_true", help="Print a JSON array.")
    output.add_argument(
        "--pids-only", action="store_true", help="Print one descendant PID per line."
    )
    parser.add_argument(
        "--log",
        default=default_level,
        choices=LEVEL_NAMES,
        help=f"Set the logging level (default: $LOGLEVEL or WARNING, now {default_level})",
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        type=str,
        default=None,
        help="Write logs to the specified file as well as stderr.",
    )
    args = parser.parse_args(argv)

    pid = args.pid.strip()
    if not (pid.isascii() and pid.isdigit()):
        parser.error(f"argument PID: expected a number, got {args.pid!r}")

    return args


def render_table(rows: list[ProcessRow], console: Console) -> None:
    table = Table(*COLUMNS, box=None, header_style="bold")
    for row in rows:
        table.add_row(*(row.get(column, "") for column in COLUMNS))
    console.print(table)


def main(argv: list[str] | None = None) -> int:
    """Parses args, sets up logging, runs one query and prints the result."""
    args = parse_arguments(argv)
    setup_logging(args.log, args.log_file)
    log = logging.getLogger("pidtree.cli")
    log.debug(f"Parsed arguments: {args}")

    try:
        rows = children_of_pid(args.pid, closure=args.closure, source=args.source)
    except ListingError as e:
        log.error(f"Could not list processes: {e}")
        return 1

    if args.json:
        print(json.dumps(rows, indent=2))
    elif args.pids_only:
        for row in rows:
            print(row["PID"])
    else:
        render_table(rows, Console())
    return 0


if __name__ == "__main__":
    sys.exit(main())
