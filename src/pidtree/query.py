# Filename: src/pidtree/query.py
"""
Public entry points: find the descendants of a PID.

    find_descendants(pid, callback)   # worker thread, callback(error, results)
    children_of_pid(pid)              # blocking, raises ListingError
    children_of_pid_async(pid)        # coroutine, raises ListingError
"""

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Optional, Union

from pidtree.errors import ListingError, UsageError
from pidtree.lister import is_windows, listing_command, run_listing, stream_listing
from pidtree.parse import ListingParser, ProcessRow, parse_listing
from pidtree.tree import descendants
from pidtree.util.pid import normalize_pid, process_rows

log = logging.getLogger(__name__)

# "command" runs ps / PowerShell, "psutil" reads the table in-process
SOURCES = ("command", "psutil")

Callback = Callable[[Optional[Exception], Optional[list[ProcessRow]]], None]


def _check_source(source: str) -> None:
    if source not in SOURCES:
        raise UsageError(
            f"Unknown process source {source!r}, expected one of: {', '.join(SOURCES)}"
        )


def _snapshot(platform: Optional[str], source: str) -> Iterable[ProcessRow]:
    if source == "psutil":
        return process_rows()
    lines = run_listing(listing_command(platform))
    return parse_listing(lines, csv_format=is_windows(platform))


def children_of_pid(
    pid: Union[int, str],
    *,
    platform: Optional[str] = None,
    closure: bool = False,
    source: str = "command",
) -> list[ProcessRow]:
    """
    Lists the process table once and returns the descendants of ``pid``.

    Args:
        pid: Root process ID, as an int or decimal string.
        platform: Overrides ``sys.platform`` when choosing the listing command.
        closure: Find descendants regardless of listing order (see tree.descendants).
        source: "command" to run the OS listing command, "psutil" to use psutil.

    Returns:
        Rows (dicts with COMMAND, PPID, PID, STAT) in listing order.

    Raises:
        ListingError: If the listing failed. No partial results are returned.
        UsageError: If ``source`` is unknown.
    """
    _check_source(source)
    root = normalize_pid(pid)
    log.debug(f"Listing descendants of PID {root} (source={source})")
    return descendants(_snapshot(platform, source), root, closure=closure)


async def children_of_pid_async(
    pid: Union[int, str],
    *,
    platform: Optional[str] = None,
    closure: bool = False,
) -> list[ProcessRow]:
    """Coroutine version of children_of_pid() using the OS listing command."""
    root = normalize_pid(pid)
    parser = ListingParser(csv_format=is_windows(platform))
    rows: list[ProcessRow] = []
    async for line in stream_listing(listing_command(platform)):
        row = parser.feed(line)
        if row is not None:
            rows.append(row)
    return descendants(rows, root, closure=closure)


def find_descendants(
    pid: Union[int, str],
    callback: Callback,
    *,
    platform: Optional[str] = None,
    closure: bool = False,
    source: str = "command",
) -> threading.Thread:
    """
    Finds the descendants of ``pid`` on a worker thread.

    ``callback(error, results)`` is called exactly once from that thread:
    with ``(ListingError, None)`` if the listing failed, otherwise with
    ``(None, rows)``. Nothing is raised once the worker has started.

    Returns:
        The started worker thread, for callers that want to join() it.

    Raises:
        UsageError: Immediately, if ``callback`` isn't callable or ``source``
            is unknown.
    """
    if not callable(callback):
        raise UsageError("find_descendants(pid, callback) expects callback")
    _check_source(source)
    root = normalize_pid(pid)

    def worker():
        try:
            results = children_of_pid(
                root, platform=platform, closure=closure, source=source
            )
        except ListingError as e:
            log.warning(f"Listing descendants of PID {root} failed: {e}")
            callback(e, None)
            return
        except Exception as e:
            log.exception(f"Unexpected error listing descendants of PID {root}: {e}")
            error = ListingError(f"Unexpected error listing processes: {e}")
            error.__cause__ = e
            callback(error, None)
            return
        callback(None, results)

    thread = threading.Thread(target=worker, name=f"pidtree-{root}", daemon=True)
    thread.start()
    return thread
