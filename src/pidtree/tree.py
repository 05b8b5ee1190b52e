# Filename: src/pidtree/tree.py
"""Builds the descendant set of a PID from a flat list of process rows."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Union

from pidtree.parse import ProcessRow
from pidtree.util.pid import normalize_pid

log = logging.getLogger(__name__)


def _single_pass(rows: list[ProcessRow], root: str) -> list[ProcessRow]:
    """
    One forward pass over the rows. A row is kept if its parent is already
    known, so a child listed before its own parent is missed.
    """
    parents = {root}
    children: list[ProcessRow] = []
    for row in rows:
        if row.get("PPID") in parents:
            parents.add(row.get("PID"))
            children.append(row)
    return children


def _closure(rows: list[ProcessRow], root: str) -> list[ProcessRow]:
    """Walks parent -> child edges until no new PID is found, in any row order."""
    children_of: dict[str, list[str]] = defaultdict(list)
    for row in rows:
        children_of[row.get("PPID")].append(row.get("PID"))

    members = {root}
    pending = [root]
    while pending:
        parent = pending.pop()
        for child in children_of.get(parent, []):
            if child not in members:
                members.add(child)
                pending.append(child)

    return [row for row in rows if row.get("PPID") in members]


def descendants(
    rows: Iterable[ProcessRow], pid: Union[int, str], closure: bool = False
) -> list[ProcessRow]:
    """
    Returns the rows of every process descending from ``pid``.

    Args:
        rows: Rows from one listing snapshot, in listing order.
        pid: The root PID, as an int or decimal string.
        closure: If False (the default) a single forward pass is made, which
            relies on the listing putting parents before their children.
            If True, descendants are found regardless of row order.

    Returns:
        The matching rows in the order they were listed. The root's own row
        is not included. An unknown or childless root gives an empty list.
    """
    root = normalize_pid(pid)
    row_list = list(rows)
    if closure:
        children = _closure(row_list, root)
    else:
        children = _single_pass(row_list, root)
    log.debug(
        f"Found {len(children)} descendants of PID {root} among {len(row_list)} rows"
        f" ({'closure' if closure else 'single pass'})"
    )
    return children
