"""Find every descendant process of a PID from a snapshot of the process table."""

from pidtree.errors import ListingError, PidTreeError, UsageError
from pidtree.parse import ProcessRow
from pidtree.query import children_of_pid, children_of_pid_async, find_descendants

__all__ = [
    "ListingError",
    "PidTreeError",
    "ProcessRow",
    "UsageError",
    "children_of_pid",
    "children_of_pid_async",
    "find_descendants",
]
