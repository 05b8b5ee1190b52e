# Filename: src/pidtree/errors.py
"""Exceptions raised by pidtree."""


class PidTreeError(Exception):
    """Base class for all pidtree errors."""

    pass


class UsageError(PidTreeError, TypeError):
    """Raised synchronously when a query is called incorrectly."""

    pass


class ListingError(PidTreeError, RuntimeError):
    """Raised when the process table could not be listed."""

    pass
