# Filename: src/pidtree/log.py
"""Logging setup for pidtree."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# --- Define TRACE level ---
TRACE_LEVEL_NUM = 5
logging.addLevelName(TRACE_LEVEL_NUM, "TRACE")


def trace(self, message, *args, **kws):
    # Yes, logger takes its '*args' as 'args'.
    if self.isEnabledFor(TRACE_LEVEL_NUM):
        self._log(TRACE_LEVEL_NUM, message, args, **kws)


logging.Logger.trace = trace
# --- End TRACE level definition ---

LEVEL_NAMES = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def level_from_name(level_name: str) -> int:
    """Maps a level name (including TRACE) to its numeric value."""
    level_name_upper = level_name.upper()
    if level_name_upper == "TRACE":
        return TRACE_LEVEL_NUM
    return getattr(logging, level_name_upper, logging.WARNING)


def setup_logging(level_name: str = "WARNING", log_file: Optional[str] = None):
    """
    Configures the root logger with a RichHandler on stderr and, optionally,
    a FileHandler.

    Only the command line entry point calls this; the library never installs
    handlers of its own.
    """
    log_level = level_from_name(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers (e.g., from basicConfig in imports)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        log_time_format="%H:%M:%S",
    )
    rich_handler.setLevel(log_level)
    root_logger.addHandler(rich_handler)

    if log_file:
        log_formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)-20s %(message)s", datefmt="%H:%M:%S"
        )
        try:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(log_formatter)
            root_logger.addHandler(file_handler)
            logging.getLogger("pidtree").info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.getLogger("pidtree").error(
                f"Failed to open log file '{log_file}': {e}"
            )

    logging.getLogger("pidtree").debug(
        f"Logging configured at level {logging.getLevelName(log_level)}."
    )
