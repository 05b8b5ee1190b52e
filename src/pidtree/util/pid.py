# Filename: src/pidtree/util/pid.py
import logging
from typing import Union

import psutil

from pidtree.errors import ListingError

log = logging.getLogger(__name__)

# psutil status names mapped to the single letter codes ps prints
STATUS_CODES = {
    psutil.STATUS_RUNNING: "R",
    psutil.STATUS_SLEEPING: "S",
    psutil.STATUS_DISK_SLEEP: "D",
    psutil.STATUS_STOPPED: "T",
    psutil.STATUS_TRACING_STOP: "t",
    psutil.STATUS_ZOMBIE: "Z",
    psutil.STATUS_DEAD: "X",
    psutil.STATUS_IDLE: "I",
}


def normalize_pid(pid: Union[int, float, str]) -> str:
    """
    Returns the decimal string form of a PID, as listings print it.

    >>> normalize_pid(100)
    '100'
    >>> normalize_pid(" 100 ")
    '100'
    """
    if isinstance(pid, float) and pid.is_integer():
        return str(int(pid))
    return str(pid).strip()


def process_rows() -> list[dict[str, str]]:
    """
    Takes a snapshot of the process table with psutil instead of running a
    listing command. Rows come back in the same shape the parser produces.

    process_iter() skips processes that exit while being read; rows whose
    parent PID is unreadable are left out.

    Raises:
        ListingError: If psutil cannot enumerate processes at all.
    """
    rows: list[dict[str, str]] = []
    try:
        for proc in psutil.process_iter(["ppid", "pid", "status", "name"]):
            info = proc.info
            if info.get("ppid") is None:
                log.debug(f"No parent PID readable for PID {info.get('pid')}.")
                continue
            status = info.get("status") or ""
            rows.append(
                {
                    "PPID": str(info["ppid"]),
                    "PID": str(info["pid"]),
                    "STAT": STATUS_CODES.get(status, status),
                    "COMMAND": info.get("name") or "",
                }
            )
    except (psutil.Error, OSError) as e:
        message = f"psutil could not list processes: {type(e).__name__} {e}".strip()
        log.error(message)
        raise ListingError(message) from e
    log.debug(f"psutil snapshot produced {len(rows)} rows")
    return rows
