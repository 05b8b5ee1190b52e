# Filename: src/pidtree/lister.py
"""
Runs the platform's process listing command and streams its output lines.

POSIX (Linux, Darwin, BSD) uses ``ps`` with a fixed column order:

    $ ps -A -o ppid,pid,stat,comm
     PPID     PID STAT COMMAND
        0       1 Ss   systemd
     2899   16958 Ss   bbsd
     1914   16964 Z    watch <defunct>

Darwin names the last column ``COMM`` instead of ``COMMAND``.

Windows uses a CIM query through PowerShell, rendered as CSV. Status is
usually empty and Name may contain spaces or commas:

    "ParentProcessId","ProcessId","Status","Name"
    "0","0","","System Idle Process"
    "1234","5678","","C:\\Program Files\\App\\app.exe"
"""

import asyncio
import logging
import shlex
import shutil
import subprocess
import sys
import tempfile
from collections.abc import AsyncIterator, Iterator
from typing import Optional

from pidtree.errors import ListingError

log = logging.getLogger(__name__)

# --- Commands ---
PS_COMMAND = ["ps", "-A", "-o", "ppid,pid,stat,comm"]
# WMIC is deprecated; Get-CimInstance ships with PowerShell 5.1
POWERSHELL_COMMAND = [
    "powershell.exe",
    "Get-CimInstance -Class Win32_Process"
    " | Select-Object -Property ParentProcessId,ProcessId,Status,Name"
    " | ConvertTo-Csv -NoTypeInformation",
]


def is_windows(platform: Optional[str] = None) -> bool:
    """True when ``platform`` (default: the running interpreter's) is Windows."""
    return (platform or sys.platform) == "win32"


def listing_command(platform: Optional[str] = None) -> list[str]:
    """Returns the listing command for the given platform."""
    if is_windows(platform):
        return list(POWERSHELL_COMMAND)
    return list(PS_COMMAND)


def _resolve_executable(command: list[str]) -> list[str]:
    """Looks up the executable in PATH, raising ListingError if it is missing."""
    if not command:
        raise ListingError("Empty listing command")
    executable = shutil.which(command[0])
    if not executable:
        raise ListingError(f"{command[0]} command not found in PATH")
    return [executable, *command[1:]]


def _exit_error(command: list[str], exit_code: int, stderr: str) -> ListingError:
    message = f"{command[0]} exited with code {exit_code}"
    if stderr.strip():
        message = f"{message}: {stderr.strip()}"
    return ListingError(message)


def _read_stderr(stderr_file) -> str:
    stderr_file.seek(0)
    return stderr_file.read().decode("utf-8", errors="replace")


def run_listing(command: list[str]) -> Iterator[str]:
    """
    Runs the listing command and yields its standard output lines.

    Lines are yielded as the command produces them, without line endings.
    The exit code is checked once output is exhausted, so a consumer that
    buffers everything sees either the complete listing or an exception.
    stderr goes to a temporary file, so the command can't block on it.

    Raises:
        ListingError: If the command is missing, cannot be started, or
            exits with a non-zero code.
    """
    cmd = _resolve_executable(command)
    log.debug(f"Running listing command: {shlex.join(cmd)}")
    with tempfile.TemporaryFile(prefix="pidtree_stderr_") as stderr_file:
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=stderr_file,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            log.error(f"Could not start {command[0]}: {e}")
            raise ListingError(f"Could not start {command[0]}: {e}") from e

        line_count = 0
        completed = False
        try:
            for line in proc.stdout:
                line_count += 1
                yield line.rstrip("\r\n")
            completed = True
        finally:
            # Consumer stopped early, don't leave the child blocked on a full pipe
            if not completed and proc.poll() is None:
                proc.kill()
            proc.stdout.close()
            exit_code = proc.wait()
            log.debug(
                f"{command[0]} (PID {proc.pid}) exited with code {exit_code} "
                f"after {line_count} lines"
            )

        if exit_code != 0:
            error = _exit_error(command, exit_code, _read_stderr(stderr_file))
            log.warning(str(error))
            raise error


async def stream_listing(command: list[str]) -> AsyncIterator[str]:
    """
    Asynchronous version of run_listing(), reading the pipe with asyncio.

    Raises:
        ListingError: Same conditions as run_listing().
    """
    cmd = _resolve_executable(command)
    log.debug(f"Executing async: {shlex.join(cmd)}")
    with tempfile.TemporaryFile(prefix="pidtree_stderr_") as stderr_file:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=stderr_file,
            )
        except OSError as e:
            log.error(f"Could not start {command[0]}: {e}")
            raise ListingError(f"Could not start {command[0]}: {e}") from e

        line_count = 0
        completed = False
        try:
            while True:
                line_bytes = await process.stdout.readline()
                if not line_bytes:
                    break
                line_count += 1
                yield line_bytes.decode("utf-8", errors="replace").rstrip("\r\n")
            completed = True
        finally:
            if not completed and process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    log.debug(f"{command[0]} already exited before kill")
            exit_code = await process.wait()
            log.debug(
                f"{command[0]} (PID {process.pid}) exited with code {exit_code} "
                f"after {line_count} lines"
            )

        if exit_code != 0:
            error = _exit_error(command, exit_code, _read_stderr(stderr_file))
            log.warning(str(error))
            raise error
