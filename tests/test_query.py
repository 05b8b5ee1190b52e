# Filename: tests/test_query.py
"""Tests for the public query functions."""

import asyncio
import os
import shutil
import subprocess
import sys

import pytest

import pidtree.query
from pidtree import (
    ListingError,
    UsageError,
    children_of_pid,
    children_of_pid_async,
    find_descendants,
)

PS_OUTPUT = [
    " PPID   PID STAT COMMAND",
    "    1   100 S    sh",
    "  100   200 R    node",
    "  999   300 S    other",
]

CSV_OUTPUT = [
    '"ParentProcessId","ProcessId","Status","Name"',
    '"4","100","","services.exe"',
    '"100","200","","C:\\Program Files\\App, Inc\\app.exe"',
    '"200","300","","helper.exe"',
]

HAS_PS = sys.platform != "win32" and shutil.which("ps") is not None


@pytest.fixture
def fake_listing(monkeypatch):
    """Replaces the listing command with canned output; records the commands run."""
    calls = []

    def install(lines, error=None):
        def run_listing(command):
            calls.append(command)
            yield from lines
            if error is not None:
                raise error

        monkeypatch.setattr(pidtree.query, "run_listing", run_listing)
        return calls

    return install


def wait_for_callback(pid, **kwargs):
    """Runs find_descendants and returns every callback invocation."""
    invocations = []
    thread = find_descendants(
        pid, lambda err, res: invocations.append((err, res)), **kwargs
    )
    thread.join(timeout=10)
    assert not thread.is_alive()
    return invocations


# --- children_of_pid ---


def test_children_of_pid_posix(fake_listing):
    """The ps listing is parsed and filtered to descendants."""
    calls = fake_listing(PS_OUTPUT)
    assert children_of_pid(100, platform="linux") == [
        {"PPID": "100", "PID": "200", "STAT": "R", "COMMAND": "node"}
    ]
    assert calls == [["ps", "-A", "-o", "ppid,pid,stat,comm"]]


def test_children_of_pid_windows(fake_listing):
    """The PowerShell CSV listing is parsed with commas kept in names."""
    calls = fake_listing(CSV_OUTPUT)
    rows = children_of_pid("100", platform="win32")
    assert [r["PID"] for r in rows] == ["200", "300"]
    assert rows[0]["COMMAND"] == "C:\\Program Files\\App, Inc\\app.exe"
    assert rows[0]["STAT"] == ""
    assert calls[0][0] == "powershell.exe"


def test_children_of_pid_unknown_root(fake_listing):
    """A PID not in the table gives an empty list."""
    fake_listing(PS_OUTPUT)
    assert children_of_pid(123456, platform="linux") == []


def test_children_of_pid_closure(fake_listing):
    """closure=True finds children listed before their parents."""
    fake_listing(
        ["PPID PID STAT COMMAND", "200 300 S grandchild", "100 200 S child"]
    )
    assert [r["PID"] for r in children_of_pid(100, platform="linux")] == ["200"]
    assert [
        r["PID"] for r in children_of_pid(100, platform="linux", closure=True)
    ] == ["300", "200"]


def test_children_of_pid_listing_error(fake_listing):
    """A failing listing raises, without partial results."""
    fake_listing(PS_OUTPUT, error=ListingError("ps exited with code 1"))
    with pytest.raises(ListingError, match="code 1"):
        children_of_pid(100, platform="linux")


def test_children_of_pid_unknown_source():
    """Only the known sources are accepted."""
    with pytest.raises(UsageError, match="Unknown process source"):
        children_of_pid(1, source="proc")


def test_children_of_pid_psutil_source(monkeypatch):
    """The psutil source skips the listing command entirely."""
    rows = [
        {"PPID": "1", "PID": "100", "STAT": "S", "COMMAND": "sh"},
        {"PPID": "100", "PID": "200", "STAT": "R", "COMMAND": "node"},
    ]
    monkeypatch.setattr(pidtree.query, "process_rows", lambda: rows)
    monkeypatch.setattr(
        pidtree.query,
        "run_listing",
        lambda command: pytest.fail("listing command should not run"),
    )
    assert children_of_pid(100, source="psutil") == [rows[1]]


# --- find_descendants ---


def test_find_descendants_requires_callback():
    """A missing callback is reported synchronously."""
    with pytest.raises(UsageError, match="expects callback"):
        find_descendants(100, None)
    with pytest.raises(TypeError):
        find_descendants(100, "not callable")


def test_find_descendants_no_listing_without_callback(fake_listing):
    """Nothing is listed when the callback is missing."""
    calls = fake_listing(PS_OUTPUT)
    with pytest.raises(UsageError):
        find_descendants(100, None)
    assert calls == []


def test_find_descendants_success(fake_listing):
    """The callback gets (None, rows) exactly once."""
    fake_listing(PS_OUTPUT)
    invocations = wait_for_callback(100, platform="linux")
    assert invocations == [
        (None, [{"PPID": "100", "PID": "200", "STAT": "R", "COMMAND": "node"}])
    ]


def test_find_descendants_empty_result(fake_listing):
    """A childless root is a success with an empty list."""
    fake_listing(PS_OUTPUT)
    assert wait_for_callback(300, platform="linux") == [(None, [])]


def test_find_descendants_listing_error(fake_listing):
    """A listing failure goes to the callback once, without results."""
    fake_listing(PS_OUTPUT, error=ListingError("ps exited with code 1"))
    invocations = wait_for_callback(100, platform="linux")
    assert len(invocations) == 1
    error, results = invocations[0]
    assert isinstance(error, ListingError)
    assert results is None


def test_find_descendants_unexpected_error(fake_listing, monkeypatch):
    """Unexpected failures are wrapped in ListingError, never raised."""
    fake_listing(PS_OUTPUT)

    def explode(rows, pid, closure=False):
        raise ValueError("bad row")

    monkeypatch.setattr(pidtree.query, "descendants", explode)
    invocations = wait_for_callback(100, platform="linux")
    assert len(invocations) == 1
    error, results = invocations[0]
    assert isinstance(error, ListingError)
    assert isinstance(error.__cause__, ValueError)
    assert results is None


def test_find_descendants_missing_command(monkeypatch):
    """A listing command that can't be found is reported via the callback."""
    monkeypatch.setattr(
        pidtree.query, "listing_command", lambda platform: ["pidtree-no-such-cmd"]
    )
    invocations = wait_for_callback(1)
    assert len(invocations) == 1
    assert isinstance(invocations[0][0], ListingError)
    assert invocations[0][1] is None


def test_find_descendants_pid_coerced(fake_listing, monkeypatch):
    """Numeric PIDs are compared in their string form."""
    fake_listing(PS_OUTPUT)
    seen = []
    original = pidtree.query.descendants

    def spy(rows, pid, closure=False):
        seen.append(pid)
        return original(rows, pid, closure=closure)

    monkeypatch.setattr(pidtree.query, "descendants", spy)
    wait_for_callback(100, platform="linux")
    assert seen == ["100"]


# --- Live process table ---


@pytest.fixture
def sleeping_child():
    """A child process of the test runner that stays alive during the test."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    try:
        yield proc
    finally:
        proc.kill()
        proc.wait()


@pytest.mark.skipif(not HAS_PS, reason="needs a POSIX ps")
def test_live_ps_finds_child(sleeping_child):
    """Running the real ps finds a child of this process."""
    pids = [r["PID"] for r in children_of_pid(os.getpid())]
    assert str(sleeping_child.pid) in pids


@pytest.mark.skipif(not HAS_PS, reason="needs a POSIX ps")
def test_live_ps_async_finds_child(sleeping_child):
    """The asyncio query finds the same child."""
    rows = asyncio.run(children_of_pid_async(os.getpid(), closure=True))
    assert str(sleeping_child.pid) in [r["PID"] for r in rows]


def test_live_psutil_finds_child(sleeping_child):
    """The psutil source finds a child of this process."""
    rows = children_of_pid(os.getpid(), source="psutil")
    assert str(sleeping_child.pid) in [r["PID"] for r in rows]


@pytest.mark.skipif(not HAS_PS, reason="needs a POSIX ps")
def test_live_callback(sleeping_child):
    """The callback form works against the real process table."""
    invocations = wait_for_callback(os.getpid())
    assert len(invocations) == 1
    error, results = invocations[0]
    assert error is None
    assert str(sleeping_child.pid) in [r["PID"] for r in results]
