"""
Pytest configuration and fixtures for watchrun tests.

- Workspace fixtures: temporary watch roots with a sample source file
- Scheduler fixtures: FakeHost, a ProcessHost stand-in whose runs the test
  completes by hand, so state transitions can be driven deterministically
- Output fixtures: FrameWriter over an in-memory stream
"""

import asyncio
import io
import logging
import signal
import sys
import time
from pathlib import Path

import pytest


# ============================================================================
# WORKSPACE FIXTURES
# ============================================================================


@pytest.fixture
def temp_workspace(tmp_path):
    """Create temporary workspace directory for testing."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace.resolve()


@pytest.fixture
def sample_file(temp_workspace):
    """Create a sample Python file in workspace."""
    file_path = temp_workspace / "test_sample.py"
    file_path.write_text("def test_hello(): pass\n")
    return file_path


def touch_file(path: Path) -> None:
    """Touch a file by appending a space, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        f.write(" ")


@pytest.fixture
def touch():
    return touch_file


# ============================================================================
# OUTPUT FIXTURES
# ============================================================================


@pytest.fixture
def output_stream():
    """In-memory binary stream standing in for stdout."""
    return io.BytesIO()


@pytest.fixture
def frame_writer(output_stream):
    from watchrun.framing import FrameWriter

    return FrameWriter(output_stream, interactive=False)


# ============================================================================
# SCHEDULER FIXTURES
# ============================================================================


class FakeRun:
    """RunInvocation stand-in; the test decides when it finishes."""

    def __init__(self, sequence: int) -> None:
        self.sequence = sequence
        self.returncode = None
        self.started_at = time.monotonic()
        self.done = asyncio.get_running_loop().create_future()

    def complete(self, returncode: int = 0) -> None:
        if not self.done.done():
            self.returncode = returncode
            self.done.set_result(self)


class FakeHost:
    """
    ProcessHost stand-in.

    Records spawned runs and terminate() calls. ``events`` is a shared list
    that shutdown-ordering tests append to from several fakes.
    """

    def __init__(self, events=None, fail_spawn: bool = False) -> None:
        self.runs: list[FakeRun] = []
        self.terminated: list[tuple[int, int]] = []
        self.events = events if events is not None else []
        self._fail_spawn = fail_spawn

    @property
    def active(self):
        if self.runs and not self.runs[-1].done.done():
            return self.runs[-1]
        return None

    async def spawn(self):
        from watchrun.errors import SpawnError

        if self._fail_spawn:
            raise SpawnError("fake spawn failure")
        if self.active is not None:
            raise RuntimeError("run still active")
        run = FakeRun(len(self.runs) + 1)
        self.runs.append(run)
        self.events.append(("spawn", run.sequence))
        return run

    async def terminate(self, invocation, signum=signal.SIGINT, grace=2.0, escalated=None):
        self.terminated.append((invocation.sequence, signum))
        self.events.append(("terminate", invocation.sequence))
        invocation.complete(-signum)
        return invocation

    async def kill(self, invocation):
        invocation.complete(-signal.SIGKILL)
        return invocation


@pytest.fixture
def fake_host_factory():
    return FakeHost


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def session(temp_workspace):
    from watchrun.session import WatchSession

    return WatchSession(roots=(temp_workspace,), extensions=("py",))


@pytest.fixture
def token():
    from watchrun.signals import CancellationToken

    return CancellationToken()


async def wait_until(predicate, timeout: float = 3.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` on the loop until true, failing after ``timeout``."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def until():
    return wait_until


# ============================================================================
# ENVIRONMENT
# ============================================================================


@pytest.fixture
def python_child():
    """Build a command that runs a Python snippet in a child interpreter."""

    def _command(code: str) -> list[str]:
        return [sys.executable, "-c", code]

    return _command


@pytest.fixture(autouse=True)
def reset_watchrun_logger():
    """Drop handlers that CLI tests attach to the watchrun logger."""
    yield
    logger = logging.getLogger("watchrun")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
