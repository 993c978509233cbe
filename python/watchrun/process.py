"""
Child process hosting for test runs.

ProcessHost owns the lifecycle of each run invocation: spawn the test
command, pump its combined stdout/stderr through the FrameWriter while
keeping a copy in the invocation's buffer, report completion, and force
termination on shutdown.

On POSIX the child gets its own session (process group). A Ctrl+C at the
terminal therefore reaches the child only through terminate(), which
forwards the signal to the whole group, so the child sees it exactly once.
"""

import asyncio
import logging
import os
import shlex
import signal
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from watchrun.errors import SpawnError
from watchrun.framing import FrameWriter, ResultSegment, strip_cursor_sequences

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

_POSIX = os.name == "posix"


class RunStatus(Enum):
    """Terminal status of a run invocation."""

    RUNNING = "running"
    COMPLETED = "completed"  # Exited on its own, whatever the exit status
    KILLED = "killed"  # Terminated by the host on shutdown


@dataclass(eq=False)
class RunInvocation:
    """One execution of the test command."""

    sequence: int
    started_at: float
    process: asyncio.subprocess.Process = field(repr=False)
    output: bytearray = field(default_factory=bytearray, repr=False)
    status: RunStatus = RunStatus.RUNNING
    returncode: Optional[int] = None
    finished_at: Optional[float] = None
    # Completion signal: resolves once the child exited and its output is drained
    done: Optional["asyncio.Task[RunInvocation]"] = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    @property
    def duration(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def segment(self) -> ResultSegment:
        """The run's output as a ResultSegment."""
        text = strip_cursor_sequences(bytes(self.output)).decode("utf-8", errors="replace")
        return ResultSegment(self.sequence, text)


class ProcessHost:
    """
    Spawns and supervises one test run at a time.

    Args:
        command: Test command and arguments
        writer: FrameWriter that receives run output as it arrives
        cwd: Working directory for the child (default: inherit)
        env: Environment for the child (default: inherit)
    """

    def __init__(
        self,
        command: Sequence[str],
        writer: FrameWriter,
        cwd: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.writer = writer
        self._cwd = cwd
        self._env = env
        self._chunk_size = chunk_size
        self._sequence = 0
        self._active: Optional[RunInvocation] = None

    @property
    def active(self) -> Optional[RunInvocation]:
        """The live run invocation, if any."""
        if self._active is not None and self._active.done is not None and self._active.done.done():
            return None
        return self._active

    async def spawn(self) -> RunInvocation:
        """
        Start the next run.

        Raises:
            RuntimeError: If a run is still live
            SpawnError: If the command can't be started
        """
        if self.active is not None:
            raise RuntimeError(f"Run #{self._active.sequence} is still running")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self._cwd,
                env=self._env,
                start_new_session=_POSIX,
            )
        except OSError as e:
            raise SpawnError(f"Could not start `{shlex.join(self.command)}`: {e}") from e

        self._sequence += 1
        invocation = RunInvocation(
            sequence=self._sequence,
            started_at=time.monotonic(),
            process=process,
        )
        self.writer.begin_run()
        invocation.done = asyncio.create_task(self._supervise(invocation))
        self._active = invocation

        logger.info(f"Run #{invocation.sequence} started (pid {invocation.pid})")
        return invocation

    async def _supervise(self, invocation: RunInvocation) -> RunInvocation:
        """Pump output until EOF, then collect the exit status."""
        stream = invocation.process.stdout
        try:
            while True:
                chunk = await stream.read(self._chunk_size)
                if not chunk:
                    break
                invocation.output += chunk
                self.writer.write(chunk)
                self.writer.flush()
        except BaseException as e:
            # Nobody else can reach the child once this task is done
            if invocation.process.returncode is None:
                logger.error(f"Run #{invocation.sequence} lost its output stream ({e!r}), killing it")
                invocation.status = RunStatus.KILLED
                self._kill(invocation)
                while await stream.read(self._chunk_size):
                    pass
                invocation.returncode = await invocation.process.wait()
                invocation.finished_at = time.monotonic()
            raise

        invocation.returncode = await invocation.process.wait()
        invocation.finished_at = time.monotonic()
        if invocation.status is RunStatus.RUNNING:
            invocation.status = RunStatus.COMPLETED

        logger.info(
            f"Run #{invocation.sequence} {invocation.status.value} "
            f"(exit status {invocation.returncode}, {invocation.duration:.2f}s)"
        )
        return invocation

    async def wait(self, invocation: RunInvocation) -> RunInvocation:
        """Wait for a run to finish on its own."""
        return await asyncio.shield(invocation.done)

    async def terminate(
        self,
        invocation: RunInvocation,
        signum: int = signal.SIGINT,
        grace: float = 2.0,
        escalated: Optional[asyncio.Event] = None,
    ) -> RunInvocation:
        """
        Forward ``signum`` to a run and wait for it to exit.

        The child gets ``grace`` seconds to run its own cleanup (its output
        is still drained), then it is killed. Setting ``escalated`` (a second
        interrupt) cuts the grace period short.
        """
        if invocation.done.done():
            return invocation.done.result()

        invocation.status = RunStatus.KILLED
        logger.info(
            f"Forwarding {signal.Signals(signum).name} to run #{invocation.sequence} "
            f"(pid {invocation.pid})"
        )
        self._send_signal(invocation, signum)

        waiters: set[asyncio.Future] = {invocation.done}
        escalation = None
        if escalated is not None:
            escalation = asyncio.ensure_future(escalated.wait())
            waiters.add(escalation)
        try:
            await asyncio.wait(waiters, timeout=grace, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if escalation is not None:
                escalation.cancel()

        if not invocation.done.done():
            logger.warning(f"Run #{invocation.sequence} still alive, killing it")
            self._kill(invocation)

        return await invocation.done

    async def kill(self, invocation: RunInvocation) -> RunInvocation:
        """Kill a run without a grace period."""
        if not invocation.done.done():
            invocation.status = RunStatus.KILLED
            self._kill(invocation)
        return await invocation.done

    def _send_signal(self, invocation: RunInvocation, signum: int) -> None:
        try:
            if _POSIX:
                os.killpg(invocation.pid, signum)
            else:
                invocation.process.terminate()
        except ProcessLookupError:
            logger.debug(f"Run #{invocation.sequence} already exited")

    def _kill(self, invocation: RunInvocation) -> None:
        try:
            if _POSIX:
                os.killpg(invocation.pid, signal.SIGKILL)
            else:
                invocation.process.kill()
        except ProcessLookupError:
            logger.debug(f"Run #{invocation.sequence} already exited")
