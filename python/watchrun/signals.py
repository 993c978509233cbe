"""
Interrupt handling and ordered shutdown.

Process-wide signal delivery is turned into an explicit CancellationToken
that the scheduler and the shutdown sequence wait on, so teardown order can
be exercised in tests without real OS signals. SignalHandler wires the token
to SIGINT/SIGTERM and owns the one-time shutdown sequence:

1. session -> TERMINATING, file watcher released
2. active run gets the same signal, bounded wait, then force-kill
3. show-cursor sequence written once, after all run output
4. session -> EXITED, exit code 128 + signal number (130 for SIGINT)
"""

import asyncio
import logging
import signal
from typing import Optional, Sequence

from watchrun.framing import FrameWriter
from watchrun.process import ProcessHost
from watchrun.session import Phase, WatchSession
from watchrun.watcher.types import FileWatcherProtocol

logger = logging.getLogger(__name__)

DEFAULT_GRACE = 2.0  # seconds a child gets to clean up after the interrupt

HANDLED_SIGNALS: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)


def exit_code_for(signum: int) -> int:
    """Conventional shell exit code for termination by ``signum``."""
    return 128 + int(signum)


class CancellationToken:
    """
    Shutdown request shared by the control loop and the shutdown sequence.

    The first cancel() records the signal and wakes every waiter. Later
    calls only count and set ``escalated``, which shortens the grace period
    given to a running child.
    """

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()
        self._escalated = asyncio.Event()
        self.signum: Optional[int] = None
        self.interrupts = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def escalated(self) -> asyncio.Event:
        return self._escalated

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.signum if self.signum is not None else signal.SIGINT)

    def cancel(self, signum: int = signal.SIGINT) -> None:
        self.interrupts += 1
        if self.signum is None:
            self.signum = signum
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self._cancelled.set()
        else:
            logger.warning(
                f"Received {signal.Signals(signum).name} again, not waiting for the test run"
            )
            self._escalated.set()

    async def wait(self) -> None:
        await self._cancelled.wait()


class SignalHandler:
    """
    Connects OS signals to a CancellationToken and runs the shutdown sequence.

    Args:
        token: Token cancelled on the first signal
        grace: Seconds a running child gets after the forwarded signal
        signals: Signals to intercept
    """

    def __init__(
        self,
        token: CancellationToken,
        grace: float = DEFAULT_GRACE,
        signals: Sequence[int] = HANDLED_SIGNALS,
    ) -> None:
        self.token = token
        self.grace = grace
        self._signals = tuple(signals)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous: dict[int, object] = {}
        self._shutdown_task: Optional[asyncio.Task] = None

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Route the configured signals to the token (on the loop thread)."""
        self._loop = loop or asyncio.get_running_loop()
        for signum in self._signals:
            try:
                self._loop.add_signal_handler(signum, self.token.cancel, signum)
            except NotImplementedError:
                # Windows event loops: fall back to a plain handler that hops
                # onto the loop thread
                self._previous[signum] = signal.signal(signum, self._threadsafe_cancel)
        logger.debug(f"Signal handlers installed for {len(self._signals)} signal(s)")

    def _threadsafe_cancel(self, signum, frame) -> None:
        self._loop.call_soon_threadsafe(self.token.cancel, signum)

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for signum in self._signals:
            if signum in self._previous:
                signal.signal(signum, self._previous.pop(signum))
            elif not self._loop.is_closed():
                self._loop.remove_signal_handler(signum)
        self._loop = None

    async def shutdown(
        self,
        session: WatchSession,
        host: ProcessHost,
        writer: FrameWriter,
        watcher: Optional[FileWatcherProtocol] = None,
    ) -> int:
        """
        Run the shutdown sequence once and return the exit code.

        Calling it again (or concurrently) does not repeat any step; every
        caller gets the same exit code.
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(
                self._shutdown(session, host, writer, watcher)
            )
        return await asyncio.shield(self._shutdown_task)

    async def _shutdown(
        self,
        session: WatchSession,
        host: ProcessHost,
        writer: FrameWriter,
        watcher: Optional[FileWatcherProtocol],
    ) -> int:
        signum = self.token.signum if self.token.signum is not None else signal.SIGINT

        session.transition(Phase.TERMINATING)
        if watcher is not None:
            watcher.stop()

        active = host.active
        if active is not None:
            grace = 0.0 if self.token.escalated.is_set() else self.grace
            await host.terminate(active, signum, grace=grace, escalated=self.token.escalated)
        session.run_finished()

        # Child output is fully drained at this point
        writer.finish()

        session.transition(Phase.EXITED)
        code = exit_code_for(signum)
        logger.info(f"Watch session exited after {session.runs_started} run(s), code {code}")
        return code
