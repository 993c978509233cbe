"""
Rerun scheduling.

RerunScheduler drives the WatchSession state machine from one control loop
that merges three event sources, the change queue, the active run's
completion signal and the cancellation token, plus the debounce deadline
as the wait timeout. Nothing polls.

    IDLE --change--> DEBOUNCING --window elapsed--> RUNNING
    DEBOUNCING --change--> DEBOUNCING (window extended)
    RUNNING --change--> RUNNING (pending-rerun flag set, coalesced to one)
    RUNNING --done, pending--> DEBOUNCING (flag cleared, window restarts)
    RUNNING --done--> IDLE
    any --interrupt--> loop exits, shutdown takes over

Every accepted change is followed by at least one run that starts after the
debounce window following the most recent change, so a rerun never reads
the tree before the last coalesced change.
"""

import asyncio
import logging
import math
import time
from typing import Callable, Optional

from watchrun.process import ProcessHost, RunInvocation
from watchrun.session import Phase, WatchSession
from watchrun.signals import CancellationToken
from watchrun.watcher.types import ChangeEvent

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.2  # seconds


class RerunScheduler:
    """
    Decides when to start the next run.

    Args:
        session: Session state (this scheduler is its only writer)
        events: Queue of ChangeEvents from the file watcher
        host: ProcessHost that spawns runs
        token: Cancellation token; run() returns once it fires
        debounce: Debounce window in seconds
        clock: Monotonic clock, the same one ChangeEvent timestamps use
    """

    def __init__(
        self,
        session: WatchSession,
        events: "asyncio.Queue[ChangeEvent]",
        host: ProcessHost,
        token: CancellationToken,
        debounce: float = DEFAULT_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not math.isfinite(debounce) or debounce <= 0:
            raise ValueError("debounce must be a positive number of seconds")
        self.session = session
        self._events = events
        self._host = host
        self._token = token
        self._debounce = debounce
        self._clock = clock
        self._deadline: Optional[float] = None

    @property
    def deadline(self) -> Optional[float]:
        """When the current debounce window closes (None outside DEBOUNCING)."""
        return self._deadline

    async def run(self) -> None:
        """
        Start the initial run, then schedule reruns until cancelled.

        Returns when the token is cancelled, leaving any active run and the
        session phase for the shutdown sequence. SpawnError propagates.
        """
        if self._token.cancelled:
            return

        await self._start_run()

        cancel_wait = asyncio.ensure_future(self._token.wait())
        next_event: Optional[asyncio.Future] = None
        try:
            while not self._token.cancelled:
                if next_event is None:
                    next_event = asyncio.ensure_future(self._events.get())

                waiters = {cancel_wait, next_event}
                active = self.session.active_run
                if active is not None:
                    waiters.add(active.done)

                timeout = None
                if self.session.phase is Phase.DEBOUNCING:
                    timeout = max(0.0, self._deadline - self._clock())

                done, _ = await asyncio.wait(
                    waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
                )

                if self._token.cancelled:
                    break

                if next_event in done:
                    self.on_change(next_event.result())
                    next_event = None
                    # Drain whatever else already arrived, in order
                    while not self._events.empty():
                        self.on_change(self._events.get_nowait())

                if active is not None and active.done in done:
                    self.on_run_finished(active.done.result())

                if self._window_elapsed():
                    await self._start_run()
        finally:
            for task in (cancel_wait, next_event):
                if task is not None and not task.done():
                    task.cancel()

    def on_change(self, event: ChangeEvent) -> None:
        """Apply one ChangeEvent to the state machine."""
        phase = self.session.phase
        window_end = event.timestamp + self._debounce

        if phase is Phase.IDLE:
            logger.info(f"Change detected: {event.path}")
            self.session.transition(Phase.DEBOUNCING)
            self._deadline = window_end
        elif phase is Phase.DEBOUNCING:
            logger.debug(f"Change within debounce window: {event.path}")
            self.session.transition(Phase.DEBOUNCING)
            self._deadline = max(self._deadline, window_end)
        elif phase is Phase.RUNNING:
            if self.session.request_rerun():
                logger.info(f"Change during run, rerun queued: {event.path}")
            else:
                logger.debug(f"Change during run, coalesced: {event.path}")
        else:
            logger.debug(f"Ignoring change while {phase.value}: {event.path}")

    def on_run_finished(self, invocation: RunInvocation) -> None:
        """Apply a run completion to the state machine."""
        self.session.run_finished()
        if invocation.returncode:
            logger.info(f"Run #{invocation.sequence} reported failures")

        if self.session.take_pending_rerun():
            self.session.transition(Phase.DEBOUNCING)
            self._deadline = self._clock() + self._debounce
        else:
            self.session.transition(Phase.IDLE)
            self._deadline = None

    def _window_elapsed(self) -> bool:
        return (
            self.session.phase is Phase.DEBOUNCING
            and self.session.active_run is None
            and self._clock() >= self._deadline
        )

    async def _start_run(self) -> RunInvocation:
        self.session.transition(Phase.RUNNING)
        self._deadline = None
        invocation = await self._host.spawn()
        self.session.run_started(invocation)
        return invocation
