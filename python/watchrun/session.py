"""
Watch session state.

WatchSession is the single state container for one watch: configuration
snapshot, lifecycle phase, active run and the pending-rerun flag. Only the
scheduler's control flow (and the shutdown sequence it hands over to)
mutates it; the observer thread never touches it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from watchrun.errors import InvalidTransitionError

if TYPE_CHECKING:
    from watchrun.config import WatchConfig
    from watchrun.process import RunInvocation

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Lifecycle phase of a watch session."""

    IDLE = "idle"  # Last run settled, waiting for changes
    DEBOUNCING = "debouncing"  # Change seen, waiting for the window to close
    RUNNING = "running"  # A run invocation is live
    TERMINATING = "terminating"  # Interrupt received, tearing down
    EXITED = "exited"  # Terminal


_TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    # IDLE -> RUNNING is the initial run at watch start
    Phase.IDLE: frozenset({Phase.DEBOUNCING, Phase.RUNNING, Phase.TERMINATING}),
    Phase.DEBOUNCING: frozenset({Phase.DEBOUNCING, Phase.RUNNING, Phase.TERMINATING}),
    Phase.RUNNING: frozenset({Phase.IDLE, Phase.DEBOUNCING, Phase.TERMINATING}),
    Phase.TERMINATING: frozenset({Phase.EXITED}),
    Phase.EXITED: frozenset(),
}


@dataclass
class WatchSession:
    """Top-level state of one watch, owned by the scheduler."""

    roots: tuple[Path, ...]
    extensions: tuple[str, ...]
    ignore_patterns: tuple[str, ...] = ()
    phase: Phase = Phase.IDLE
    active_run: Optional["RunInvocation"] = field(default=None, repr=False)
    pending_rerun: bool = False
    runs_started: int = 0

    @classmethod
    def from_config(cls, config: "WatchConfig") -> "WatchSession":
        return cls(
            roots=tuple(config.roots),
            extensions=tuple(config.extensions),
            ignore_patterns=tuple(config.ignore_patterns),
        )

    @property
    def exited(self) -> bool:
        return self.phase is Phase.EXITED

    def can_transition(self, target: Phase) -> bool:
        return target in _TRANSITIONS[self.phase]

    def transition(self, target: Phase) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: If the move is not in the transition table
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self.phase, target)
        if target is not self.phase:
            logger.debug(f"Session phase {self.phase.value} -> {target.value}")
        self.phase = target

    def run_started(self, invocation: "RunInvocation") -> None:
        """Record a freshly spawned run as the active one."""
        if self.active_run is not None:
            raise RuntimeError(
                f"Run #{self.active_run.sequence} is still active, "
                f"cannot start run #{invocation.sequence}"
            )
        self.active_run = invocation
        self.runs_started += 1

    def run_finished(self) -> Optional["RunInvocation"]:
        """Clear the active run and return it."""
        invocation, self.active_run = self.active_run, None
        return invocation

    def request_rerun(self) -> bool:
        """
        Set the pending-rerun flag.

        Returns:
            True if the flag was newly set, False if a rerun was already
            pending (the request coalesces into it)
        """
        if self.pending_rerun:
            return False
        self.pending_rerun = True
        return True

    def take_pending_rerun(self) -> bool:
        """Clear the pending-rerun flag, returning whether it was set."""
        pending, self.pending_rerun = self.pending_rerun, False
        return pending
