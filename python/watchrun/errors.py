"""
Exceptions raised by the watch controller.

Startup failures (WatchSetupError, SpawnError) are fatal: the CLI reports
them and exits with EXIT_STARTUP_FAILURE before or instead of any rerun.
"""


class WatchrunError(Exception):
    """Base class for watchrun errors."""


class WatchSetupError(WatchrunError):
    """The filesystem watch could not be established (missing root, OS limit)."""


class SpawnError(WatchrunError):
    """The test command could not be started."""


class InvalidTransitionError(WatchrunError):
    """A WatchSession phase change outside the allowed transition set."""

    def __init__(self, current, target) -> None:
        super().__init__(f"Invalid phase transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target
