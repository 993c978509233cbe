"""
File watcher type definitions and protocol.

This module defines the core types and protocols for file watching:
- ChangeKind enum: Event kinds that trigger a rerun
- ChangeEvent: Immutable record handed from the observer to the scheduler
- FileWatcherProtocol: Interface contract for file watchers
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol


class ChangeKind(Enum):
    """File system event kinds that trigger a rerun."""

    CREATED = "created"  # New file added (moves land here too)
    MODIFIED = "modified"  # Existing file content changed


@dataclass(frozen=True)
class ChangeEvent:
    """
    One observed change to a watched, non-ignored path.

    ``timestamp`` is a ``time.monotonic()`` reading taken when the observer
    saw the change; the scheduler computes its debounce deadline from it.
    """

    path: Path
    timestamp: float
    kind: ChangeKind = ChangeKind.MODIFIED


class FileWatcherProtocol(Protocol):
    """
    Protocol defining the file watcher interface.

    The file watcher monitors one or more roots and puts ChangeEvents on
    ``events``. It never touches session state: the scheduler is the only
    consumer and the only writer.

    Thread Safety:
    --------------
    - Watchdog runs in a separate thread
    - Events cross into the asyncio loop via call_soon_threadsafe
    - ``events`` is only read from the loop thread
    """

    events: "asyncio.Queue[ChangeEvent]"

    def start(self) -> None:
        """
        Start watching.

        Error Conditions:
        -----------------
        - Raises RuntimeError if already started
        - Raises WatchSetupError if a root doesn't exist or can't be watched
        """
        ...

    def stop(self) -> None:
        """Stop watching and release the OS handle. Safe to call repeatedly."""
        ...

    def is_running(self) -> bool:
        """Check if watcher is currently active."""
        ...
