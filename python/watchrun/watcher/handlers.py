"""
Internal event handlers for watchdog file system monitoring.

This module provides the low-level event handler that interfaces with
the watchdog library and turns raw file system events into ChangeEvents
for the FileWatcher.
"""

import os
import time
from pathlib import Path
from typing import Optional

from watchrun.watcher.types import ChangeEvent, ChangeKind


class ChangeEventHandler:
    """
    Internal event handler for watchdog.

    Receives raw events on the observer thread, drops directory events and
    deletions, runs the IgnoreFilter and hands accepted changes to the
    watcher. One handler is scheduled per watch root.
    """

    def __init__(self, watcher: "FileWatcher", only: Optional[Path] = None) -> None:  # noqa: F821
        """
        Initialize event handler.

        Args:
        -----
        watcher: FileWatcher instance to route events to
        only: For a file root, the single path this handler accepts
        """
        self.watcher = watcher
        self._only = only

    def dispatch(self, event) -> None:
        """Dispatch file system events to watcher."""
        from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileMovedEvent

        if event.is_directory:
            return

        if isinstance(event, FileMovedEvent):
            # Editors that save via rename-over show up as a move onto the target
            file_path = Path(os.fsdecode(event.dest_path))
            kind = ChangeKind.CREATED
        elif isinstance(event, FileCreatedEvent):
            file_path = Path(os.fsdecode(event.src_path))
            kind = ChangeKind.CREATED
        elif isinstance(event, FileModifiedEvent):
            file_path = Path(os.fsdecode(event.src_path))
            kind = ChangeKind.MODIFIED
        else:
            # Deletions, opens and closes never trigger a rerun
            return

        if self._only is not None:
            if file_path != self._only:
                return
            accepted = self.watcher.ignore_filter.accepts(file_path, explicit=True)
        else:
            accepted = self.watcher.ignore_filter.accepts(file_path)

        if accepted:
            self.watcher.publish(ChangeEvent(file_path, time.monotonic(), kind))
