"""
Core file watching implementation.

This module provides the FileWatcher class that monitors one or more roots
with the watchdog library and feeds accepted changes into a bounded
asyncio queue consumed by the rerun scheduler.

On Linux watchdog uses inotify, on macOS FSEvents, on Windows
ReadDirectoryChangesW. Recursive watches pick up directories created after
start, so a file touched inside a brand new subdirectory is still seen.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from watchrun.errors import WatchSetupError
from watchrun.ignore_patterns import IgnoreFilter
from watchrun.watcher.types import ChangeEvent

logger = logging.getLogger(__name__)

# Bound on undelivered events. Overflow is dropped: any event already queued
# leads to a rerun that reads the filesystem after the dropped change.
DEFAULT_QUEUE_SIZE = 1024

# stop() runs on the event loop during shutdown; don't hold it up for long
STOP_TIMEOUT = 1.0


class FileWatcher:
    """
    Watchdog-backed watcher producing ChangeEvents.

    Constructor Args:
    -----------------
    roots: Directories (watched recursively) or files (watched through their
        parent directory, only the named file is reported)
    ignore_filter: IgnoreFilter applied on the observer thread
    loop: Event loop that owns ``events`` (default: running loop at start())
    queue_size: Bound on undelivered events

    Example Usage:
    --------------
    >>> watcher = FileWatcher([Path.cwd()], IgnoreFilter(extensions=["py"]))
    >>> watcher.start()
    >>> event = await watcher.events.get()
    >>> watcher.stop()
    """

    def __init__(
        self,
        roots: Iterable[Path],
        ignore_filter: IgnoreFilter,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._roots = [Path(r) for r in roots]
        if not self._roots:
            raise ValueError("FileWatcher needs at least one root")

        self.ignore_filter = ignore_filter
        self.events: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=queue_size)

        self._loop = loop
        self._observer = None
        self._accepting = False

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def start(self) -> None:
        """
        Start watching all roots.

        Raises:
        -------
        RuntimeError: If already running
        WatchSetupError: If a root doesn't exist or the OS refuses the watch
        """
        if self.is_running():
            raise RuntimeError("FileWatcher is already running")

        from watchdog.observers import Observer

        from watchrun.watcher.handlers import ChangeEventHandler

        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        resolved = []
        for root in self._roots:
            if not root.exists():
                raise WatchSetupError(f"Watch root does not exist: {root}")
            resolved.append(root.resolve())

        observer = Observer()
        try:
            for root in resolved:
                if root.is_dir():
                    observer.schedule(ChangeEventHandler(self), str(root), recursive=True)
                else:
                    observer.schedule(
                        ChangeEventHandler(self, only=root), str(root.parent), recursive=False
                    )
            observer.start()
        except OSError as e:
            # inotify watch/instance limits land here (ENOSPC, EMFILE)
            raise WatchSetupError(f"Could not watch {', '.join(map(str, resolved))}: {e}") from e

        self._observer = observer
        self._accepting = True
        logger.info(f"Watching {len(resolved)} root(s): {', '.join(map(str, resolved))}")
        logger.debug(f"Filter: {self.ignore_filter!r}")

    def publish(self, event: ChangeEvent) -> None:
        """
        Hand an accepted event to the loop (called on the observer thread).
        """
        loop = self._loop
        if not self._accepting or loop is None or loop.is_closed():
            return

        try:
            loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            # Loop closed between the check and the call (shutdown race)
            logger.debug(f"Loop closed, dropping change to {event.path}")

    def _enqueue(self, event: ChangeEvent) -> None:
        if not self._accepting:
            return
        try:
            self.events.put_nowait(event)
        except asyncio.QueueFull:
            logger.debug(f"Event channel full, coalescing change to {event.path}")

    def stop(self) -> None:
        """
        Stop watching and release the OS watch handle.
        """
        self._accepting = False
        if self._observer is not None:
            logger.info("Stopping file watcher")
            self._observer.stop()
            self._observer.join(timeout=STOP_TIMEOUT)
            if self._observer.is_alive():
                logger.warning(f"Observer thread did not exit within {STOP_TIMEOUT:g}s, leaving it")
            self._observer = None

    def is_running(self) -> bool:
        """Check if watcher is currently active."""
        if self._observer is not None:
            return self._observer.is_alive()
        return False
