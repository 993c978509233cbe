"""
File system watcher for rerun-on-change.

This package bridges OS-level change notifications (through the watchdog
library) into a stream of ChangeEvent values that have already passed the
IgnoreFilter. The rerun scheduler is the only consumer.

Typical usage:
--------------
    from watchrun.ignore_patterns import IgnoreFilter
    from watchrun.watcher import FileWatcher

    watcher = FileWatcher(
        roots=[Path.cwd()],
        ignore_filter=IgnoreFilter(extensions=["py"]),
    )
    watcher.start()
    event = await watcher.events.get()
    watcher.stop()

ERROR CONDITIONS SUMMARY
========================

1. ROOT ERRORS:
   - Root path doesn't exist → WatchSetupError on start()
   - OS refuses the watch (inotify limits) → WatchSetupError on start()

2. LIFECYCLE ERRORS:
   - start() called twice → RuntimeError
   - stop() called before start() → No-op (safe)
   - stop() called twice → No-op (safe)

3. EVENT HANDLING:
   - Deletions and directory events → not reported
   - Moves → reported as CREATED at the destination
   - Event channel full → event dropped (a queued event already covers it)
   - Events after stop() → dropped
"""

from watchrun.watcher.core import FileWatcher
from watchrun.watcher.handlers import ChangeEventHandler
from watchrun.watcher.types import ChangeEvent, ChangeKind, FileWatcherProtocol

__all__ = [
    "ChangeEvent",
    "ChangeEventHandler",
    "ChangeKind",
    "FileWatcher",
    "FileWatcherProtocol",
]
