"""
watchrun lifecycle - startup, the watch loop, and shutdown.

Handles:
1. Establishing the file watch (fatal if it fails, before any run)
2. Handing control to the rerun scheduler
3. The ordered interrupt shutdown (SignalHandler.shutdown)
4. Hard teardown when something fatal happens mid-session

The single-run path lives here too; it reuses the ProcessHost and signal
forwarding but has no watcher or scheduler.
"""

import asyncio
import logging
import sys
from typing import BinaryIO, Optional

from watchrun.config import WatchConfig
from watchrun.framing import FrameWriter
from watchrun.process import ProcessHost
from watchrun.scheduler import RerunScheduler
from watchrun.session import WatchSession
from watchrun.signals import CancellationToken, SignalHandler, exit_code_for
from watchrun.watcher import FileWatcher

logger = logging.getLogger(__name__)


async def run_watch(config: WatchConfig, stream: Optional[BinaryIO] = None) -> int:
    """
    Watch the configured roots and rerun the command on changes.

    Returns the exit code once interrupted (130 for SIGINT).

    Raises:
        WatchSetupError: If the watch can't be established (no run started)
        SpawnError: If the command can't be started
    """
    writer = FrameWriter(stream if stream is not None else sys.stdout.buffer)
    token = CancellationToken()
    signals = SignalHandler(token, grace=config.grace)
    session = WatchSession.from_config(config)
    host = ProcessHost(config.command, writer, cwd=config.cwd)
    watcher = FileWatcher(config.roots, config.ignore_filter())
    scheduler = RerunScheduler(session, watcher.events, host, token, debounce=config.debounce)

    signals.install()
    try:
        watcher.start()
        writer.hide_cursor()
        await scheduler.run()
        return await signals.shutdown(session, host, writer, watcher)
    except Exception:
        await _abort(host, writer)
        raise
    finally:
        watcher.stop()
        signals.uninstall()


async def run_once(config: WatchConfig, stream: Optional[BinaryIO] = None) -> int:
    """
    Run the command once and return its exit status.

    An interrupt is forwarded to the run like in watch mode; the exit code
    is then 128 + signal number.
    """
    writer = FrameWriter(stream if stream is not None else sys.stdout.buffer, interactive=False)
    token = CancellationToken()
    signals = SignalHandler(token, grace=config.grace)
    host = ProcessHost(config.command, writer, cwd=config.cwd)

    signals.install()
    try:
        invocation = await host.spawn()
        interrupted = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait(
                {invocation.done, interrupted}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            interrupted.cancel()

        if token.cancelled:
            await host.terminate(
                invocation, token.signum, grace=config.grace, escalated=token.escalated
            )
            return token.exit_code

        await host.wait(invocation)
        writer.flush()
        returncode = invocation.returncode
        # Killed by a signal from elsewhere: report it the way a shell would
        return exit_code_for(-returncode) if returncode < 0 else returncode
    finally:
        signals.uninstall()


async def _abort(host: ProcessHost, writer: FrameWriter) -> None:
    """Tear down after a fatal error: no grace period, restore the cursor."""
    active = host.active
    if active is not None:
        logger.warning(f"Killing run #{active.sequence} after a fatal error")
        await host.kill(active)
    try:
        writer.finish()
    except OSError as e:
        # The stream itself may be what failed (consumer gone)
        logger.debug(f"Could not restore cursor: {e}")
