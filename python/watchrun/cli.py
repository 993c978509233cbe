"""
Command-line entry point.

Usage:
    watchrun --watch -- python -m pytest -q
    watchrun --watch --extension py,toml --ignore "docs/**" -- pytest
    watchrun -- pytest            # single run, exit with its status

Or via environment variables:
    WATCHRUN_DEBOUNCE=0.5 WATCHRUN_EXTENSIONS=py,toml watchrun --watch
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from watchrun import __version__
from watchrun.config import WatchConfig
from watchrun.errors import SpawnError, WatchSetupError
from watchrun.logging_config import get_logger, setup_logging
from watchrun.signals import exit_code_for
from watchrun.stdio_hardening import handle_broken_pipe, harden_stdio

EXIT_STARTUP_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchrun",
        description="Run a test command, and with --watch rerun it whenever watched files change.",
    )
    parser.add_argument(
        "--watch",
        "-w",
        action="store_true",
        help="Watch files and rerun the command on changes (Ctrl+C to stop)",
    )
    parser.add_argument(
        "--extension",
        action="append",
        metavar="LIST",
        default=None,
        help="Comma-separated file extensions that trigger a rerun (default: py). Repeatable.",
    )
    parser.add_argument(
        "--ignore",
        action="append",
        metavar="PATTERN",
        default=None,
        help="Gitignore-style pattern of paths that never trigger a rerun. Repeatable.",
    )
    parser.add_argument(
        "--root",
        action="append",
        type=Path,
        metavar="PATH",
        default=None,
        help="File or directory to watch (default: current directory). Repeatable.",
    )
    parser.add_argument(
        "--debounce",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Quiet period after a change before rerunning (default: 0.2, or WATCHRUN_DEBOUNCE)",
    )
    parser.add_argument(
        "--grace",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Time a run gets to exit after Ctrl+C before it is killed (default: 2.0)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("WATCHRUN_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for stderr/file logs (default: WARNING)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=os.environ.get("WATCHRUN_LOG_DIR"),
        metavar="DIR",
        help="Also write daily log files to DIR (or WATCHRUN_LOG_DIR)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Test command, after -- (default: python -m pytest)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> WatchConfig:
    """
    Raises:
        ValueError: On invalid values (from flags or WATCHRUN_* variables)
    """
    command = list(args.command or [])
    if command and command[0] == "--":
        command = command[1:]

    return WatchConfig.from_env(
        command=command or None,
        roots=args.root,
        extensions=tuple(args.extension) if args.extension else None,
        ignore_patterns=args.ignore,
        debounce=args.debounce,
        grace=args.grace,
        watch=args.watch,
    )


@handle_broken_pipe
def main(argv: Optional[Sequence[str]] = None) -> int:
    harden_stdio()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        log_dir=Path(args.log_dir) if args.log_dir else None,
        level=getattr(logging, args.log_level),
    )
    logger = get_logger("watchrun.cli")

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    from watchrun.lifecycle import run_once, run_watch

    runner = run_watch if config.watch else run_once
    try:
        return asyncio.run(runner(config))
    except (WatchSetupError, SpawnError) as e:
        logger.error(str(e))
        return EXIT_STARTUP_FAILURE
    except KeyboardInterrupt:
        # Interrupt arrived before the handlers were installed
        return exit_code_for(signal.SIGINT)


if __name__ == "__main__":
    sys.exit(main())
