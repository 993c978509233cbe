"""
Stdio hardening for the framed output stream.

stdout is consumed by tools that split it into result documents. This module
provides:
1. UTF-8 encoding enforcement on stderr (our only text stream)
2. Environment defaults inherited by every test run (unbuffered, UTF-8)
3. BrokenPipeError handler for when the consumer goes away
"""

import functools
import io
import os
import sys
from typing import Callable, TypeVar

F = TypeVar("F", bound=Callable)


def ensure_utf8_encoding() -> None:
    """
    Enforce UTF-8 encoding on stderr.

    Log messages quote file paths, which may hold any character. stdout is
    written as raw bytes and is left alone.
    """
    if hasattr(sys.stderr, "buffer") and (sys.stderr.encoding or "").lower() != "utf-8":
        sys.stderr = io.TextIOWrapper(
            sys.stderr.buffer,
            encoding="utf-8",
            errors="backslashreplace",
            line_buffering=sys.stderr.line_buffering,
        )


def handle_broken_pipe(func: F) -> F:
    """
    Decorator to handle BrokenPipeError gracefully.

    When the consumer of stdout (``watchrun ... | head``) exits, writing
    raises BrokenPipeError. This decorator exits quietly instead of printing
    a stack trace.

    Usage:
        @handle_broken_pipe
        def main():
            ...

    Args:
        func: The function to wrap

    Returns:
        Wrapped function that handles BrokenPipeError
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BrokenPipeError:
            # Point stdout at devnull so the interpreter's final flush
            # doesn't raise a second time
            try:
                devnull = os.open(os.devnull, os.O_WRONLY)
                os.dup2(devnull, sys.stdout.fileno())
            except (OSError, ValueError):
                # stdout already closed or not a real file
                pass
            sys.exit(1)

    return wrapper  # type: ignore


def harden_stdio() -> None:
    """
    Apply all stdio hardening measures.

    1. Sets environment defaults that test runs inherit: unbuffered output
       so results stream as they happen, UTF-8 I/O
    2. Ensures UTF-8 encoding on stderr

    Call this at the very start of main().
    """
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    os.environ.setdefault("PYTHONUTF8", "1")

    ensure_utf8_encoding()
