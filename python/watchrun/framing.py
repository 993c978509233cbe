"""
Run framing on the shared output stream.

Every run writes its output to the same stdout. Two control sequences make
the stream recoverable:

- ``ESC[2K`` (clear line) is written before every run except the first, so
  consecutive runs are separated by it.
- ``ESC[?25h`` (show cursor) is written exactly once, at shutdown, after all
  run output (forced-kill output included).

A consumer strips every cursor show/hide sequence from the captured output,
splits the remainder on the clear-line sequence and parses each piece as one
result document. FrameWriter is the producer side, OutputFramer the
incremental consumer side, split_segments the one-shot consumer.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional

logger = logging.getLogger(__name__)

CLEAR_LINE = b"\x1b[2K"
SHOW_CURSOR = b"\x1b[?25h"
HIDE_CURSOR = b"\x1b[?25l"

_MARKERS = (CLEAR_LINE, SHOW_CURSOR, HIDE_CURSOR)
_CURSOR_RE = re.compile(rb"\x1b\[\?25[hl]")


def strip_cursor_sequences(data: bytes) -> bytes:
    """Remove every cursor show/hide sequence."""
    return _CURSOR_RE.sub(b"", data)


def _partial_marker_length(data: bytes) -> int:
    """
    Length of the longest suffix of ``data`` that is a proper prefix of a
    marker, i.e. bytes that may still turn into a marker once more arrive.
    """
    longest = max(len(m) for m in _MARKERS) - 1
    for size in range(min(longest, len(data)), 0, -1):
        tail = data[-size:]
        if any(m.startswith(tail) and size < len(m) for m in _MARKERS):
            return size
    return 0


@dataclass(frozen=True)
class ResultSegment:
    """One run's output recovered from the framed stream."""

    index: int  # 1-based, matches RunInvocation.sequence
    text: str

    def document(self) -> Any:
        """
        Parse the segment as a JSON result document.

        Raises:
            json.JSONDecodeError: If the run did not emit a JSON document
        """
        return json.loads(self.text)


class FrameWriter:
    """
    Producer side: writes run output and frame markers to one byte stream.

    Writes after finish() are dropped so the show-cursor sequence is always
    the last thing on the stream.
    """

    def __init__(self, stream: BinaryIO, interactive: Optional[bool] = None) -> None:
        self._stream = stream
        if interactive is None:
            isatty = getattr(stream, "isatty", None)
            interactive = bool(isatty and isatty())
        self.interactive = interactive
        self._runs = 0
        self._finished = False

    @property
    def runs(self) -> int:
        """Number of runs framed so far."""
        return self._runs

    @property
    def finished(self) -> bool:
        return self._finished

    def hide_cursor(self) -> None:
        """Hide the cursor while watching (terminals only)."""
        if self.interactive and not self._finished:
            self._write(HIDE_CURSOR)
            self.flush()

    def begin_run(self) -> None:
        """Open a new run frame, separating it from the previous one."""
        if self._finished:
            logger.debug("begin_run() after finish(), ignoring")
            return
        if self._runs > 0:
            self._write(CLEAR_LINE)
        self._runs += 1
        self.flush()

    def write(self, data: bytes) -> None:
        if self._finished:
            logger.debug(f"Dropping {len(data)} byte(s) written after finish()")
            return
        self._write(data)

    def flush(self) -> None:
        self._stream.flush()

    def finish(self) -> None:
        """Restore the cursor. Idempotent: the sequence is written once."""
        if self._finished:
            return
        self._write(SHOW_CURSOR)
        self.flush()
        self._finished = True

    def _write(self, data: bytes) -> None:
        self._stream.write(data)


class OutputFramer:
    """
    Consumer side: incremental recovery of ResultSegments.

    Bytes that could be the start of a marker are held back until enough
    data arrives to tell, so a marker split across two writes never causes a
    boundary on its own halves. Whitespace-only pieces (produced when
    several clear-line sequences follow each other) are skipped.

    Example:
    --------
    >>> framer = OutputFramer()
    >>> framer.feed(b'{"a": 1}\\x1b[2')
    []
    >>> [s.text for s in framer.feed(b'K{"b": 2}')]
    ['{"a": 1}']
    >>> [s.text for s in framer.close()]
    ['{"b": 2}']
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding
        self._pending = b""  # raw bytes that may hold a partial marker
        self._carry = b""  # stripped bytes of the segment being assembled
        self._count = 0
        self._closed = False

    @property
    def count(self) -> int:
        """Segments emitted so far."""
        return self._count

    def feed(self, data: bytes | str) -> list[ResultSegment]:
        if self._closed:
            raise RuntimeError("OutputFramer is closed")
        if isinstance(data, str):
            data = data.encode(self._encoding)

        self._pending += data
        cut = len(self._pending) - _partial_marker_length(self._pending)
        ready, self._pending = self._pending[:cut], self._pending[cut:]

        self._carry += strip_cursor_sequences(ready)
        pieces = self._carry.split(CLEAR_LINE)
        self._carry = pieces.pop()
        return self._emit(pieces)

    def close(self) -> list[ResultSegment]:
        """
        Flush whatever is left. A marker prefix that never completed is kept
        as-is in the final segment.
        """
        if self._closed:
            return []
        self._closed = True

        tail = self._carry + self._pending
        self._carry = self._pending = b""
        return self._emit([tail])

    def _emit(self, pieces: list[bytes]) -> list[ResultSegment]:
        segments = []
        for piece in pieces:
            if not piece.strip():
                continue
            self._count += 1
            segments.append(
                ResultSegment(self._count, piece.decode(self._encoding, errors="replace"))
            )
        return segments


def split_segments(output: bytes | str) -> list[ResultSegment]:
    """Recover every ResultSegment from a complete captured output."""
    framer = OutputFramer()
    segments = framer.feed(output)
    segments.extend(framer.close())
    return segments
