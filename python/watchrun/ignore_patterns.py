"""
Path filtering for the file watcher.

Decides whether a changed path should trigger a rerun: default excluded
directories first, then user-supplied gitignore-style patterns (matched with
the pathspec library), then the configured extension set.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from pathspec import PathSpec

from watchrun.ignore_defaults import (
    DEFAULT_EXTENSIONS,
    DEFAULT_IGNORED_DIRS,
    EDITOR_TEMP_PREFIXES,
    EDITOR_TEMP_SUFFIXES,
)

logger = logging.getLogger(__name__)

# pytest-style atomic writes: file.py.tmp.12345.67890
_NUMBERED_TMP_RE = re.compile(r"\.tmp\.[\d.]+$")


def normalize_extension(extension: str) -> str:
    """
    Normalize an extension to lowercase without the leading dot.

    Args:
        extension: Extension as typed by the user (".py", "PY", "d.ts")

    Returns:
        Normalized extension ("py", "py", "d.ts"), or "" for blank input
    """
    return extension.strip().lstrip(".").lower()


def parse_extensions(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """
    Parse a comma-separated extension list (the --extension flag).

    Accepts a single string ("xyz,js") or an iterable of strings, each of
    which may itself be comma-separated. Blank entries and duplicates are
    dropped; order is preserved. An empty result falls back to the defaults.
    """
    if value is None:
        return DEFAULT_EXTENSIONS

    raw_items = [value] if isinstance(value, str) else list(value)

    extensions: list[str] = []
    for item in raw_items:
        for part in item.split(","):
            ext = normalize_extension(part)
            if ext and ext not in extensions:
                extensions.append(ext)

    return tuple(extensions) or DEFAULT_EXTENSIONS


def is_editor_temp_file(name: str) -> bool:
    """Check for editor swap/backup/lock files written during a save."""
    return (
        name.endswith(EDITOR_TEMP_SUFFIXES)
        or _NUMBERED_TMP_RE.search(name) is not None
        or name.startswith(EDITOR_TEMP_PREFIXES)
    )


class IgnoreFilter:
    """
    Accept/reject decision for changed paths.

    The filter is pure: it only looks at the path string, never at the
    filesystem, and it never raises. Anything it cannot make sense of is
    rejected.

    Rules, in order:
    1. Any path component below the watch root in ``ignored_dirs`` → reject
    2. Editor temp files (``.swp``, ``~``, ``.#lock``) → reject
    3. Matches a user pattern (gitignore syntax, relative to its root) → reject
    4. File name ends in ``.<ext>`` for a configured extension → accept
    """

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        ignore_patterns: Iterable[str] = (),
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
        roots: Iterable[Path] = (),
    ) -> None:
        self.extensions = parse_extensions(list(extensions))
        self.ignore_patterns = tuple(p for p in ignore_patterns if p.strip())
        self.ignored_dirs = frozenset(ignored_dirs)
        self.roots = tuple(Path(r) for r in roots)

        # Longest first so compound extensions ("d.ts") are tried before "ts"
        self._suffixes = tuple(
            sorted((f".{ext}" for ext in self.extensions), key=len, reverse=True)
        )
        self._spec: Optional[PathSpec] = (
            PathSpec.from_lines("gitwildmatch", self.ignore_patterns)
            if self.ignore_patterns
            else None
        )

    def accepts(self, path: Path | str, explicit: bool = False) -> bool:
        """
        Decide whether a change to ``path`` should trigger a rerun.

        Args:
            path: Changed file path (absolute, as reported by the observer)
            explicit: True when the path is a watch root named by the user;
                the extension check is skipped, directory excludes still apply

        Returns:
            True to accept, False to reject
        """
        try:
            file_path = Path(path)
            if not file_path.name:
                return False

            if any(part in self.ignored_dirs for part in self._relative_parts(file_path)):
                return False

            if is_editor_temp_file(file_path.name):
                return False

            if self._spec is not None and self._matches_pattern(file_path):
                return False

            if explicit:
                return True

            return file_path.name.lower().endswith(self._suffixes)
        except (TypeError, ValueError) as e:
            logger.debug(f"Rejecting unusable path {path!r}: {e}")
            return False

    def _relative_parts(self, file_path: Path) -> tuple[str, ...]:
        """
        Path components below the innermost watch root containing the path.

        Directories above the root (where the project happens to be checked
        out) never count. Outside every root the whole path is used.
        """
        best: Optional[tuple[str, ...]] = None
        for root in self.roots:
            try:
                parts = file_path.relative_to(root).parts
            except ValueError:
                continue
            if best is None or len(parts) < len(best):
                best = parts
        return file_path.parts if best is None else best

    def _matches_pattern(self, file_path: Path) -> bool:
        """Match user patterns against the path relative to its watch root."""
        candidates = []
        for root in self.roots:
            try:
                candidates.append(file_path.relative_to(root).as_posix())
            except ValueError:
                continue

        # Outside every root (or no roots configured): match on what we have
        if not candidates:
            candidates = [file_path.name, file_path.as_posix().lstrip("/")]

        return any(self._spec.match_file(c) for c in candidates)

    def __repr__(self) -> str:
        return (
            f"IgnoreFilter(extensions={self.extensions!r}, "
            f"ignore_patterns={self.ignore_patterns!r})"
        )
