"""
Default ignore rules and watched extensions.

This module contains the static configuration used by ignore_patterns.py.
Separated so the CLI and config layer can import the defaults without
pulling in pathspec.
"""

# ═══════════════════════════════════════════════════════════════════════════════
# Watched Extensions
# ═══════════════════════════════════════════════════════════════════════════════
# Without --extension only Python sources trigger a rerun.

DEFAULT_EXTENSIONS: tuple[str, ...] = ("py",)

# Default excluded directory names (always applied)
# Any path with one of these names among its components never triggers a
# rerun, whatever the configured extensions are.
DEFAULT_IGNORED_DIRS: frozenset[str] = frozenset(
    {
        # ═══════════════════════════════════════════
        # Version Control
        # ═══════════════════════════════════════════
        ".git",
        ".svn",
        ".hg",
        ".bzr",
        # ═══════════════════════════════════════════
        # Package Managers and Dependencies
        # ═══════════════════════════════════════════
        "node_modules",
        "bower_components",
        # ═══════════════════════════════════════════
        # Python Virtual Environments and Cache
        # ═══════════════════════════════════════════
        ".venv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        ".eggs",
        # ═══════════════════════════════════════════
        # Our own state (log files live here)
        # ═══════════════════════════════════════════
        ".watchrun",
    }
)

# Editor temp files that flicker in and out during a save. These are dropped
# before extension matching so that "main.py.tmp.1234" style names never
# count as a change to main.py.
EDITOR_TEMP_SUFFIXES: tuple[str, ...] = (".tmp", "~", ".swp", ".swo", ".swx")
EDITOR_TEMP_PREFIXES: tuple[str, ...] = (".#",)
