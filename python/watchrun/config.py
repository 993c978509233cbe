"""
Watch configuration.

Values come from three layers, later wins: built-in defaults, WATCHRUN_*
environment variables, CLI flags.

    WATCHRUN_DEBOUNCE=0.5 WATCHRUN_EXTENSIONS=py,toml watchrun --watch
"""

import math
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from watchrun.ignore_defaults import DEFAULT_EXTENSIONS
from watchrun.ignore_patterns import IgnoreFilter, parse_extensions
from watchrun.scheduler import DEFAULT_DEBOUNCE
from watchrun.signals import DEFAULT_GRACE

# Used when no command follows "--"
DEFAULT_COMMAND: tuple[str, ...] = (sys.executable, "-m", "pytest")

MAX_DEBOUNCE = 10.0


@dataclass
class WatchConfig:
    """Everything the controller needs to start a watch (or a single run)."""

    command: list[str] = field(default_factory=lambda: list(DEFAULT_COMMAND))
    roots: list[Path] = field(default_factory=lambda: [Path.cwd()])
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    ignore_patterns: list[str] = field(default_factory=list)
    debounce: float = DEFAULT_DEBOUNCE
    grace: float = DEFAULT_GRACE
    cwd: Optional[Path] = None
    watch: bool = False

    def __post_init__(self) -> None:
        """
        Raises:
        -------
        ValueError: If the command is empty or a timing value is out of range
        """
        if not self.command:
            raise ValueError("command must not be empty")
        if not self.roots:
            raise ValueError("at least one watch root is required")
        if not math.isfinite(self.debounce) or not 0 < self.debounce <= MAX_DEBOUNCE:
            raise ValueError(f"debounce must be between 0 and {MAX_DEBOUNCE:g} seconds")
        if not math.isfinite(self.grace) or self.grace <= 0:
            raise ValueError("grace must be a positive number of seconds")

        self.command = list(self.command)
        self.roots = [Path(r) for r in self.roots]
        self.extensions = parse_extensions(self.extensions)

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "WatchConfig":
        """
        Build a config from WATCHRUN_* variables plus explicit overrides.

        Overrides set to None are treated as "not given" so CLI defaults
        don't mask the environment.

        Raises:
        -------
        ValueError: If a variable holds an unparsable value
        """
        environ = os.environ if environ is None else environ
        values: dict = {}

        if raw := environ.get("WATCHRUN_DEBOUNCE"):
            values["debounce"] = _parse_seconds("WATCHRUN_DEBOUNCE", raw)
        if raw := environ.get("WATCHRUN_GRACE"):
            values["grace"] = _parse_seconds("WATCHRUN_GRACE", raw)
        if raw := environ.get("WATCHRUN_EXTENSIONS"):
            values["extensions"] = parse_extensions(raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def ignore_filter(self) -> IgnoreFilter:
        """IgnoreFilter for this config (patterns are relative to directory roots)."""
        dir_roots = [r.resolve() for r in self.roots if not r.is_file()]
        return IgnoreFilter(
            extensions=self.extensions,
            ignore_patterns=self.ignore_patterns,
            roots=dir_roots,
        )


def _parse_seconds(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
