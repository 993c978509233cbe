"""
watchrun - watch mode for command-line test runners

Runs a test command, watches the source tree, reruns the command when
relevant files change, and frames each run's output so a consumer can
recover one result document per run. Ctrl+C restores the terminal and
exits with status 130.
"""

__version__ = "0.1.0"

# DO NOT import submodules here - importing the package (or a test helper
# that only needs framing) shouldn't pull in watchdog and pathspec

__all__ = ["__version__"]
