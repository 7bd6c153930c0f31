"""
Project Digest - turns repository activity into windowed project updates.

This package pulls commits, issues and pull requests, keeps a deduplicated
history of facts in a JSON state file, groups new facts into time windows
and publishes one Markdown update per window, optionally with an AI summary.

Main entry point is the CLI via `project-digest run` command.

Example:
    $ project-digest run -c config.yaml --window-hours 12
"""

__all__ = ["__version__", "RunOptions", "run_once"]
__version__ = "0.1.0"

from .runner import RunOptions, run_once
