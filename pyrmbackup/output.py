"""Console output helpers."""

import json
from typing import Any

from rich.console import Console


class OutputFormatter:
    """Prints status messages with rich, or JSON when requested."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress non-essential output (errors are still shown)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def print(self, message: Any = "") -> None:
        """Print a message or any rich renderable (suppressed when quiet)."""
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, style="blue", markup=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        if not self.json_output:
            self.err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(message, style="bold red", markup=False)

    def output_json(self, data: Any) -> None:
        """Print ``data`` as JSON (only in JSON mode)."""
        if self.json_output:
            self.console.print_json(json.dumps(data, default=str))
