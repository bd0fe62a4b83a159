"""Console output helpers built on rich."""

import json
from typing import Any, Optional

from rich.console import Console


class OutputFormatter:
    """Formats CLI output as styled text or JSON.

    In JSON mode, human-readable messages go to stderr so that stdout
    only carries the JSON document.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON on stdout
            quiet: Suppress informational messages
            console: Console to write to (defaults to stdout)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    @property
    def _message_console(self) -> Console:
        return self.err_console if self.json_output else self.console

    def print(self, message: str = "") -> None:
        """Print a plain line."""
        if self.quiet:
            return
        self._message_console.print(message, markup=False)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet:
            return
        self._message_console.print(message, markup=False)

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet:
            return
        self._message_console.print(f"✓ {message}", style="green", markup=False)

    def warning(self, message: str) -> None:
        """Print a warning. Shown even in quiet mode."""
        self._message_console.print(f"⚠ {message}", style="yellow", markup=False)

    def error(self, message: str) -> None:
        """Print an error to stderr. Shown even in quiet mode."""
        self.err_console.print(f"✗ {message}", style="bold red", markup=False)

    def output_json(self, data: Any) -> None:
        """Write a JSON document to stdout."""
        self.console.print_json(json.dumps(data, default=str))
