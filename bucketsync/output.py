"""Output formatting for CLI and engine messages."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Prints user-facing messages with rich, honoring quiet and JSON modes."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of styled text
            quiet: Suppress informational output (errors are still shown)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    def print(self, message: str = "") -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message, highlight=False)

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message, highlight=False)

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]{message}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        if self.quiet:
            return
        self.err_console.print(f"[yellow]{message}[/yellow]", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]{message}[/red]", highlight=False)

    def output_json(self, data: Any) -> None:
        """Print data as JSON (always, regardless of quiet)."""
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self, columns: list[str], rows: list[list[str]], title: str = ""
    ) -> None:
        """Print rows as a table, or as a list of objects in JSON mode."""
        if self.json_output:
            self.output_json([dict(zip(columns, row)) for row in rows])
            return
        if self.quiet:
            return
        table = Table(title=title or None)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)
