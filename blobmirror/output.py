"""Console output for the blobmirror CLI."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Prints status messages, tables and JSON to the terminal."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(soft_wrap=True)
        self.err_console = Console(stderr=True, soft_wrap=True)

    def print(self, message: str = "") -> None:
        """Print raw data without markup processing."""
        if not self.quiet:
            self.console.print(message, markup=False, highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def output_json(self, data: Any) -> None:
        # Plain print keeps the JSON free of markup and line wrapping
        print(json.dumps(data, indent=2, default=str))

    def output_table(self, title: str, columns: list[str], rows: list[list[Any]]) -> None:
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(value) for value in row))
        self.console.print(table)

    def print_summary(self, title: str, stats: dict[str, Any]) -> None:
        """Print a key/value summary, or JSON in JSON mode."""
        if self.json_output:
            self.output_json(stats)
            return
        if self.quiet:
            return
        self.output_table(title, ["Item", "Count"], [[k, v] for k, v in stats.items()])
