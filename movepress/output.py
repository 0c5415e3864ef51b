"""Console output formatting for the movepress CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Formats user-facing output with rich.

    Informational output is suppressed in quiet mode; warnings and errors
    are always shown. Errors go to stderr.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    def print(self, message: str = "") -> None:
        """Print a plain message."""
        if self.quiet:
            return
        self.console.print(escape(message))

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet or self.json_output:
            return
        self.console.print(escape(message))

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]✔[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        self.err_console.print(f"[yellow]![/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print an error message to stderr."""
        self.err_console.print(f"[red]✘ Error:[/red] {escape(message)}")

    def note(self, lines: list[str]) -> None:
        """Print short bulleted notes (e.g. transfer statistics)."""
        if self.quiet or self.json_output:
            return
        for line in lines:
            self.console.print(f"  [cyan]•[/cyan] {escape(line)}")

    def title(self, message: str) -> None:
        """Print a top-level heading."""
        if self.quiet or self.json_output:
            return
        self.console.print()
        self.console.print(f"[bold]{escape(message)}[/bold]")
        self.console.print("=" * len(message))

    def section(self, message: str) -> None:
        """Print a section heading."""
        if self.quiet or self.json_output:
            return
        self.console.print()
        self.console.print(f"[bold cyan]{escape(message)}[/bold cyan]")

    def listing(self, items: list[str]) -> None:
        """Print an indented list of items."""
        if self.quiet or self.json_output:
            return
        for item in items:
            self.console.print(f"  - {escape(item)}")

    def command(self, command: str) -> None:
        """Echo a command line about to run."""
        if self.quiet or self.json_output:
            return
        self.console.print(f"[dim]› {escape(command)}[/dim]")

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary.

        Args:
            title: Summary heading
            items: (label, value) pairs
        """
        if self.json_output:
            self.output_json({label: value for label, value in items})
            return
        if self.quiet:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(escape(label), escape(str(value)))
        self.console.print(table)

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a table, or as JSON in JSON mode.

        Args:
            data: Rows as dictionaries
            columns: Keys to show, in order
            headers: Optional column titles keyed by column
        """
        if self.json_output:
            self.output_json([{col: row.get(col) for col in columns} for row in data])
            return
        if self.quiet:
            return
        headers = headers or {}
        table = Table()
        for col in columns:
            table.add_column(headers.get(col, col))
        for row in data:
            table.add_row(*(escape(str(row.get(col, ""))) for col in columns))
        self.console.print(table)

    def output_json(self, data: Any) -> None:
        """Print data as JSON."""
        self.console.print_json(json.dumps(data, default=str))

    def format_size(self, size_bytes: Optional[int]) -> str:
        """Format a byte count in human-readable format."""
        return format_size(size_bytes)
