"""
Console output for YADS commands.

All user-facing status goes through OutputFormatter so the symbols and colours
stay consistent: ✓ for success, ✗ for errors, ⚠ for warnings.
"""

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text


class OutputFormatter:
    """Rich-based printer shared by every component."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

        self.colors = {
            'success': 'bold green',
            'error': 'bold red',
            'warning': 'yellow',
            'info': 'cyan',
            'header': 'bold blue',
            'running': 'green',
            'stopped': 'red',
            'dim': 'dim',
        }

        self.symbols = {
            'success': '✓',
            'error': '✗',
            'warning': '⚠',
            'info': '•',
        }

    def _line(self, kind: str, message: str) -> None:
        text = Text()
        text.append(f"{self.symbols[kind]} ", style=self.colors[kind])
        text.append(message)
        self.console.print(text)

    def success(self, message: str) -> None:
        self._line('success', message)

    def info(self, message: str) -> None:
        self._line('info', message)

    def warning(self, message: str) -> None:
        self._line('warning', message)

    def error(self, message: str) -> None:
        self._line('error', message)

    def header(self, title: str) -> None:
        self.console.print(f"\n[{self.colors['header']}]{escape(title)}[/{self.colors['header']}]")

    def state(self, running: bool, up: str = "running", down: str = "stopped") -> Text:
        """Coloured running/stopped label."""
        if running:
            return Text(up, style=self.colors['running'])
        return Text(down, style=self.colors['stopped'])

    def table(self, title: str, columns: list[str], rows: list[list[Any]]) -> None:
        """Print rows as a table; cells may be plain values or rich Text."""
        table = Table(title=title, title_justify="left", header_style=self.colors['header'])
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(cell if isinstance(cell, Text) else Text(str(cell)) for cell in row))
        self.console.print(table)

    def key_values(self, values: dict[str, Any], title: str | None = None) -> None:
        if title:
            self.header(title)
        width = max((len(key) for key in values), default=0)
        for key, value in values.items():
            self.console.print(f"  [{self.colors['info']}]{escape(key.ljust(width))}[/{self.colors['info']}]  {escape(str(value))}")

    def raw(self, text: str) -> None:
        """Print command output untouched."""
        self.console.print(text, markup=False, highlight=False)
