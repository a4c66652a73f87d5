"""Rich-based terminal display layer.

Prints tabular reports, raw JSON documents and error panels.  Uses
module-level :class:`~rich.console.Console` singletons so output is
consistent across the invocation: reports and documents go to stdout,
errors to stderr.
"""

from __future__ import annotations

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text

from src.shared.constants import SECTION_DIVIDER
from src.shared.models.common import Report, Row, Table
from src.shared.rendering import render_document

# ---------------------------------------------------------------------------
# Module-level Console singletons
# ---------------------------------------------------------------------------

_console = Console()
_err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Display functions
# ---------------------------------------------------------------------------


def print_document(obj: Any) -> None:
    """Print an entity, snapshot or collection as indented JSON, verbatim."""
    _console.print(render_document(obj), markup=False, highlight=False, soft_wrap=True)


def print_report(report: Report) -> None:
    """Print every table of *report*, separated by a divider line."""
    for index, table in enumerate(report.tables):
        if index:
            _console.print(SECTION_DIVIDER, markup=False, highlight=False)
        _console.print(_to_rich_table(table))


def print_error_panel(error: str | Exception) -> None:
    """Print an error message in a red Rich panel on stderr.

    Parameters
    ----------
    error:
        Error message string or Exception instance.
    """
    error_text = getattr(error, "detail", None) or str(error)
    _err_console.print(
        Panel(
            Text(error_text, style="bold white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            expand=False,
        )
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_rich_table(table: Table) -> RichTable:
    rich_table = RichTable(
        title=table.title or None,
        show_header=table.show_header,
        header_style="bold",
        box=box.SIMPLE_HEAD if table.show_header else None,
        pad_edge=False,
    )
    width = max([len(table.headers)] + [len(row.cells) + row.failed for row in table.rows])
    for index in range(width):
        header = table.headers[index] if index < len(table.headers) else ""
        rich_table.add_column(header, overflow="fold")
    for row in table.rows:
        rich_table.add_row(*_row_cells(row, width))
    return rich_table


def _row_cells(row: Row, width: int) -> list[Any]:
    cells: list[Any] = [Text(cell) for cell in row.cells]
    if row.failed:
        cells.append(Text(f"error: {row.error}", style="red"))
    cells.extend(Text("") for _ in range(width - len(cells)))
    return cells
