"""Output formatting for CLI results."""

from __future__ import annotations

import csv
import json
import sys
from enum import Enum
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


Printable = BaseModel | dict[str, Any] | list[dict[str, Any]]


def _rows(data: Printable) -> list[dict[str, Any]]:
    if isinstance(data, BaseModel):
        return [data.model_dump(mode="json")]
    if isinstance(data, dict):
        return [data]
    return list(data)


def print_output(
    data: Printable,
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print a model, a dict or a list of dicts in the requested format."""
    rows = _rows(data)
    if fmt == OutputFormat.JSON:
        print_json(rows if isinstance(data, list) else rows[0])
    elif fmt == OutputFormat.CSV:
        print_csv(rows, columns)
    else:
        print_table(rows, columns, title)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(
    rows: list[dict[str, Any]],
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print rows as a Rich table; a single row is shown as field/value pairs."""
    if not rows:
        console.print("[dim]No results.[/dim]")
        return

    if len(rows) == 1 and columns is None:
        table = Table(title=title, show_header=False)
        table.add_column("field", style="bold")
        table.add_column("value", overflow="fold")
        for key, value in rows[0].items():
            table.add_row(key, "" if value is None else str(value))
        console.print(table)
        return

    columns = columns or list(rows[0].keys())
    table = Table(title=title)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*["" if row.get(col) is None else str(row.get(col)) for col in columns])
    console.print(table)


def print_csv(rows: list[dict[str, Any]], columns: list[str] | None = None) -> None:
    """Print rows as CSV to stdout."""
    if not rows:
        return
    columns = columns or list(rows[0].keys())
    writer = csv.DictWriter(sys.stdout, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: row.get(k, "") for k in columns})
