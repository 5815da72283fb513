"""Table and JSON Lines renderers for token records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence, TextIO

from rich.box import SIMPLE_HEAD
from rich.console import Console
from rich.table import Table

from tokenprism.core.models import AggregatedRecord

DEFAULT_COLUMNS = [
    "address",
    "ticker",
    "name",
    "price",
    "volume",
    "liquidity",
    "market_cap",
    "price_change_1h",
    "price_change_24h",
    "quality_score",
    "sources",
]

Row = Mapping[str, object]


def records_to_rows(records: Iterable[AggregatedRecord]) -> list[dict[str, object]]:
    """Flatten records into renderable rows (source list joined by commas)."""
    rows = []
    for record in records:
        row = record.model_dump(mode="json")
        row["sources"] = ",".join(record.sources)
        rows.append(row)
    return rows


class OutputFormatter:
    """Base class for CLI output formatters."""

    name: str

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Rich table with right-aligned numeric columns."""

    name: str = "table"
    no_color: bool = False

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        console = Console(file=stream, color_system=None if self.no_color else "auto", no_color=self.no_color)
        resolved = list(columns) if columns else list(rows[0].keys()) if rows else []

        table = Table(box=SIMPLE_HEAD, show_lines=False)
        for column in resolved:
            numeric = bool(rows) and isinstance(rows[0].get(column), (int, float))
            table.add_column(
                column,
                header_style="" if self.no_color else "bold",
                justify="right" if numeric else "left",
            )
        for row in rows:
            table.add_row(*(_format_cell(row.get(column)) for column in resolved))

        if resolved:
            console.print(table)
        if not rows:
            console.print("No tokens found.")


def _format_cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """One JSON object per line."""

    name: str = "jsonl"

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        for row in rows:
            selected = {column: row.get(column) for column in columns} if columns else dict(row)
            stream.write(json.dumps(selected, ensure_ascii=False, default=str))
            stream.write("\n")
        stream.flush()


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    """Instantiate a formatter by name."""
    normalized = name.strip().lower()
    if normalized == "table":
        return TableFormatter(no_color=no_color)
    if normalized == "jsonl":
        return JSONLFormatter()
    raise ValueError(f"Unsupported format '{name}'. Available formats: table, jsonl.")


__all__ = [
    "DEFAULT_COLUMNS",
    "JSONLFormatter",
    "OutputFormatter",
    "TableFormatter",
    "create_formatter",
    "records_to_rows",
]
