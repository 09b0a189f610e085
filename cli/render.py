from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import typer

READING_COLUMNS: Sequence[str] = (
    "timestamp",
    "ph",
    "pressure1",
    "pressure2",
    "pressure3",
    "temperature",
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def _format(value: Any) -> str:
    return "-" if value is None else str(value)


def render_readings(readings: Iterable[Dict[str, Any]]) -> None:
    rows = [[_format(reading.get(column)) for column in READING_COLUMNS] for reading in readings]
    echo_heading(f"Recent readings ({len(rows)})")
    if not rows:
        typer.echo("No readings available.")
        return

    widths = [
        max(len(column), *(len(row[index]) for row in rows))
        for index, column in enumerate(READING_COLUMNS)
    ]
    typer.echo("  ".join(column.ljust(width) for column, width in zip(READING_COLUMNS, widths)))
    for row in rows:
        typer.echo("  ".join(cell.ljust(width) for cell, width in zip(row, widths)))
