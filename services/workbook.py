"""Spreadsheet serialization for exported readings."""

from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from openpyxl import Workbook

from models.records import DOMAIN_FIELDS

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _cell_value(value: Any) -> Any:
    # xlsx cells carry no timezone; exported datetimes are UTC wall time.
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def render_workbook(
    rows: Iterable[Mapping[str, Any]],
    sheet_name: str = "SensorData",
    columns: Sequence[str] = DOMAIN_FIELDS,
) -> bytes:
    """Serialize rows into a single-sheet xlsx workbook held in memory."""

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    sheet.append(list(columns))
    for row in rows:
        sheet.append([_cell_value(row.get(column)) for column in columns])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_export_filename(prefix: str, moment: datetime) -> str:
    """``<prefix>_YYYY-MM-DD_HH-MM-SS.xlsx`` in UTC, sortable and path safe."""

    stamp = moment.astimezone(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    return f"{prefix}_{stamp}.xlsx"
