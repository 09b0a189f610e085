"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Tuple

from app.schemas import StoredReading

# Column order of exported workbooks.
DOMAIN_FIELDS: Tuple[str, ...] = (
    "ph",
    "pressure1",
    "pressure2",
    "pressure3",
    "temperature",
    "timestamp",
)


def strip_bookkeeping(reading: StoredReading) -> Dict[str, Any]:
    """Return only the domain fields of a stored reading, in export order."""

    payload = reading.model_dump(exclude={"id", "version"})
    return {name: payload.get(name) for name in DOMAIN_FIELDS}


@dataclass(frozen=True, slots=True)
class ExportBatch:
    """Readings selected for one export, frozen at query time."""

    window_start: datetime
    identities: Tuple[str, ...]
    rows: Tuple[Dict[str, Any], ...]
    filename: str
    content: bytes

    @property
    def row_count(self) -> int:
        return len(self.rows)


def identities_of(readings: Iterable[StoredReading]) -> Tuple[str, ...]:
    return tuple(reading.id for reading in readings)


def clean_rows(readings: Iterable[StoredReading]) -> List[Dict[str, Any]]:
    return [strip_bookkeeping(reading) for reading in readings]
