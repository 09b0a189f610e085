from __future__ import annotations
import json
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Iterable, Optional
from uuid import uuid4

from pydantic import ValidationError

from app.schemas import ReadingPayload, StoredReading
from settings import get_settings


class StoreError(RuntimeError):
    """Raised when the reading store cannot be opened, read or written."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadingTable:

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.name = name
        self._items: Dict[str, StoredReading] = {}
        self.persistence_path = persistence_path
        self._clock = clock
        self._lock = Lock()
        self._closed = False
        if persistence_path:
            try:
                persistence_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreError(
                    f"Cannot prepare storage directory for table {name!r}: {exc}"
                ) from exc
            self._load_from_disk()

    @property
    def closed(self) -> bool:
        return self._closed

    def insert(self, payload: ReadingPayload) -> StoredReading:
        """Append a reading, assigning its identity and default timestamp."""

        with self._lock:
            self._ensure_open()
            values = payload.model_dump()
            if values.get("timestamp") is None:
                values["timestamp"] = self._clock()
            reading = StoredReading(id=uuid4().hex, version=0, **values)
            self._items[reading.id] = reading
            try:
                self._persist()
            except StoreError:
                del self._items[reading.id]
                raise
            return reading.model_copy(deep=True)

    def find_since(
        self,
        start: Optional[datetime],
        *,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[StoredReading]:
        """Readings with ``timestamp >= start`` ordered by timestamp."""

        with self._lock:
            self._ensure_open()
            selected = [
                item
                for item in self._items.values()
                if start is None or item.timestamp >= start
            ]
            selected.sort(key=lambda item: item.timestamp, reverse=descending)
            if limit is not None:
                selected = selected[:limit]
            return [item.model_copy(deep=True) for item in selected]

    def find_recent(self, limit: int) -> list[StoredReading]:
        return self.find_since(None, descending=True, limit=limit)

    def delete_many(self, identities: Iterable[str]) -> int:
        """Delete the given identities and return how many were present."""

        with self._lock:
            self._ensure_open()
            removed: Dict[str, StoredReading] = {}
            for identity in identities:
                item = self._items.pop(identity, None)
                if item is not None:
                    removed[identity] = item
            if not removed:
                return 0
            try:
                self._persist()
            except StoreError:
                self._items.update(removed)
                raise
            return len(removed)

    def scan(self) -> list[StoredReading]:
        """Return deep copies of all stored readings in insertion order."""

        with self._lock:
            self._ensure_open()
            return [item.model_copy(deep=True) for item in self._items.values()]

    def count(self) -> int:
        with self._lock:
            self._ensure_open()
            return len(self._items)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreError(f"Table {self.name!r} is closed.")

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [item.model_dump(mode="json", by_alias=True) for item in self._items.values()]
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise StoreError(f"Failed to persist table {self.name!r}: {exc}") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
            readings = [StoredReading.model_validate(entry) for entry in data]
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as exc:
            raise StoreError(
                f"Cannot load table {self.name!r} from {self.persistence_path}: {exc}"
            ) from exc

        for reading in readings:
            self._items[reading.id] = reading


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ReadingTable:
    settings = get_settings()
    table_name = settings.table_name if name is None else name
    table_path = settings.table_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ReadingTable(name=table_name, persistence_path=persistence)
