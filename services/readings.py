"""Ingestion and live-display queries over the reading store."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from app.schemas import ReadingPayload, StoredReading
from datastore.readings import ReadingTable, build_default_table
from settings import get_settings

logger = logging.getLogger(__name__)


class ReadingService:
    """Appends sensor readings and serves the most recent window."""

    def __init__(self, table: ReadingTable, recent_limit: int = 100) -> None:
        self.table = table
        self.recent_limit = recent_limit

    def record(self, payload: ReadingPayload) -> StoredReading:
        """Store one reading; store failures propagate as ``StoreError``."""
        reading = self.table.insert(payload)
        logger.info("Saved sensor reading", extra={"reading_id": reading.id})
        return reading

    def recent(self, limit: Optional[int] = None) -> list[StoredReading]:
        """Newest readings first, never more than the configured cap."""
        bound = self.recent_limit if limit is None else min(limit, self.recent_limit)
        return self.table.find_recent(max(bound, 0))


@lru_cache
def build_default_reading_service() -> ReadingService:
    settings = get_settings()
    return ReadingService(table=build_default_table(), recent_limit=settings.recent_limit)
