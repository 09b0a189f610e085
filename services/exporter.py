"""Export the trailing window of readings to a workbook, then purge it.

The workflow is split in two around the response:

* :meth:`ExportService.prepare` queries the window, freezes the identity
  snapshot and serializes the workbook. Nothing is deleted here.
* :meth:`ExportService.settle` waits on the :class:`DeliveryReceipt` resolved
  by the HTTP layer and deletes exactly the snapshot identities, but only when
  delivery was acknowledged.

A failed delivery leaves the readings in place, so the next run exports them
again. Duplicate rows across exports are accepted; losing readings is not.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional

from datastore.readings import ReadingTable, StoreError, build_default_table
from models.records import ExportBatch, clean_rows, identities_of
from services.delivery import DeliveryReceipt
from services.workbook import build_export_filename, render_workbook
from settings import get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportService:
    """Coordinates window selection, workbook rendering and purging."""

    def __init__(
        self,
        table: ReadingTable,
        window: timedelta = timedelta(minutes=10),
        filename_prefix: str = "Export",
        sheet_name: str = "SensorData",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.table = table
        self.window = window
        self.filename_prefix = filename_prefix
        self.sheet_name = sheet_name
        self.clock = clock

    @property
    def window_minutes(self) -> int:
        return int(self.window.total_seconds() // 60)

    def prepare(self) -> Optional[ExportBatch]:
        """Build the export for ``[now - window, +inf)``; None when it is empty."""
        now = self.clock()
        window_start = now - self.window
        readings = self.table.find_since(window_start)
        if not readings:
            logger.info(
                "No readings to export",
                extra={"window_start": window_start},
            )
            return None

        rows = clean_rows(readings)
        content = render_workbook(rows, sheet_name=self.sheet_name)
        batch = ExportBatch(
            window_start=window_start,
            identities=identities_of(readings),
            rows=tuple(rows),
            filename=build_export_filename(self.filename_prefix, now),
            content=content,
        )
        logger.info(
            "Prepared export",
            extra={
                "export_file": batch.filename,
                "row_count": batch.row_count,
                "window_start": window_start,
            },
        )
        return batch

    def settle(self, batch: ExportBatch, receipt: DeliveryReceipt) -> Optional[int]:
        """Delete the exported readings once delivery is acknowledged.

        Returns the deleted count, or None when delivery or the delete failed
        and nothing was removed.
        """
        if not receipt.wait():
            logger.error(
                "Export delivery failed; keeping exported readings",
                exc_info=receipt.error,
                extra={"export_file": batch.filename, "row_count": batch.row_count},
            )
            return None

        try:
            deleted = self.table.delete_many(batch.identities)
        except StoreError:
            logger.exception(
                "Failed to delete exported readings",
                extra={"export_file": batch.filename, "row_count": batch.row_count},
            )
            return None
        logger.info(
            "Deleted exported readings",
            extra={"export_file": batch.filename, "deleted_count": deleted},
        )
        return deleted


@lru_cache
def build_default_export_service() -> ExportService:
    settings = get_settings()
    return ExportService(
        table=build_default_table(),
        window=timedelta(minutes=settings.export_window_minutes),
        filename_prefix=settings.export_filename_prefix,
        sheet_name=settings.export_sheet_name,
    )
