"""HTTP route definitions for the service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response
from starlette.background import BackgroundTask

from app.responses import AcknowledgedResponse
from app.schemas import ReadingPayload, ResponseStatus, StatusMessage, StoredReading
from datastore.readings import StoreError
from services.delivery import DeliveryReceipt
from services.exporter import ExportService, build_default_export_service
from services.readings import ReadingService, build_default_reading_service
from services.workbook import XLSX_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter()


def get_reading_service() -> ReadingService:
    return build_default_reading_service()


def get_export_service() -> ExportService:
    return build_default_export_service()


def status_response(status_code: int, outcome: ResponseStatus, message: str) -> JSONResponse:
    body = StatusMessage(status=outcome, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post(
    "/sensorData",
    response_model=StatusMessage,
    summary="Store one reading posted by a sensor board.",
)
def save_sensor_data(
    payload: ReadingPayload,
    service: ReadingService = Depends(get_reading_service),
) -> StatusMessage | JSONResponse:
    try:
        service.record(payload)
    except StoreError:
        logger.exception("Error saving sensor data")
        return status_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ResponseStatus.error,
            "Failed to save data",
        )
    return StatusMessage(status=ResponseStatus.success, message="Data saved")


@router.get(
    "/sensorData",
    response_model=list[StoredReading],
    summary="Most recent readings, newest first.",
)
def list_sensor_data(
    service: ReadingService = Depends(get_reading_service),
) -> list[StoredReading] | JSONResponse:
    try:
        return service.recent()
    except StoreError:
        logger.exception("Error fetching sensor data")
        return status_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ResponseStatus.error,
            "Failed to fetch data",
        )


@router.get(
    "/export-and-delete",
    response_model=None,
    summary="Download the trailing window as xlsx and purge it after delivery.",
    responses={
        200: {
            "description": "Workbook attachment, or an info message when the window is empty.",
            "content": {XLSX_MEDIA_TYPE: {}},
        },
        500: {"model": StatusMessage},
    },
)
def export_and_delete(
    service: ExportService = Depends(get_export_service),
) -> Response:
    try:
        batch = service.prepare()
    except (StoreError, ValueError, TypeError):
        logger.exception("Error during export and delete process")
        return status_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ResponseStatus.error,
            "Failed to complete data export and deletion.",
        )

    if batch is None:
        return status_response(
            status.HTTP_200_OK,
            ResponseStatus.info,
            f"No new data found in the last {service.window_minutes} minutes to export.",
        )

    receipt = DeliveryReceipt()
    return AcknowledgedResponse(
        batch.content,
        receipt,
        filename=batch.filename,
        media_type=XLSX_MEDIA_TYPE,
        background=BackgroundTask(service.settle, batch, receipt),
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
