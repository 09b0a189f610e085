from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router, status_response
from app.schemas import ResponseStatus
from app.web import router as web_router
from datastore.readings import StoreError, build_default_table
from logging_config import configure_logging
from services.exporter import build_default_export_service
from services.readings import build_default_reading_service
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        table = build_default_table()
    except StoreError:
        logger.critical("Reading store could not be opened; shutting down", exc_info=True)
        raise
    try:
        yield
    finally:
        table.close()
        build_default_reading_service.cache_clear()
        build_default_export_service.cache_clear()
        build_default_table.cache_clear()


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()})
    detail = ", ".join(field for field in fields if field) or "body"
    return status_response(
        422,
        ResponseStatus.error,
        f"Invalid sensor payload: {detail}",
    )


async def _unhandled_error_handler(_request: Request, _exc: Exception) -> JSONResponse:
    return status_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ResponseStatus.error,
        "Internal server error",
    )


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(
        title="BioGas Monitor",
        description="Sensor reading ingestion, live display and spreadsheet export.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.include_router(router)
    app.include_router(web_router)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )


app = create_app()
