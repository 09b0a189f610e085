from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from datastore.readings import StoreError
from models.records import DOMAIN_FIELDS
from services.readings import ReadingService, build_default_reading_service

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

REFRESH_SECONDS = 5


def get_reading_service() -> ReadingService:
    return build_default_reading_service()


router = APIRouter(include_in_schema=False)


@router.get("/", name="banner", response_class=HTMLResponse)
async def banner(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "banner.html", {})


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
def ui_index(
    request: Request,
    service: ReadingService = Depends(get_reading_service),
) -> HTMLResponse:
    try:
        readings = service.recent()
    except StoreError:
        logger.exception("Error fetching sensor data for dashboard")
        return templates.TemplateResponse(
            request,
            "ui/index.html",
            {"readings": [], "columns": DOMAIN_FIELDS, "failed": True},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "readings": readings,
            "columns": DOMAIN_FIELDS,
            "failed": False,
            "refresh_seconds": REFRESH_SECONDS,
        },
    )
