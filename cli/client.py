from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig

_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')


@dataclass
class ExportDownload:
    """Workbook returned by the export endpoint, or the server's notice."""

    filename: Optional[str] = None
    content: bytes = b""
    message: Optional[str] = None


class ApiClient:
    """Minimal HTTP client for the monitoring service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, reading: Dict[str, Any]) -> str:
        try:
            response = self._client.post("/sensorData", json=reading)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        return str(payload.get("message", ""))

    def recent(self) -> List[Dict[str, Any]]:
        try:
            response = self._client.get("/sensorData")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        if not isinstance(payload, list):
            raise typer.BadParameter("Unexpected response payload when fetching readings.")
        return payload

    def export(self) -> ExportDownload:
        try:
            response = self._client.get("/export-and-delete")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            return ExportDownload(message=str(response.json().get("message", "")))

        disposition = response.headers.get("content-disposition", "")
        match = _FILENAME_RE.search(disposition)
        filename = match.group(1) if match else "export.xlsx"
        return ExportDownload(filename=filename, content=response.content)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("message") or data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
