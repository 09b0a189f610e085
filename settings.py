from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_TABLE_NAME_ENV = "READINGS_TABLE_NAME"
_TABLE_PATH_ENV = "READINGS_PERSISTENCE_PATH"
_RECENT_LIMIT_ENV = "RECENT_READINGS_LIMIT"
_EXPORT_WINDOW_ENV = "EXPORT_WINDOW_MINUTES"
_EXPORT_PREFIX_ENV = "EXPORT_FILENAME_PREFIX"
_EXPORT_SHEET_ENV = "EXPORT_SHEET_NAME"
_CORS_ORIGINS_ENV = "CORS_ALLOW_ORIGINS"
_SERVER_HOST_ENV = "SERVER_HOST"
_SERVER_PORT_ENV = "SERVER_PORT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    table_name: str
    table_persistence_path: Optional[str]
    recent_limit: int
    export_window_minutes: int
    export_filename_prefix: str
    export_sheet_name: str
    cors_allow_origins: tuple[str, ...]
    server_host: str
    server_port: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_origins(default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(_CORS_ORIGINS_ENV)
    if value is None:
        return default
    origins = tuple(part.strip() for part in value.split(",") if part.strip())
    return origins or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        table_name=_read_str_env(_TABLE_NAME_ENV, "SensorData"),
        table_persistence_path=_read_optional_env(_TABLE_PATH_ENV, "./tmp/readings.json"),
        recent_limit=_read_positive_int(_RECENT_LIMIT_ENV, 100),
        export_window_minutes=_read_positive_int(_EXPORT_WINDOW_ENV, 10),
        export_filename_prefix=_read_str_env(_EXPORT_PREFIX_ENV, "Export"),
        export_sheet_name=_read_str_env(_EXPORT_SHEET_ENV, "SensorData"),
        cors_allow_origins=_read_origins(("*",)),
        server_host=_read_str_env(_SERVER_HOST_ENV, "0.0.0.0"),
        server_port=_read_positive_int(_SERVER_PORT_ENV, 3000),
        log_level=_read_log_level("INFO"),
    )
