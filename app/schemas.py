"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ResponseStatus(str, Enum):
    """Outcome markers carried by every JSON status body."""

    success = "success"
    info = "info"
    error = "error"


class StatusMessage(BaseModel):
    """Fixed-shape body for acknowledgements, notices and failures."""

    status: ResponseStatus
    message: str


class ReadingPayload(BaseModel):
    """Partial reading as posted by a sensor board."""

    model_config = ConfigDict(extra="ignore")

    ph: Optional[float] = Field(default=None, description="Acidity of the slurry (pH).")
    pressure1: Optional[float] = None
    pressure2: Optional[float] = None
    pressure3: Optional[float] = None
    temperature: Optional[float] = None
    timestamp: Optional[datetime] = Field(
        default=None, description="Measurement time; the server clock is used when omitted."
    )

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class StoredReading(BaseModel):
    """A persisted reading including store bookkeeping fields."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    version: int = Field(default=0, alias="__v")
    ph: Optional[float] = None
    pressure1: Optional[float] = None
    pressure2: Optional[float] = None
    pressure3: Optional[float] = None
    temperature: Optional[float] = None
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)
