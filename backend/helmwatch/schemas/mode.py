"""Pydantic schemas for operating mode and notifications."""
from __future__ import annotations

from pydantic import BaseModel, Field

from helmwatch.models.base import NotificationMethodEnum, NotificationStateEnum


class ModeRequest(BaseModel):
    mode: str = Field(..., min_length=1)


class ModeRead(BaseModel):
    mode: str


class NotificationRead(BaseModel):
    key: str
    message: str
    state: NotificationStateEnum
    method: list[NotificationMethodEnum]

    model_config = {"from_attributes": True}


class TelemetryDeltaResponse(BaseModel):
    applied: int
