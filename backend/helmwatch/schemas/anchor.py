"""Pydantic schemas for the anchor control surface."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from helmwatch.models.base import AnchorStateEnum


class PositionSchema(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = {"from_attributes": True}


class RadiusRequest(BaseModel):
    value: float = Field(..., gt=0, description="Alarm radius in metres")


class RepositionRequest(BaseModel):
    rode_length: float = Field(..., gt=0, description="Rode paid out (m)")
    anchor_depth: float = Field(..., gt=0, description="Water depth at the anchor (m)")


class AnchorRecordRead(BaseModel):
    state: AnchorStateEnum
    position: Optional[PositionSchema] = None
    max_radius: float
    rode_length: Optional[float] = None
    anchor_depth: Optional[float] = None
    dropped_at: Optional[datetime] = None
    raised_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AnchorSnapshotRead(AnchorRecordRead):
    current_radius: Optional[float] = None


class AnchorStatusRead(BaseModel):
    state: AnchorStateEnum
    position: Optional[PositionSchema] = None
    max_radius: float
    watch_radius: float
    current_radius: Optional[float] = None
    rode_length: Optional[float] = None
    dropped_at: Optional[datetime] = None
    dragging: bool = False

    model_config = {"from_attributes": True}


class AnchorDropResponse(BaseModel):
    position: PositionSchema
    anchor: AnchorRecordRead


class AnchorRadiusResponse(BaseModel):
    max_radius: float
    anchor: AnchorRecordRead


class AnchorRepositionResponse(BaseModel):
    position: PositionSchema
    rode_length: float
    anchor_depth: float
    anchor: AnchorRecordRead
