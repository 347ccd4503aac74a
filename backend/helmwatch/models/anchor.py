"""Durable anchor record — one per vessel, persisted after every mutation."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from helmwatch.models.base import AnchorStateEnum
from helmwatch.models.vessel import Position

DEFAULT_MAX_RADIUS_M: float = 30.0


class AnchorRecord(BaseModel):
    state: AnchorStateEnum = AnchorStateEnum.RAISED
    # Null only while raised
    position: Optional[Position] = None
    max_radius: float = Field(default=DEFAULT_MAX_RADIUS_M, gt=0)
    rode_length: Optional[float] = None
    anchor_depth: Optional[float] = None
    dropped_at: Optional[datetime] = None
    raised_at: Optional[datetime] = None
