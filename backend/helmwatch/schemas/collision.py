"""Pydantic schemas for collision risk responses."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from helmwatch.models.base import AlertSeverityEnum, ColregsSituationEnum, RiskTierEnum
from helmwatch.schemas.anchor import PositionSchema


class RiskAssessmentRead(BaseModel):
    target_id: str
    name: str
    range_nm: float
    bearing_deg: float
    relative_bearing_deg: float
    cpa_nm: float
    tcpa_min: float
    risk: RiskTierEnum
    situation: ColregsSituationEnum
    position: PositionSchema
    sog: Optional[float] = None
    cog: Optional[float] = None
    ship_type: Optional[str] = None
    callsign: Optional[str] = None

    model_config = {"from_attributes": True}


class CollisionAlertRead(BaseModel):
    type: str = "collision_risk"
    target_id: str
    target: str
    cpa_nm: float
    tcpa_min: float
    range_nm: float
    bearing_deg: float
    situation: ColregsSituationEnum
    risk: RiskTierEnum
    severity: AlertSeverityEnum
    message: str

    model_config = {"from_attributes": True}


class CollisionScanResponse(BaseModel):
    assessments: list[RiskAssessmentRead] = []
    alerts: list[CollisionAlertRead] = []
    danger_count: int = 0
    caution_count: int = 0
    total_in_range: int = 0
    summary: Optional[str] = None

    model_config = {"from_attributes": True}
