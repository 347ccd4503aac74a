"""Derived collision-risk records. Recomputed every scan, never mutated."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from helmwatch.models.base import AlertSeverityEnum, ColregsSituationEnum, RiskTierEnum
from helmwatch.models.vessel import Position


@dataclass(frozen=True)
class RiskAssessment:
    target_id: str
    name: str
    range_nm: float
    bearing_deg: float
    relative_bearing_deg: float
    cpa_nm: float
    tcpa_min: float
    risk: RiskTierEnum
    situation: ColregsSituationEnum
    position: Position
    sog: Optional[float] = None
    cog: Optional[float] = None
    ship_type: Optional[str] = None
    callsign: Optional[str] = None


@dataclass(frozen=True)
class CollisionAlert:
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
    type: str = "collision_risk"


@dataclass(frozen=True)
class CheckRisksResult:
    assessments: list[RiskAssessment] = field(default_factory=list)
    alerts: list[CollisionAlert] = field(default_factory=list)

    @property
    def danger_count(self) -> int:
        return sum(1 for a in self.assessments if a.risk == RiskTierEnum.DANGER)

    @property
    def caution_count(self) -> int:
        return sum(1 for a in self.assessments if a.risk == RiskTierEnum.CAUTION)

    @property
    def total_in_range(self) -> int:
        return len(self.assessments)

    @property
    def summary(self) -> Optional[str]:
        """All new alert messages joined into one announcement, or None."""
        if not self.alerts:
            return None
        return ". ".join(a.message for a in self.alerts)
