"""Domain records shared by the collision engine and the anchor watch."""
from helmwatch.models.base import (
    AlertSeverityEnum,
    AnchorStateEnum,
    ColregsSituationEnum,
    NotificationMethodEnum,
    NotificationStateEnum,
    OperatingModeEnum,
    RiskTierEnum,
)
from helmwatch.models.vessel import OwnVessel, Position, PositionUpdate, Target
from helmwatch.models.assessment import CheckRisksResult, CollisionAlert, RiskAssessment
from helmwatch.models.anchor import AnchorRecord
