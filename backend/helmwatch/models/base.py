"""Shared enums for all models."""
from __future__ import annotations

import enum


class RiskTierEnum(str, enum.Enum):
    DANGER = "danger"
    CAUTION = "caution"
    WATCH = "watch"
    SAFE = "safe"

    @property
    def rank(self) -> int:
        """Sort rank, most urgent first."""
        return _RISK_RANK[self]


_RISK_RANK = {
    RiskTierEnum.DANGER: 0,
    RiskTierEnum.CAUTION: 1,
    RiskTierEnum.WATCH: 2,
    RiskTierEnum.SAFE: 3,
}


class ColregsSituationEnum(str, enum.Enum):
    HEAD_ON = "head_on"
    CROSSING_STARBOARD = "crossing_starboard"  # target on our starboard side, we give way
    CROSSING_PORT = "crossing_port"            # target on our port side, we stand on
    OVERTAKING = "overtaking"
    BEING_OVERTAKEN = "being_overtaken"
    SAFE_PASSING = "safe_passing"


class AlertSeverityEnum(str, enum.Enum):
    ALARM = "alarm"
    WARN = "warn"


class AnchorStateEnum(str, enum.Enum):
    RAISED = "raised"
    DROPPING = "dropping"
    DROPPED = "dropped"
    RAISING = "raising"


class NotificationStateEnum(str, enum.Enum):
    WARN = "warn"
    # Cannot be silenced by the user
    EMERGENCY = "emergency"


class NotificationMethodEnum(str, enum.Enum):
    VISUAL = "visual"
    SOUND = "sound"


class OperatingModeEnum(str, enum.Enum):
    SAILING = "sailing"
    ANCHORED = "anchored"
    MOTORING = "motoring"
    MOORED = "moored"
    RACING = "racing"
