"""Collision risk engine.

Computes, for every tracked target within range of own vessel:
  - CPA  (Closest Point of Approach) in nautical miles
  - TCPA (Time to CPA) in minutes
  - Risk tier (danger / caution / watch / safe)
  - COLREGs situation (head-on, crossing, overtaking)

CPA/TCPA use a linear constant-velocity relative-motion model on a local
tangent plane, adequate for short-range collision avoidance. Range and
bearing use great-circle geometry.

Alerting (check_risks) only fires for danger/caution targets and is
de-duplicated per target by a cooldown table owned by the engine.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from helmwatch.models.assessment import CheckRisksResult, CollisionAlert, RiskAssessment
from helmwatch.models.base import AlertSeverityEnum, ColregsSituationEnum, RiskTierEnum
from helmwatch.models.vessel import OwnVessel, Position, Target
from helmwatch.modules.cooldown import CooldownTable
from helmwatch.utils.geo import (
    haversine_nm,
    initial_bearing,
    local_offset_nm,
    normalize_relative,
    velocity_components,
)

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────────────

# Squared relative speed (kn²) below which the vessels are treated as co-moving
_MIN_REL_SPEED_SQ: float = 1e-4

# TCPA ceilings (minutes) for the danger and caution tiers
_DANGER_TCPA_MIN: float = 15.0
_CAUTION_TCPA_MIN: float = 20.0

# Relative-bearing buckets (degrees) for right-of-way classification
_HEAD_ON_SECTOR_DEG: float = 10.0
_STERN_SECTOR_MIN_DEG: float = 112.5
_STERN_SECTOR_MAX_DEG: float = 247.5

_SITUATION_TEXT: dict[ColregsSituationEnum, str] = {
    ColregsSituationEnum.HEAD_ON: "Head-on situation",
    ColregsSituationEnum.CROSSING_STARBOARD: "Crossing from starboard, we are the give-way vessel",
    ColregsSituationEnum.CROSSING_PORT: "Crossing from port, we are the stand-on vessel",
    ColregsSituationEnum.OVERTAKING: "We are overtaking",
    ColregsSituationEnum.BEING_OVERTAKEN: "We are being overtaken",
    ColregsSituationEnum.SAFE_PASSING: "We are the stand-on vessel",
}

_EVASIVE_ACTION: dict[ColregsSituationEnum, str] = {
    ColregsSituationEnum.HEAD_ON: "Alter course to starboard",
    ColregsSituationEnum.CROSSING_STARBOARD: "Give way",
    ColregsSituationEnum.CROSSING_PORT: "Maintain course and speed",
    ColregsSituationEnum.OVERTAKING: "Give way",
    ColregsSituationEnum.BEING_OVERTAKEN: "Maintain course and speed",
    ColregsSituationEnum.SAFE_PASSING: "Maintain course and speed",
}


@dataclass(frozen=True)
class CollisionThresholds:
    danger_cpa_nm: float = 0.25
    caution_cpa_nm: float = 0.5
    watch_cpa_nm: float = 1.0
    max_tcpa_min: float = 30.0
    max_range_nm: float = 5.0
    announce_cooldown_s: float = 300.0

    def __post_init__(self) -> None:
        if not (0 < self.danger_cpa_nm < self.caution_cpa_nm < self.watch_cpa_nm):
            raise ValueError(
                "CPA thresholds must be positive and strictly increasing "
                f"(danger={self.danger_cpa_nm}, caution={self.caution_cpa_nm}, watch={self.watch_cpa_nm})"
            )
        if self.max_tcpa_min <= 0 or self.max_range_nm <= 0:
            raise ValueError("max_tcpa_min and max_range_nm must be positive")
        if self.announce_cooldown_s < 0:
            raise ValueError("announce_cooldown_s must be >= 0")

    @classmethod
    def from_settings(cls, settings) -> "CollisionThresholds":
        return cls(
            danger_cpa_nm=settings.COLLISION_DANGER_CPA_NM,
            caution_cpa_nm=settings.COLLISION_CAUTION_CPA_NM,
            watch_cpa_nm=settings.COLLISION_WATCH_CPA_NM,
            max_tcpa_min=settings.COLLISION_MAX_TCPA_MIN,
            max_range_nm=settings.COLLISION_MAX_RANGE_NM,
            announce_cooldown_s=settings.COLLISION_ANNOUNCE_COOLDOWN_MIN * 60.0,
        )


# ── Pure geometry / classification ────────────────────────────────────────────

def compute_cpa_tcpa(
    own_pos: Position,
    own_sog: float,
    own_cog: float,
    tgt_pos: Position,
    tgt_sog: float,
    tgt_cog: float,
) -> tuple[float, float]:
    """Return (cpa_nm, tcpa_min) for a target under constant velocity.

    TCPA is 0 when the vessels are co-moving or already past their closest
    approach; CPA is then the current separation.
    """
    own_vx, own_vy = velocity_components(own_sog, own_cog)
    tgt_vx, tgt_vy = velocity_components(tgt_sog, tgt_cog)
    dvx = tgt_vx - own_vx
    dvy = tgt_vy - own_vy

    dx, dy = local_offset_nm(own_pos.latitude, own_pos.longitude, tgt_pos.latitude, tgt_pos.longitude)
    current = math.hypot(dx, dy)

    rel_speed_sq = dvx * dvx + dvy * dvy
    if rel_speed_sq < _MIN_REL_SPEED_SQ:
        return current, 0.0

    tcpa_hours = -(dx * dvx + dy * dvy) / rel_speed_sq
    if tcpa_hours < 0:
        return current, 0.0

    cpa = math.hypot(dx + dvx * tcpa_hours, dy + dvy * tcpa_hours)
    return cpa, tcpa_hours * 60.0


def classify_risk(cpa_nm: float, tcpa_min: float, thresholds: CollisionThresholds) -> RiskTierEnum:
    if tcpa_min <= 0 or tcpa_min > thresholds.max_tcpa_min:
        return RiskTierEnum.SAFE
    if cpa_nm < thresholds.danger_cpa_nm and tcpa_min < _DANGER_TCPA_MIN:
        return RiskTierEnum.DANGER
    if cpa_nm < thresholds.caution_cpa_nm and tcpa_min < _CAUTION_TCPA_MIN:
        return RiskTierEnum.CAUTION
    if cpa_nm < thresholds.watch_cpa_nm:
        return RiskTierEnum.WATCH
    return RiskTierEnum.SAFE


def classify_colregs(relative_bearing: float, target_sog: float, own_sog: float) -> ColregsSituationEnum:
    """Classify the right-of-way situation from the signed relative bearing (-180..180)."""
    abs_bearing = abs(relative_bearing)

    if abs_bearing < _HEAD_ON_SECTOR_DEG:
        return ColregsSituationEnum.HEAD_ON
    if _STERN_SECTOR_MIN_DEG < abs_bearing < _STERN_SECTOR_MAX_DEG:
        if own_sog > target_sog:
            return ColregsSituationEnum.OVERTAKING
        return ColregsSituationEnum.BEING_OVERTAKEN
    if 0 < relative_bearing < _STERN_SECTOR_MIN_DEG:
        return ColregsSituationEnum.CROSSING_STARBOARD
    if relative_bearing < 0 or relative_bearing > _STERN_SECTOR_MAX_DEG:
        return ColregsSituationEnum.CROSSING_PORT
    return ColregsSituationEnum.SAFE_PASSING


def evasive_action(situation: ColregsSituationEnum) -> str:
    return _EVASIVE_ACTION.get(situation, "Maintain course and speed")


def build_alert_message(assessment: RiskAssessment) -> str:
    """Human-readable alert text for a danger or caution target."""
    if assessment.risk == RiskTierEnum.DANGER:
        return (
            f"Collision danger: {assessment.name} at {assessment.range_nm:.2f} NM, "
            f"CPA {assessment.cpa_nm:.2f} NM in {round(assessment.tcpa_min)} min. "
            f"{_SITUATION_TEXT[assessment.situation]}. {evasive_action(assessment.situation)}"
        )
    return (
        f"Caution: {assessment.name} at {assessment.range_nm:.2f} NM, "
        f"CPA {assessment.cpa_nm:.2f} NM in {round(assessment.tcpa_min)} min"
    )


# ── Engine ────────────────────────────────────────────────────────────────────

class CollisionRiskEngine:
    """Scans targets against own vessel and emits de-duplicated alerts."""

    def __init__(
        self,
        thresholds: CollisionThresholds | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_cooldown_entries: int = 1024,
    ) -> None:
        self.thresholds = thresholds or CollisionThresholds()
        self._clock = clock
        self._cooldown = CooldownTable(self.thresholds.announce_cooldown_s, max_cooldown_entries)

    @property
    def cooldown(self) -> CooldownTable:
        return self._cooldown

    def scan(self, own: Optional[OwnVessel], targets: Iterable[Target]) -> list[RiskAssessment]:
        """Assess every target within range, most urgent first."""
        if own is None or own.position is None or not own.position.is_valid():
            logger.debug("Own position unavailable, skipping collision scan")
            return []

        results: list[RiskAssessment] = []
        for target in targets:
            try:
                assessment = self._assess(own, target)
            except (TypeError, ValueError, ArithmeticError) as exc:
                logger.warning("Skipping target %s: %s", getattr(target, "target_id", "?"), exc)
                continue
            if assessment is not None:
                results.append(assessment)

        results.sort(key=lambda a: (a.risk.rank, a.cpa_nm))
        return results

    def check_risks(self, own: Optional[OwnVessel], targets: Iterable[Target]) -> CheckRisksResult:
        """Scan, then emit alerts for danger/caution targets not in cooldown."""
        assessments = self.scan(own, targets)
        now = self._clock()
        alerts: list[CollisionAlert] = []

        for assessment in assessments:
            if assessment.risk not in (RiskTierEnum.DANGER, RiskTierEnum.CAUTION):
                continue
            key = assessment.target_id or assessment.name
            if not self._cooldown.is_ready(key, now):
                logger.debug("Target %s still in alert cooldown", key)
                continue
            self._cooldown.mark(key, now)
            alerts.append(
                CollisionAlert(
                    target_id=assessment.target_id,
                    target=assessment.name,
                    cpa_nm=assessment.cpa_nm,
                    tcpa_min=assessment.tcpa_min,
                    range_nm=assessment.range_nm,
                    bearing_deg=assessment.bearing_deg,
                    situation=assessment.situation,
                    risk=assessment.risk,
                    severity=(
                        AlertSeverityEnum.ALARM
                        if assessment.risk == RiskTierEnum.DANGER
                        else AlertSeverityEnum.WARN
                    ),
                    message=build_alert_message(assessment),
                )
            )

        if alerts:
            logger.info("Collision check: %d new alert(s) of %d target(s) in range", len(alerts), len(assessments))
        return CheckRisksResult(assessments=assessments, alerts=alerts)

    def cleanup(self) -> int:
        """Evict cooldown entries older than three cooldown periods."""
        return self._cooldown.sweep(self._clock())

    def _assess(self, own: OwnVessel, target: Target) -> Optional[RiskAssessment]:
        tgt_pos = target.position
        if tgt_pos is None or not tgt_pos.is_valid():
            logger.debug("Target %s has no valid position — skipped", target.target_id)
            return None

        own_pos = own.position
        range_nm = haversine_nm(own_pos.latitude, own_pos.longitude, tgt_pos.latitude, tgt_pos.longitude)
        if range_nm > self.thresholds.max_range_nm:
            return None

        own_sog = float(own.sog or 0.0)
        own_cog = float(own.cog or 0.0)
        tgt_sog = float(target.sog or 0.0)
        tgt_cog = float(target.cog or 0.0)

        bearing = initial_bearing(own_pos.latitude, own_pos.longitude, tgt_pos.latitude, tgt_pos.longitude)
        relative_bearing = normalize_relative(bearing - own_cog)

        cpa, tcpa = compute_cpa_tcpa(own_pos, own_sog, own_cog, tgt_pos, tgt_sog, tgt_cog)
        if not (math.isfinite(cpa) and math.isfinite(tcpa)):
            raise ValueError("non-finite CPA/TCPA")

        return RiskAssessment(
            target_id=target.target_id,
            name=target.display_name,
            range_nm=range_nm,
            bearing_deg=bearing,
            relative_bearing_deg=relative_bearing,
            cpa_nm=cpa,
            tcpa_min=tcpa,
            risk=classify_risk(cpa, tcpa, self.thresholds),
            situation=classify_colregs(relative_bearing, tgt_sog, own_sog),
            position=tgt_pos,
            sog=target.sog,
            cog=target.cog,
            ship_type=target.ship_type,
            callsign=target.callsign,
        )
