"""Periodic collision scan and notification emission.

Each run reads the telemetry provider, runs check_risks, then:
  - publishes collision.danger / collision.caution for tiers with new alerts
  - clears a tier key once no assessment remains in that tier
  - sweeps the engine's cooldown table
"""
from __future__ import annotations

import logging
from typing import Optional

from helmwatch.models.assessment import CheckRisksResult, CollisionAlert
from helmwatch.models.base import NotificationMethodEnum, NotificationStateEnum, RiskTierEnum
from helmwatch.modules.collision_risk import CollisionRiskEngine
from helmwatch.modules.notifications import COLLISION_KEY_PREFIX, Notification, NotificationSink
from helmwatch.modules.scheduler import PeriodicTask
from helmwatch.modules.telemetry import TelemetryProvider

logger = logging.getLogger(__name__)

_ALERTING_TIERS = (RiskTierEnum.DANGER, RiskTierEnum.CAUTION)

_TIER_STATE = {
    RiskTierEnum.DANGER: NotificationStateEnum.EMERGENCY,
    RiskTierEnum.CAUTION: NotificationStateEnum.WARN,
}


def collision_key(tier: RiskTierEnum) -> str:
    return f"{COLLISION_KEY_PREFIX}{tier.value}"


class CollisionMonitor:
    def __init__(
        self,
        engine: CollisionRiskEngine,
        provider: TelemetryProvider,
        sink: NotificationSink,
        interval_seconds: float = 30.0,
    ) -> None:
        self.engine = engine
        self.provider = provider
        self.sink = sink
        self.last_result: Optional[CheckRisksResult] = None
        self._active_tiers: set[RiskTierEnum] = set()
        self._task = PeriodicTask("collision-scan", interval_seconds, self.run_scan)

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    def run_scan(self) -> CheckRisksResult:
        own = self.provider.get_own_vessel()
        targets = self.provider.get_targets()
        result = self.engine.check_risks(own, targets)

        present = {a.risk for a in result.assessments}
        for tier in _ALERTING_TIERS:
            tier_alerts = [a for a in result.alerts if a.risk == tier]
            if tier_alerts:
                self._publish(tier, tier_alerts)
            elif tier not in present and tier in self._active_tiers:
                self.sink.clear(collision_key(tier))
                self._active_tiers.discard(tier)

        evicted = self.engine.cleanup()
        if evicted:
            logger.debug("Evicted %d expired cooldown entries", evicted)

        self.last_result = result
        if result.assessments:
            logger.info(
                "Collision scan: %d in range, %d danger, %d caution",
                result.total_in_range, result.danger_count, result.caution_count,
            )
        return result

    def _publish(self, tier: RiskTierEnum, alerts: list[CollisionAlert]) -> None:
        if tier == RiskTierEnum.DANGER:
            method = (NotificationMethodEnum.SOUND, NotificationMethodEnum.VISUAL)
        else:
            method = (NotificationMethodEnum.VISUAL,)
        self.sink.publish(
            Notification(
                key=collision_key(tier),
                message=". ".join(a.message for a in alerts),
                state=_TIER_STATE[tier],
                method=method,
            )
        )
        self._active_tiers.add(tier)
