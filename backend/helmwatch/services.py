"""Service container wiring the safety core to its adapters."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from helmwatch.config import Settings
from helmwatch.modules.anchor_state import AnchorStateMachine, AnchorStateStore
from helmwatch.modules.anchor_watch import AnchorWatch
from helmwatch.modules.collision_monitor import CollisionMonitor
from helmwatch.modules.collision_risk import CollisionRiskEngine, CollisionThresholds
from helmwatch.modules.notifications import MemoryNotificationSink
from helmwatch.modules.operating_mode import OperatingMode
from helmwatch.modules.telemetry import TelemetryStore, load_snapshot

logger = logging.getLogger(__name__)


@dataclass
class Services:
    telemetry: TelemetryStore
    sink: MemoryNotificationSink
    mode: OperatingMode
    anchor_watch: AnchorWatch
    collision_monitor: CollisionMonitor

    async def start(self) -> None:
        self.anchor_watch.start()
        self.collision_monitor.start()

    async def stop(self) -> None:
        await self.collision_monitor.stop()
        await self.anchor_watch.stop()


def build_services(settings: Settings, sink: MemoryNotificationSink | None = None) -> Services:
    """Build the full service graph from settings."""
    sink = sink or MemoryNotificationSink()
    telemetry = TelemetryStore(
        self_context=settings.TELEMETRY_SELF_CONTEXT,
        target_ttl_seconds=settings.TELEMETRY_TARGET_TTL_SECONDS,
    )
    if settings.TELEMETRY_SNAPSHOT_FILE:
        own, targets = load_snapshot(settings.TELEMETRY_SNAPSHOT_FILE)
        if own is not None:
            telemetry.set_own_vessel(own)
        telemetry.set_targets(targets)
        logger.info("Loaded telemetry snapshot %s (%d targets)", settings.TELEMETRY_SNAPSHOT_FILE, len(targets))

    mode = OperatingMode()

    anchor_state = AnchorStateMachine(
        store=AnchorStateStore(settings.anchor_state_path),
        default_radius=settings.ANCHOR_DEFAULT_RADIUS_M,
    )
    anchor_watch = AnchorWatch(
        anchor_state,
        sink,
        telemetry=telemetry,
        subscribe=telemetry.subscribe_position,
        position_period_seconds=settings.ANCHOR_POSITION_PERIOD_SECONDS,
    )
    # Mode requests from the watch are not echoed back to it
    anchor_watch.on_mode_change(lambda m: mode.set_mode(m, notify=False))
    mode.add_listener(anchor_watch.handle_mode_change)

    engine = CollisionRiskEngine(
        CollisionThresholds.from_settings(settings),
        max_cooldown_entries=settings.COLLISION_COOLDOWN_MAX_ENTRIES,
    )
    collision_monitor = CollisionMonitor(
        engine,
        telemetry,
        sink,
        interval_seconds=settings.COLLISION_SCAN_INTERVAL_SECONDS,
    )

    return Services(
        telemetry=telemetry,
        sink=sink,
        mode=mode,
        anchor_watch=anchor_watch,
        collision_monitor=collision_monitor,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
