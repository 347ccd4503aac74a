"""Anchor drag alarm.

Evaluates each own-position update against the recorded anchor position and
emits notifications when the vessel drifts beyond the configured radius.

Notification keys used:
  anchor.drag       — drag alarm (emergency, cannot be silenced)
  anchor.watch      — approaching limit, ≥ 80 % of radius (warn)
  anchor.modeChange — mode changed while anchored (warn)

Raise/clear transitions are edge-triggered: a condition that persists over
successive updates is published once. The current radius value is
republished on every update regardless of alarm state.
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from helmwatch.models.base import NotificationMethodEnum, NotificationStateEnum
from helmwatch.models.vessel import Position
from helmwatch.modules.anchor_state import AnchorStateMachine
from helmwatch.modules.notifications import (
    ANCHOR_CURRENT_RADIUS_PATH,
    ANCHOR_DRAG_KEY,
    ANCHOR_MAX_RADIUS_PATH,
    ANCHOR_MODE_CHANGE_KEY,
    ANCHOR_POSITION_PATH,
    ANCHOR_RODE_LENGTH_PATH,
    ANCHOR_WATCH_KEY,
    Notification,
    NotificationSink,
)
from helmwatch.utils.geo import haversine_meters

logger = logging.getLogger(__name__)

# Watch notification fires at this fraction of the alarm radius
WATCH_RADIUS_FRACTION: float = 0.8

# Distances are compared at millimetre resolution
_COMPARE_DECIMALS: int = 3


class AnchorAlarm:
    def __init__(self, anchor_state: AnchorStateMachine, sink: NotificationSink) -> None:
        self.anchor_state = anchor_state
        self.sink = sink

        # Last computed vessel → anchor distance (metres)
        self.current_radius: Optional[float] = None

        self.drag_active = False
        self.watch_active = False
        self.mode_change_active = False
        # Mode named in the active advisory
        self.mode_change_mode: Optional[str] = None

    # ── Position processing ───────────────────────────────────────────────────

    def evaluate(self, vessel_pos: Position) -> Optional[float]:
        """Evaluate one position update. Returns the distance, or None when idle."""
        if not self.anchor_state.is_monitoring():
            return None
        anchor_pos = self.anchor_state.position
        if anchor_pos is None:
            logger.debug("Anchor monitoring without an anchor position — update ignored")
            return None
        if not vessel_pos.is_valid():
            logger.warning("Ignoring malformed vessel position %s", vessel_pos)
            return None

        distance = haversine_meters(
            anchor_pos.latitude, anchor_pos.longitude,
            vessel_pos.latitude, vessel_pos.longitude,
        )
        self.current_radius = distance

        max_radius = self.anchor_state.max_radius
        watch_radius = max_radius * WATCH_RADIUS_FRACTION
        compared = round(distance, _COMPARE_DECIMALS)

        if compared > max_radius:
            self._raise_drag(distance, max_radius)
            self._clear_watch()
        elif compared >= watch_radius:
            self._raise_watch(distance, max_radius)
            self._clear_drag()
        else:
            self._clear_drag()
            self._clear_watch()

        self.sink.update(ANCHOR_CURRENT_RADIUS_PATH, distance)
        return distance

    @property
    def dragging(self) -> bool:
        if self.current_radius is None:
            return False
        return round(self.current_radius, _COMPARE_DECIMALS) > self.anchor_state.max_radius

    # ── Notification helpers ──────────────────────────────────────────────────

    def _raise_drag(self, distance: float, max_radius: float) -> None:
        if self.drag_active:
            return
        drift = round(distance - max_radius)
        self.sink.publish(
            Notification(
                key=ANCHOR_DRAG_KEY,
                message=(
                    f"Anchor dragging! Drift {round(distance)}m "
                    f"(limit {max_radius:g}m, +{drift}m)"
                ),
                state=NotificationStateEnum.EMERGENCY,
                method=(NotificationMethodEnum.SOUND, NotificationMethodEnum.VISUAL),
            )
        )
        self.drag_active = True
        logger.debug("Anchor drag alarm: %.1fm > %.1fm", distance, max_radius)

    def _raise_watch(self, distance: float, max_radius: float) -> None:
        if self.watch_active:
            return
        self.sink.publish(
            Notification(
                key=ANCHOR_WATCH_KEY,
                message=f"Approaching anchor limit: {round(distance)}m of {max_radius:g}m",
                state=NotificationStateEnum.WARN,
            )
        )
        self.watch_active = True

    def emit_mode_change_warning(self, new_mode: str) -> None:
        """Advisory: operating mode left 'anchored' while the anchor is still down.

        Re-published when the mode changes again so the text names the current mode.
        """
        if self.mode_change_active and self.mode_change_mode == new_mode:
            return
        self.sink.publish(
            Notification(
                key=ANCHOR_MODE_CHANGE_KEY,
                message=(
                    f"Mode changed to '{new_mode}' but anchor is still deployed, "
                    "monitoring continues"
                ),
                state=NotificationStateEnum.WARN,
            )
        )
        self.mode_change_active = True
        self.mode_change_mode = new_mode
        logger.debug("Anchor mode-change warning emitted (new mode: %s)", new_mode)

    def clear_mode_change_warning(self) -> None:
        if not self.mode_change_active:
            return
        self.sink.clear(ANCHOR_MODE_CHANGE_KEY)
        self.mode_change_active = False
        self.mode_change_mode = None

    def _clear_drag(self) -> None:
        if not self.drag_active:
            return
        self.sink.clear(ANCHOR_DRAG_KEY)
        self.drag_active = False

    def _clear_watch(self) -> None:
        if not self.watch_active:
            return
        self.sink.clear(ANCHOR_WATCH_KEY)
        self.watch_active = False

    def clear_all(self) -> None:
        """Positively clear every anchor notification (raise, stop, mode change while raised)."""
        for key in (ANCHOR_DRAG_KEY, ANCHOR_WATCH_KEY, ANCHOR_MODE_CHANGE_KEY):
            self.sink.clear(key)
        self.drag_active = False
        self.watch_active = False
        self.mode_change_active = False
        self.mode_change_mode = None

    # ── Data values ───────────────────────────────────────────────────────────

    def publish_anchor_data(self) -> None:
        """Publish position, radius and rode length after drop/radius/reposition."""
        snap = self.anchor_state.snapshot()
        if snap.position is not None:
            self.sink.update(ANCHOR_POSITION_PATH, asdict(snap.position))
        self.sink.update(ANCHOR_MAX_RADIUS_PATH, snap.max_radius)
        if snap.rode_length is not None:
            self.sink.update(ANCHOR_RODE_LENGTH_PATH, snap.rode_length)

    def clear_anchor_data(self) -> None:
        """Remove anchor data values once the anchor is raised."""
        for path in (
            ANCHOR_POSITION_PATH,
            ANCHOR_MAX_RADIUS_PATH,
            ANCHOR_CURRENT_RADIUS_PATH,
            ANCHOR_RODE_LENGTH_PATH,
        ):
            self.sink.update(path, None)
        self.current_radius = None
