"""Anchor watch — lifecycle operations, drag monitoring and mode integration.

Ties together the persisted AnchorStateMachine, the AnchorAlarm evaluator,
the telemetry feed and the vessel operating mode:

  drop        — capture current position, raised → dropping, mode 'anchored'
  set_radius  — change the alarm radius
  reposition  — estimate the anchor from rode length/depth, → dropped
  raise       — raising then raised at once (no windlass feedback), mode 'sailing'

Position updates arrive through an asyncio queue drained by a single
consumer task, so evaluations happen in order and never interleave with a
lifecycle operation. Without a running event loop, updates are evaluated
inline.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Callable, Optional

from helmwatch.models.anchor import AnchorRecord
from helmwatch.models.base import AnchorStateEnum, OperatingModeEnum
from helmwatch.models.vessel import OwnVessel, Position, PositionUpdate
from helmwatch.modules.anchor_alarm import WATCH_RADIUS_FRACTION, AnchorAlarm
from helmwatch.modules.anchor_state import AnchorStateMachine, AnchorTransitionError
from helmwatch.modules.notifications import NotificationSink
from helmwatch.modules.telemetry import PositionCallback, TelemetryProvider
from helmwatch.utils.geo import destination_point

logger = logging.getLogger(__name__)

# Below this horizontal scope (metres) the anchor is taken to be under the vessel
_MIN_SCOPE_M: float = 1.0

ModeCallback = Callable[[str], None]
SubscribeFunc = Callable[[PositionCallback, float], Callable[[], None]]


class AnchorOperationError(Exception):
    """A control operation cannot proceed (e.g. no vessel position available)."""


def horizontal_scope(rode_length: float, anchor_depth: float) -> float:
    """Taut-line horizontal scope: sqrt(rode² - depth²), never negative."""
    return math.sqrt(max(0.0, rode_length * rode_length - anchor_depth * anchor_depth))


def estimate_anchor_position(
    vessel_pos: Position,
    cog_deg: Optional[float],
    rode_length: float,
    anchor_depth: float,
) -> Position:
    """Project the anchor from the vessel along its course over ground.

    The freshly anchored vessel is assumed to lie along its approach heading
    from the anchor; COG 0 is used when unknown.
    """
    scope = horizontal_scope(rode_length, anchor_depth)
    if scope < _MIN_SCOPE_M:
        return vessel_pos
    lat, lon = destination_point(vessel_pos.latitude, vessel_pos.longitude, cog_deg or 0.0, scope)
    return Position(lat, lon)


class AnchorWatch:
    def __init__(
        self,
        anchor_state: AnchorStateMachine,
        sink: NotificationSink,
        telemetry: Optional[TelemetryProvider] = None,
        subscribe: Optional[SubscribeFunc] = None,
        position_period_seconds: float = 2.0,
    ) -> None:
        self.anchor_state = anchor_state
        self.alarm = AnchorAlarm(anchor_state, sink)
        self.telemetry = telemetry
        self._subscribe = subscribe
        self.position_period_seconds = position_period_seconds

        self._on_mode_change_cb: Optional[ModeCallback] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue[PositionUpdate]] = None
        self._consumer: Optional[asyncio.Task] = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Load persisted state and resume monitoring if the anchor is down."""
        self.anchor_state.load()

        if self.anchor_state.is_monitoring():
            logger.info(
                "Anchor was %s at last shutdown — resuming monitoring",
                self.anchor_state.state.value,
            )
            self.alarm.publish_anchor_data()

        if self._subscribe is not None and self._unsubscribe is None:
            self._unsubscribe = self._subscribe(self.submit_position, self.position_period_seconds)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None and self._consumer is None:
            queue: asyncio.Queue[PositionUpdate] = asyncio.Queue()
            self._loop = loop
            self._queue = queue
            self._consumer = loop.create_task(self._consume_positions(queue), name="anchor-watch")

        logger.debug("AnchorWatch started")

    async def stop(self) -> None:
        """Stop consuming positions and clear every anchor notification."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        self._queue = None
        self._loop = None
        self.alarm.clear_all()
        logger.debug("AnchorWatch stopped")

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    # ── Position feed ─────────────────────────────────────────────────────────

    def submit_position(self, update: PositionUpdate) -> None:
        """Enqueue a position update for the consumer (or evaluate inline)."""
        if self._queue is None or self._loop is None:
            self.process_position(update.position)
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            self._queue.put_nowait(update)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, update)

    def process_position(self, position: Position) -> Optional[float]:
        return self.alarm.evaluate(position)

    async def _consume_positions(self, queue: asyncio.Queue[PositionUpdate]) -> None:
        while True:
            update = await queue.get()
            try:
                self.process_position(update.position)
            except Exception:
                logger.exception("Anchor position evaluation failed")
            finally:
                queue.task_done()

    # ── Mode integration ──────────────────────────────────────────────────────

    def on_mode_change(self, cb: ModeCallback) -> None:
        """Register the callback used to request operating-mode changes."""
        self._on_mode_change_cb = cb

    def handle_mode_change(self, new_mode: str) -> None:
        """Inbound notification that the operating mode changed elsewhere."""
        if new_mode == OperatingModeEnum.ANCHORED.value:
            if self.anchor_state.is_monitoring():
                self.alarm.clear_mode_change_warning()
                self.alarm.publish_anchor_data()
            return

        if self.anchor_state.is_monitoring():
            # Monitoring continues while the anchor is down
            self.alarm.emit_mode_change_warning(new_mode)
            logger.debug("Mode changed to '%s' but anchor still deployed — alarm stays active", new_mode)
        elif self.anchor_state.state == AnchorStateEnum.RAISED:
            self.alarm.clear_all()

    def _trigger_mode_change(self, mode: OperatingModeEnum) -> None:
        if self._on_mode_change_cb is None:
            return
        try:
            self._on_mode_change_cb(mode.value)
        except Exception as exc:
            logger.warning("Anchor mode change callback error: %s", exc)

    # ── Control operations ────────────────────────────────────────────────────

    def drop(self, position: Optional[Position] = None) -> Position:
        """Record the drop point (current vessel position unless given)."""
        if position is None:
            own = self._current_own()
            position = own.position if own is not None else None
        if position is None or not position.is_valid():
            raise AnchorOperationError("No vessel position available — cannot record anchor drop point")

        self.anchor_state.drop(position)
        self.alarm.publish_anchor_data()
        self._trigger_mode_change(OperatingModeEnum.ANCHORED)
        logger.info("Anchor dropped at %.5f, %.5f", position.latitude, position.longitude)
        return position

    def set_radius(self, radius_m: float) -> float:
        self.anchor_state.set_radius(radius_m)
        self.alarm.publish_anchor_data()
        logger.info("Anchor alarm radius set to %sm", radius_m)
        return self.anchor_state.max_radius

    def reposition(self, rode_length: float, anchor_depth: float) -> Position:
        """Estimate the anchor position from scope and confirm it on the bottom."""
        if not (rode_length > 0 and anchor_depth > 0):
            raise ValueError("rode_length and anchor_depth must be positive numbers (metres)")
        if not self.anchor_state.is_monitoring():
            raise AnchorTransitionError(
                f"Cannot reposition while anchor is {self.anchor_state.state.value}"
            )
        own = self._current_own()
        if own is None or own.position is None or not own.position.is_valid():
            raise AnchorOperationError("No vessel position available — cannot estimate anchor position")

        anchor_pos = estimate_anchor_position(own.position, own.cog, rode_length, anchor_depth)
        if not anchor_pos.is_valid():
            raise AnchorOperationError("Estimated anchor position is out of range")
        self.anchor_state.set_rode(rode_length, anchor_depth)
        self.anchor_state.reposition(anchor_pos)
        self.anchor_state.confirm_dropped(anchor_pos)
        self.alarm.publish_anchor_data()
        logger.info("Anchor repositioned — rode %sm, depth %sm", rode_length, anchor_depth)
        return anchor_pos

    def raise_anchor(self) -> AnchorRecord:
        """Raise and immediately confirm (no windlass feedback is modelled)."""
        self.anchor_state.raise_anchor()
        self.alarm.clear_all()
        self.alarm.clear_anchor_data()
        self.anchor_state.confirm_raised()
        self._trigger_mode_change(OperatingModeEnum.SAILING)
        logger.info("Anchor raised")
        return self.anchor_state.snapshot()

    # ── Read operations ───────────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        state = self.anchor_state
        return {
            "state": state.state,
            "position": state.position,
            "max_radius": state.max_radius,
            "watch_radius": state.max_radius * WATCH_RADIUS_FRACTION,
            "current_radius": self.alarm.current_radius,
            "rode_length": state.rode_length,
            "dropped_at": state.dropped_at,
            "dragging": self.alarm.dragging,
        }

    def snapshot(self) -> AnchorRecord:
        return self.anchor_state.snapshot()

    def _current_own(self) -> Optional[OwnVessel]:
        if self.telemetry is None:
            return None
        try:
            return self.telemetry.get_own_vessel()
        except Exception as exc:
            logger.warning("Could not read vessel position: %s", exc)
            return None
