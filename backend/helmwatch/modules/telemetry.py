"""Telemetry providers and Signal K shape normalization.

The core only sees the narrow TelemetryProvider protocol (own vessel +
targets, knots and degrees). Everything that deals with the data bus's
loosely-shaped documents lives here:

  - Signal K values may be bare or wrapped in {"value": ...}
  - speeds arrive in m/s and angles in radians
  - targets are keyed by context ("vessels.urn:mrn:imo:mmsi:244123456")

Usage:
    store = TelemetryStore()
    store.apply_delta(delta)              # from the data bus
    store.subscribe_position(cb, 2.0)     # anchor watch feed
    own, targets = store.get_own_vessel(), store.get_targets()
"""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

import yaml

from helmwatch.models.vessel import OwnVessel, Position, PositionUpdate, Target

logger = logging.getLogger(__name__)

_MS_TO_KNOTS: float = 1.94384
_MMSI_URN_PREFIX = "urn:mrn:imo:mmsi:"

PositionCallback = Callable[[PositionUpdate], None]


class TelemetryProvider(Protocol):
    def get_own_vessel(self) -> Optional[OwnVessel]:
        ...

    def get_targets(self) -> list[Target]:
        ...


# ── Shape normalization ───────────────────────────────────────────────────────

def unwrap_value(raw: Any) -> Any:
    """Return raw["value"] for Signal K wrapped values, else raw."""
    if isinstance(raw, dict) and "value" in raw:
        return raw["value"]
    return raw


def extract_value(obj: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts, unwrapping the leaf."""
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return unwrap_value(current)


def parse_position(raw: Any) -> Optional[Position]:
    value = unwrap_value(raw)
    if not isinstance(value, dict):
        return None
    lat = value.get("latitude")
    lon = value.get("longitude")
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return None
    position = Position(float(lat), float(lon))
    return position if position.is_valid() else None


def speed_to_knots(raw: Any) -> Optional[float]:
    value = unwrap_value(raw)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value) * _MS_TO_KNOTS


def angle_to_degrees(raw: Any) -> Optional[float]:
    value = unwrap_value(raw)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return math.degrees(float(value)) % 360.0


def target_id_from_context(context: str) -> str:
    """'vessels.urn:mrn:imo:mmsi:244123456' → '244123456'."""
    ident = context.split(".", 1)[1] if context.startswith("vessels.") else context
    if ident.startswith(_MMSI_URN_PREFIX):
        return ident[len(_MMSI_URN_PREFIX):]
    return ident


def own_vessel_from_signalk(doc: Any) -> Optional[OwnVessel]:
    """Own vessel from a Signal K vessel document; None without a position."""
    if not isinstance(doc, dict):
        return None
    position = parse_position(extract_value(doc, "navigation.position"))
    if position is None:
        position = parse_position(doc.get("position"))
    if position is None:
        return None
    return OwnVessel(
        position=position,
        sog=speed_to_knots(extract_value(doc, "navigation.speedOverGround")),
        cog=angle_to_degrees(extract_value(doc, "navigation.courseOverGroundTrue")),
    )


def targets_from_signalk(vessels: Any, self_id: Optional[str] = None) -> list[Target]:
    """Targets from a Signal K ``vessels`` map, skipping own vessel and position-less entries."""
    targets: list[Target] = []
    if not isinstance(vessels, dict):
        return targets
    for vessel_id, vessel in vessels.items():
        if vessel_id in ("self", self_id) or not isinstance(vessel, dict):
            continue
        position = parse_position(extract_value(vessel, "navigation.position"))
        if position is None:
            logger.debug("Signal K vessel %s has no usable position — skipped", vessel_id)
            continue
        ship_type = extract_value(vessel, "design.aisShipType")
        if isinstance(ship_type, dict):
            ship_type = ship_type.get("name")
        target_id = target_id_from_context(f"vessels.{vessel_id}")
        targets.append(
            Target(
                target_id=target_id,
                name=extract_value(vessel, "name") or target_id,
                position=position,
                sog=speed_to_knots(extract_value(vessel, "navigation.speedOverGround")),
                cog=angle_to_degrees(extract_value(vessel, "navigation.courseOverGroundTrue")),
                ship_type=ship_type,
                callsign=extract_value(vessel, "communication.callsignVhf"),
            )
        )
    return targets


# ── Snapshot files ────────────────────────────────────────────────────────────

def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _snapshot_position(entry: dict) -> Optional[Position]:
    lat, lon = entry.get("latitude"), entry.get("longitude")
    if lat is None or lon is None:
        return None
    return Position(float(lat), float(lon))


def load_snapshot(path: Path | str) -> tuple[Optional[OwnVessel], list[Target]]:
    """Load own vessel and targets from a YAML snapshot (knots, degrees).

    Format::

        own_vessel: {latitude: 43.1, longitude: 5.9, sog: 6.0, cog: 90}
        targets:
          - {id: "244123456", name: ALPHA, latitude: 43.12, longitude: 5.95, sog: 12, cog: 270}
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    own_raw = data.get("own_vessel") or {}
    own = None
    if own_raw:
        own = OwnVessel(
            position=_snapshot_position(own_raw),
            sog=_optional_float(own_raw.get("sog")),
            cog=_optional_float(own_raw.get("cog")),
        )

    targets: list[Target] = []
    for i, entry in enumerate(data.get("targets") or []):
        try:
            targets.append(
                Target(
                    target_id=str(entry.get("id") or entry.get("mmsi") or f"target-{i}"),
                    name=entry.get("name"),
                    position=_snapshot_position(entry),
                    sog=_optional_float(entry.get("sog")),
                    cog=_optional_float(entry.get("cog")),
                    ship_type=entry.get("ship_type"),
                    callsign=entry.get("callsign"),
                )
            )
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed snapshot target #%d: %s", i, exc)
    return own, targets


class StaticTelemetryProvider:
    """Fixed own vessel + targets (snapshot files, tests)."""

    def __init__(self, own: Optional[OwnVessel], targets: Iterable[Target] = ()) -> None:
        self._own = own
        self._targets = list(targets)

    def get_own_vessel(self) -> Optional[OwnVessel]:
        return self._own

    def get_targets(self) -> list[Target]:
        return list(self._targets)


# ── Live store fed by Signal K deltas ─────────────────────────────────────────

@dataclass(eq=False)
class _Subscription:
    callback: PositionCallback
    period: float
    last_delivered: Optional[float] = None


@dataclass
class _TargetFields:
    values: dict[str, Any] = field(default_factory=dict)
    last_seen: float = 0.0


class TelemetryStore:
    """In-memory TelemetryProvider updated from Signal K delta messages."""

    def __init__(
        self,
        self_context: str = "vessels.self",
        target_ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.self_context = self_context
        self.target_ttl_seconds = target_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._own: dict[str, Any] = {}
        self._targets: dict[str, _TargetFields] = {}
        self._subscriptions: list[_Subscription] = []

    # Provider protocol

    def get_own_vessel(self) -> Optional[OwnVessel]:
        with self._lock:
            if not self._own:
                return None
            return OwnVessel(
                position=self._own.get("position"),
                sog=self._own.get("sog"),
                cog=self._own.get("cog"),
            )

    def get_targets(self) -> list[Target]:
        now = self._clock()
        with self._lock:
            stale = [k for k, t in self._targets.items() if now - t.last_seen > self.target_ttl_seconds]
            for key in stale:
                del self._targets[key]
            if stale:
                logger.debug("Dropped %d stale targets", len(stale))
            return [
                Target(target_id=key, **fields.values)
                for key, fields in self._targets.items()
                if fields.values.get("position") is not None
            ]

    # Direct setters (snapshot loading)

    def set_own_vessel(self, own: OwnVessel) -> None:
        with self._lock:
            self._own = {"position": own.position, "sog": own.sog, "cog": own.cog}
        if own.position is not None:
            self._notify_position(own.position, own.cog)

    def set_targets(self, targets: Iterable[Target]) -> None:
        now = self._clock()
        with self._lock:
            self._targets = {
                t.target_id: _TargetFields(
                    values={
                        "name": t.name, "position": t.position, "sog": t.sog, "cog": t.cog,
                        "ship_type": t.ship_type, "callsign": t.callsign,
                    },
                    last_seen=now,
                )
                for t in targets
            }

    # Delta ingestion

    def apply_delta(self, delta: Any) -> int:
        """Apply a Signal K delta. Returns the number of values applied."""
        if not isinstance(delta, dict) or not isinstance(delta.get("updates"), list):
            return 0
        context = delta.get("context") or self.self_context
        is_self = context in ("vessels.self", self.self_context)

        applied = 0
        new_position: Optional[Position] = None
        for update in delta["updates"]:
            values = update.get("values") if isinstance(update, dict) else None
            if not isinstance(values, list):
                continue
            for pv in values:
                if not isinstance(pv, dict):
                    continue
                path, value = pv.get("path"), pv.get("value")
                if is_self:
                    changed = self._apply_own(path, value)
                    if changed and path == "navigation.position":
                        new_position = self._own.get("position")
                else:
                    changed = self._apply_target(target_id_from_context(context), path, value)
                applied += int(changed)

        if new_position is not None:
            self._notify_position(new_position, self._own.get("cog"))
        return applied

    def _apply_own(self, path: Any, value: Any) -> bool:
        with self._lock:
            if path == "navigation.position":
                position = parse_position(value)
                if position is None:
                    logger.debug("Ignoring malformed own position %r", value)
                    return False
                self._own["position"] = position
            elif path == "navigation.speedOverGround":
                self._own["sog"] = speed_to_knots(value)
            elif path == "navigation.courseOverGroundTrue":
                self._own["cog"] = angle_to_degrees(value)
            else:
                return False
        return True

    def _apply_target(self, target_id: str, path: Any, value: Any) -> bool:
        with self._lock:
            entry = self._targets.setdefault(target_id, _TargetFields())
            fields = entry.values
            if path == "navigation.position":
                position = parse_position(value)
                if position is None:
                    return False
                fields["position"] = position
            elif path == "navigation.speedOverGround":
                fields["sog"] = speed_to_knots(value)
            elif path == "navigation.courseOverGroundTrue":
                fields["cog"] = angle_to_degrees(value)
            elif path == "communication.callsignVhf":
                fields["callsign"] = unwrap_value(value)
            elif path == "design.aisShipType":
                ship_type = unwrap_value(value)
                fields["ship_type"] = ship_type.get("name") if isinstance(ship_type, dict) else ship_type
            elif path in ("", None) and isinstance(value, dict) and value.get("name"):
                fields["name"] = value["name"]
            elif path == "name":
                fields["name"] = unwrap_value(value)
            else:
                return False
            entry.last_seen = self._clock()
        return True

    # Position subscriptions

    def subscribe_position(self, callback: PositionCallback, period_seconds: float = 2.0) -> Callable[[], None]:
        """Deliver own-position updates at most once per *period_seconds*.

        Returns an unsubscribe function.
        """
        sub = _Subscription(callback=callback, period=period_seconds)
        with self._lock:
            self._subscriptions.append(sub)

        def _unsubscribe() -> None:
            with self._lock:
                if sub in self._subscriptions:
                    self._subscriptions.remove(sub)

        return _unsubscribe

    def _notify_position(self, position: Position, cog: Optional[float]) -> None:
        now = self._clock()
        update = PositionUpdate(position=position, received_at=datetime.now(timezone.utc), cog=cog)
        with self._lock:
            due = [
                s for s in self._subscriptions
                if s.last_delivered is None or now - s.last_delivered >= s.period
            ]
            for sub in due:
                sub.last_delivered = now
        for sub in due:
            try:
                sub.callback(update)
            except Exception:
                logger.exception("Position subscriber failed")
