"""Transient kinematic records read from the telemetry provider each cycle."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Position:
    """WGS-84 position in decimal degrees."""
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        try:
            lat = float(self.latitude)
            lon = float(self.longitude)
        except (TypeError, ValueError):
            return False
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return False
        return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


@dataclass(frozen=True)
class OwnVessel:
    position: Optional[Position] = None
    sog: Optional[float] = None   # knots
    cog: Optional[float] = None   # degrees true


@dataclass(frozen=True)
class Target:
    target_id: str
    name: Optional[str] = None
    position: Optional[Position] = None
    sog: Optional[float] = None   # knots
    cog: Optional[float] = None   # degrees true
    ship_type: Optional[str] = None
    callsign: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or f"MMSI {self.target_id}"


@dataclass(frozen=True)
class PositionUpdate:
    """Immutable own-position event delivered to the anchor watch."""
    position: Position
    received_at: datetime
    cog: Optional[float] = None
