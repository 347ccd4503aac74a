"""Shared geodesic utilities.

Canonical implementations of haversine distance, forward azimuth and
destination-point projection used by the collision engine and the anchor
watch. All angles are degrees, true north, clockwise.
"""
from __future__ import annotations

import math

_EARTH_RADIUS_NM: float = 3440.065   # Earth mean radius in nautical miles
_EARTH_RADIUS_M: float = 6_371_000.0  # Earth mean radius in metres


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return _EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    )
    return _EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Forward azimuth from point 1 to point 2, degrees in [0, 360)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlam = math.radians(lon2 - lon1)
    y = math.sin(dlam) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlam)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def normalize_relative(angle: float) -> float:
    """Wrap an angle to [-180, 180]."""
    angle = math.fmod(angle, 360.0)
    if angle > 180.0:
        angle -= 360.0
    if angle < -180.0:
        angle += 360.0
    return angle


def destination_point(
    lat: float, lon: float, bearing_deg: float, distance_m: float
) -> tuple[float, float]:
    """Project (lat, lon) along *bearing_deg* by *distance_m* on a spherical Earth.

    Returns (lat, lon) in degrees, longitude wrapped to [-180, 180].
    """
    phi1 = math.radians(lat)
    lam1 = math.radians(lon)
    theta = math.radians(bearing_deg)
    delta = distance_m / _EARTH_RADIUS_M

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lam2 = lam1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    return math.degrees(phi2), normalize_relative(math.degrees(lam2))


def velocity_components(sog_kn: float, cog_deg: float) -> tuple[float, float]:
    """Speed/course to (east, north) velocity components in knots."""
    course = math.radians(cog_deg)
    return sog_kn * math.sin(course), sog_kn * math.cos(course)


def local_offset_nm(
    own_lat: float, own_lon: float, tgt_lat: float, tgt_lon: float
) -> tuple[float, float]:
    """(east, north) offset of the target from own vessel in nautical miles.

    Flat-Earth tangent-plane approximation, valid at collision-avoidance ranges.
    The longitude delta is wrapped so targets across the antimeridian stay close.
    """
    north = (tgt_lat - own_lat) * 60.0
    east = normalize_relative(tgt_lon - own_lon) * 60.0 * math.cos(math.radians(own_lat))
    return east, north
