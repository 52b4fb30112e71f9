"""Spherical-earth geometry helpers for GPS Quest."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

# Shared with the local projection scale; both assume the same sphere.
EARTH_RADIUS_METERS = 6378000.0
LOCAL_UNITS_PER_METER = 100.0

_COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


@dataclass(frozen=True)
class GeoPosition:
    """Immutable snapshot of a geographic position."""

    latitude: float
    longitude: float
    altitude: float = 0.0
    horizontal_accuracy: Optional[float] = None

    def distance_to(self, other: "GeoPosition") -> float:
        """Great-circle distance to ``other`` in meters."""
        return distance_meters(self, other)

    def bearing_to(self, other: "GeoPosition") -> float:
        """Initial compass bearing towards ``other`` in degrees."""
        return bearing_degrees(self, other)

    def same_location(self, other: "GeoPosition") -> bool:
        """Return True when latitude and longitude match, ignoring altitude."""
        return self.latitude == other.latitude and self.longitude == other.longitude


def _ensure_finite(position: GeoPosition) -> None:
    if not (math.isfinite(position.latitude) and math.isfinite(position.longitude)):
        raise ValueError(
            f"Invalid geo position: latitude={position.latitude!r}, longitude={position.longitude!r}"
        )


def normalize_angle(degrees: float) -> float:
    """Wrap ``degrees`` into the half-open range [0, 360)."""
    if not math.isfinite(degrees):
        raise ValueError(f"Cannot normalize non-finite angle: {degrees!r}")
    result = math.fmod(degrees, 360.0)
    if result < 0.0:
        result += 360.0
    # Adding 360 to a tiny negative value can round up to exactly 360.0
    if result >= 360.0:
        result -= 360.0
    return result


def signed_angle_difference(target: float, current: float) -> float:
    """Shortest rotation from ``current`` to ``target`` in (-180, 180].

    Positive values turn clockwise (right), negative values anticlockwise.
    """
    diff = normalize_angle(target - current)
    if diff > 180.0:
        diff -= 360.0
    return diff


def distance_meters(a: GeoPosition, b: GeoPosition) -> float:
    """Haversine great-circle distance between two positions in meters."""
    _ensure_finite(a)
    _ensure_finite(b)
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_METERS * c


def bearing_degrees(origin: GeoPosition, target: GeoPosition) -> float:
    """Initial compass bearing from ``origin`` to ``target`` in [0, 360)."""
    _ensure_finite(origin)
    _ensure_finite(target)
    lat1, lon1 = math.radians(origin.latitude), math.radians(origin.longitude)
    lat2, lon2 = math.radians(target.latitude), math.radians(target.longitude)
    dlon = lon2 - lon1
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return normalize_angle(math.degrees(math.atan2(y, x)))


def destination(origin: GeoPosition, bearing: float, distance: float) -> GeoPosition:
    """Position reached by travelling ``distance`` meters along ``bearing``.

    Altitude and accuracy are carried over from ``origin``.
    """
    _ensure_finite(origin)
    angular = distance / EARTH_RADIUS_METERS
    theta = math.radians(bearing)
    lat1 = math.radians(origin.latitude)
    lon1 = math.radians(origin.longitude)
    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular)
        + math.cos(lat1) * math.sin(angular) * math.cos(theta)
    )
    lon2 = lon1 + math.atan2(
        math.sin(theta) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )
    longitude = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return GeoPosition(
        latitude=math.degrees(lat2),
        longitude=longitude,
        altitude=origin.altitude,
        horizontal_accuracy=origin.horizontal_accuracy,
    )


def bearing_to_compass(bearing: float) -> str:
    """Convert a bearing to a 16-point compass label."""
    index = int((normalize_angle(bearing) + 11.25) // 22.5) % 16
    return _COMPASS_POINTS[index]


__all__ = [
    "EARTH_RADIUS_METERS",
    "LOCAL_UNITS_PER_METER",
    "GeoPosition",
    "bearing_degrees",
    "bearing_to_compass",
    "destination",
    "distance_meters",
    "normalize_angle",
    "signed_angle_difference",
]
