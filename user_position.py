"""
User position tracking for GPS Quest.
Turns the device GPS feed into the current geo position, a heading and an
anchored local frame that every waypoint projection is relative to.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from PySide6.QtCore import QObject, Signal

from geo_math import GeoPosition, bearing_degrees, distance_meters, normalize_angle
from local_frame import LocalTransform, Vec3
from logger import LogCategory, LoggableMixin

if TYPE_CHECKING:
    from waypoint import Waypoint


@dataclass(frozen=True)
class GPSReading:
    """One timestamped sample from the device location service."""

    latitude: float
    longitude: float
    altitude: float = 0.0
    horizontal_accuracy: Optional[float] = None
    timestamp: Optional[float] = None
    heading: Optional[float] = None

    @classmethod
    def from_position(cls, position: GeoPosition, *, heading: Optional[float] = None,
                      timestamp: Optional[float] = None) -> "GPSReading":
        return cls(
            latitude=position.latitude,
            longitude=position.longitude,
            altitude=position.altitude,
            horizontal_accuracy=position.horizontal_accuracy,
            timestamp=timestamp,
            heading=heading,
        )

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.latitude) and math.isfinite(self.longitude)

    def to_geo_position(self) -> GeoPosition:
        altitude = self.altitude if self.altitude is not None and math.isfinite(self.altitude) else 0.0
        return GeoPosition(self.latitude, self.longitude, altitude, self.horizontal_accuracy)


class UserPositionStatus(Enum):
    """How much of the user's location is currently known."""
    UNKNOWN = "Unknown"
    GEO_POSITION_ONLY = "Geo Position Only"
    GEO_LOCALIZATION_AVAILABLE = "Geo Localization Available"


class UserPositionTracker(QObject, LoggableMixin):
    """Live user position fed by GPS readings and a heading signal."""
    user_position_updated = Signal()

    def __init__(self):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self._geo_position: Optional[GeoPosition] = None
        self._heading: Optional[float] = None
        self._device_pose = LocalTransform.identity()
        self._anchor: Optional[LocalTransform] = None
        self._last_timestamp: Optional[float] = None
        self._update_count = 0

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def on_geo_update(self, reading: GPSReading) -> bool:
        """Store a new reading. Returns False when the reading was rejected."""
        if not reading.is_valid:
            self.log_warning(
                "Rejected GPS reading with invalid coordinates",
                category=LogCategory.GPS,
                latitude=reading.latitude,
                longitude=reading.longitude,
            )
            return False
        self._geo_position = reading.to_geo_position()
        self._last_timestamp = reading.timestamp if reading.timestamp is not None else datetime.now().timestamp()
        self._update_count += 1
        if reading.heading is not None:
            self.set_heading(reading.heading)
        if self._anchor is None:
            self._anchor = self._device_pose
            self.log_info(
                "Anchor frame established at first GPS fix",
                category=LogCategory.GPS,
                latitude=reading.latitude,
                longitude=reading.longitude,
                anchor=self._anchor.position.as_tuple(),
            )
        self._logger.log_gps_event(
            "position_update",
            latitude=reading.latitude,
            longitude=reading.longitude,
            accuracy=reading.horizontal_accuracy,
        )
        self.user_position_updated.emit()
        return True

    def set_heading(self, heading: Optional[float]) -> None:
        """Update the device heading; ``None`` marks localization as lost."""
        if heading is None or not math.isfinite(heading):
            if self._heading is not None:
                self.log_debug("Heading unavailable", category=LogCategory.GPS)
            self._heading = None
            return
        self._heading = normalize_angle(heading)

    def set_device_pose(self, position: Vec3, yaw_degrees: float = 0.0) -> None:
        """Current camera pose; it becomes the anchor at the first fix."""
        self._device_pose = LocalTransform(position, yaw_degrees)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def status(self) -> UserPositionStatus:
        if self._geo_position is None:
            return UserPositionStatus.UNKNOWN
        if self._heading is None:
            return UserPositionStatus.GEO_POSITION_ONLY
        return UserPositionStatus.GEO_LOCALIZATION_AVAILABLE

    @property
    def gps_active(self) -> bool:
        return self._update_count > 0

    @property
    def has_anchor(self) -> bool:
        return self._anchor is not None

    @property
    def last_update_timestamp(self) -> Optional[float]:
        return self._last_timestamp

    def get_geo_position(self) -> Optional[GeoPosition]:
        return self._geo_position

    def get_bearing(self) -> float:
        """Device heading in degrees, 0 when no heading is available."""
        return self._heading if self._heading is not None else 0.0

    def get_relative_transform(self) -> LocalTransform:
        """The anchor frame, or the live device pose before the first fix."""
        return self._anchor if self._anchor is not None else self._device_pose

    def distance_to(self, waypoint: "Waypoint") -> Optional[float]:
        if self._geo_position is None:
            return None
        return distance_meters(self._geo_position, waypoint.get_geo_position())

    def bearing_to(self, waypoint: "Waypoint", relative: bool = False) -> Optional[float]:
        """Compass bearing to ``waypoint``.

        Without a heading reference the result would only mislead the arrow,
        so ``None`` is returned until localization is available. With
        ``relative`` the user's own heading is subtracted.
        """
        if self.status is not UserPositionStatus.GEO_LOCALIZATION_AVAILABLE:
            self.log_trace("Bearing requested without localization", status=self.status.value)
            return None
        bearing = bearing_degrees(self._geo_position, waypoint.get_geo_position())
        if relative:
            bearing = normalize_angle(bearing - self.get_bearing())
        return bearing


__all__ = ["GPSReading", "UserPositionStatus", "UserPositionTracker"]
