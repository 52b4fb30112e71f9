"""
Quest waypoints.

A waypoint is one stop of a quest: a target geo position, an activation
radius and a visited flag. It projects itself into the user's anchored local
frame so markers can be placed in AR space.

Labels containing "start", "finish" or "end" (case-insensitive) are treated
as terminal markers by the presentation layer when choosing an appearance.
This is a naming convention only; the quest controller does not enforce it.
"""
from __future__ import annotations

import json
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Union

from geo_math import (
    LOCAL_UNITS_PER_METER,
    GeoPosition,
    bearing_degrees,
    distance_meters,
)
from local_frame import Vec3, rotate_about_up

if TYPE_CHECKING:
    from user_position import UserPositionTracker

DEFAULT_ACTIVATION_RADIUS_M = 10.0
TERMINAL_LABEL_KEYWORDS = ("start", "finish", "end")


class QuestError(Exception):
    """Base class for quest errors."""


class WaypointRegistrationError(QuestError, ValueError):
    """Raised when a waypoint cannot be registered with a quest."""


def is_terminal_label(name: Optional[str]) -> bool:
    """Return True when ``name`` follows the START/FINISH naming convention."""
    if not name:
        return False
    label = name.lower()
    return any(keyword in label for keyword in TERMINAL_LABEL_KEYWORDS)


def parse_coordinate(value: Any, field_name: str, limit: float) -> float:
    """Parse a latitude/longitude given as text or number.

    Blank or malformed values raise instead of defaulting to zero.
    """
    if isinstance(value, bool) or value is None:
        raise WaypointRegistrationError(f"{field_name} is required, got {value!r}")
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise WaypointRegistrationError(
            f"{field_name} must be a decimal number of degrees, got {value!r}"
        ) from exc
    if not math.isfinite(parsed):
        raise WaypointRegistrationError(f"{field_name} must be finite, got {value!r}")
    if abs(parsed) > limit:
        raise WaypointRegistrationError(
            f"{field_name} must be between -{limit:g} and {limit:g}, got {parsed:g}"
        )
    return parsed


@dataclass(eq=False)
class Waypoint:
    """One quest stop tied to a GPS coordinate."""
    name: str
    target: GeoPosition
    user_position: "UserPositionTracker" = field(repr=False)
    activation_radius_m: float = DEFAULT_ACTIVATION_RADIUS_M
    appearance_token: Any = None
    visited: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    visit_count: int = 0
    last_visited: Optional[float] = None

    def __post_init__(self):
        if isinstance(self.activation_radius_m, bool) or not isinstance(self.activation_radius_m, (int, float)):
            raise WaypointRegistrationError(
                f"Activation radius for {self.name!r} must be a number"
            )
        if not math.isfinite(self.activation_radius_m) or self.activation_radius_m <= 0:
            raise WaypointRegistrationError(
                f"Activation radius for {self.name!r} must be greater than zero, "
                f"got {self.activation_radius_m!r}"
            )
        self.activation_radius_m = float(self.activation_radius_m)

    @property
    def is_terminal(self) -> bool:
        return is_terminal_label(self.name)

    def mark_visited(self):
        """Mark waypoint as visited."""
        self.visited = True
        self.visit_count += 1
        self.last_visited = datetime.now().timestamp()

    def get_geo_position(self) -> GeoPosition:
        return self.target

    def request_new_geo_position(self, position: GeoPosition) -> bool:
        """Move the target. GPS waypoints always accept the move."""
        self.target = position
        return True

    def get_orientation(self) -> float:
        """Yaw of the marker in the local frame; GPS waypoints are not oriented."""
        return 0.0

    def distance_to_user(self) -> Optional[float]:
        return self.user_position.distance_to(self)

    def check_arrival(self) -> bool:
        """True while the user is strictly inside the activation radius."""
        distance = self.distance_to_user()
        return distance is not None and distance < self.activation_radius_m

    def get_relative_position(self) -> Optional[Vec3]:
        """Project the target into the user's anchored local frame.

        Markers are pinned to the anchor's ground height rather than floating
        at GPS altitude. Returns ``None`` until the user has a GPS fix.
        """
        user_geo = self.user_position.get_geo_position()
        if user_geo is None:
            return None
        anchor = self.user_position.get_relative_transform()
        distance = distance_meters(user_geo, self.target)
        bearing = bearing_degrees(user_geo, self.target) - self.user_position.get_bearing()
        offset = rotate_about_up(anchor.forward, -bearing).scale(distance * LOCAL_UNITS_PER_METER)
        altitude_delta = (self.target.altitude - user_geo.altitude) * LOCAL_UNITS_PER_METER
        projected = anchor.position + offset + Vec3(0.0, altitude_delta, 0.0)
        return projected.with_y(anchor.position.y)


@dataclass
class WaypointDefinition:
    """Externally authored waypoint, coordinates still as text."""
    latitude: str
    longitude: str
    label: str
    active: bool = True
    activation_radius_m: Optional[float] = None
    appearance_token: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WaypointDefinition":
        if not isinstance(data, Mapping):
            raise WaypointRegistrationError(f"Waypoint definition must be an object, got {type(data).__name__}")
        radius = data.get("activationRadiusMeters", data.get("activation_radius_m"))
        return cls(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            label=data.get("label", ""),
            active=bool(data.get("active", True)),
            activation_radius_m=radius,
            appearance_token=data.get("appearanceToken", data.get("appearance_token")),
        )

    def build(self, user_position: "UserPositionTracker") -> Waypoint:
        """Validate the definition and create the waypoint."""
        label = (self.label or "").strip()
        if not label:
            raise WaypointRegistrationError("Waypoint label is required")
        latitude = parse_coordinate(self.latitude, f"Latitude of {label!r}", 90.0)
        longitude = parse_coordinate(self.longitude, f"Longitude of {label!r}", 180.0)
        return Waypoint(
            name=label,
            target=GeoPosition(latitude, longitude),
            user_position=user_position,
            activation_radius_m=(DEFAULT_ACTIVATION_RADIUS_M if self.activation_radius_m is None
                                 else self.activation_radius_m),
            appearance_token=self.appearance_token,
        )


def build_waypoints(definitions: Iterable[WaypointDefinition],
                    user_position: "UserPositionTracker") -> List[Waypoint]:
    """Build every active definition; the first invalid one aborts the batch."""
    return [definition.build(user_position) for definition in definitions if definition.active]


def load_waypoint_definitions(source: Union[Path, str]) -> List[WaypointDefinition]:
    """Read waypoint definitions from a JSON quest file."""
    path = Path(source)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise WaypointRegistrationError(f"Cannot read quest file {path}: {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("waypoints")
    if not isinstance(data, list):
        raise WaypointRegistrationError(
            f"Quest file {path} must contain a list of waypoints"
        )
    return [WaypointDefinition.from_mapping(entry) for entry in data]


__all__ = [
    "DEFAULT_ACTIVATION_RADIUS_M",
    "QuestError",
    "Waypoint",
    "WaypointDefinition",
    "WaypointRegistrationError",
    "build_waypoints",
    "is_terminal_label",
    "load_waypoint_definitions",
    "parse_coordinate",
]
