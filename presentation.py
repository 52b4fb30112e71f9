"""
Presentation adapters for GPS Quest.

Each adapter listens to the quest controller on its own and keeps the state a
renderer needs: arrow orientation, minimap pin colors and 3D marker
animation keys. Rendering itself happens elsewhere. Adapters keep waypoint
ids rather than waypoint objects, so a removed waypoint simply stops
resolving.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from PySide6.QtCore import QObject, Signal

from geo_math import EARTH_RADIUS_METERS, normalize_angle, signed_angle_difference
from local_frame import Vec3
from logger import LogCategory, LoggableMixin
from quest_controller import QuestController
from user_position import UserPositionStatus
from waypoint import Waypoint

Color = Tuple[float, float, float, float]

DEFAULT_PIN_COLOR: Color = (1.0, 1.0, 1.0, 1.0)
HIGHLIGHT_PIN_COLOR: Color = (1.0, 0.82, 0.0, 1.0)
SELECTED_PIN_COLOR: Color = (0.82, 1.0, 0.0, 1.0)
VISITED_PIN_COLOR: Color = (0.0, 0.8, 0.0, 1.0)

ANIMATION_SPAWN = "onSpawn"
ANIMATION_VISITED = "onVisited"
ANIMATION_PASSED = "onPassed"

FEET_PER_METER = 3.28084
FEET_PER_MILE = 5280.0


class MeasurementSystem(Enum):
    """Units used for distance labels."""
    METRIC = "metric"
    US = "us"


def format_distance(distance: Optional[float], system: MeasurementSystem = MeasurementSystem.METRIC) -> str:
    """Human readable distance, empty when the distance is unknown."""
    if distance is None:
        return ""
    if system is MeasurementSystem.METRIC:
        if distance < 1000:
            return f"{distance:.0f}m"
        return f"{distance / 1000:.1f}km"
    feet = distance * FEET_PER_METER
    if feet < FEET_PER_MILE:
        return f"{feet:.0f}ft"
    return f"{feet / FEET_PER_MILE:.1f}mi"


def accuracy_circle_scale(accuracy: float, zoom_level: float, minimum_accuracy: float = 10.0,
                          base_scale: float = 3.0) -> float:
    """Scale of the minimap accuracy circle for a horizontal accuracy in meters."""
    zoom_factor = 1.0 / (EARTH_RADIUS_METERS * 0.5 ** zoom_level)
    return zoom_factor * max(minimum_accuracy, accuracy) * base_scale * 2


# ----------------------------------------------------------------------
# Arrow
# ----------------------------------------------------------------------
class ArrowAdapter(QObject, LoggableMixin):
    """Orientation state of the direction arrow."""

    def __init__(
        self,
        controller: QuestController,
        *,
        here_radius_m: float = 3.0,
        directional_tip_deg: float = 20.0,
        measurement_system: MeasurementSystem = MeasurementSystem.METRIC,
        turn_rate: float = 10.0,
    ):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self._controller = controller
        self._user_position = controller.user_position
        self.here_radius_m = here_radius_m
        self.directional_tip_deg = directional_tip_deg
        self.measurement_system = measurement_system
        self.turn_rate = turn_rate
        self._target_id: Optional[str] = None
        self.visible = False
        self.target_yaw: Optional[float] = None
        self.current_yaw = 0.0
        controller.navigation_started.connect(self.on_navigation_started)
        controller.arrived_at_place.connect(self.on_arrived_at_place)

    @property
    def target(self) -> Optional[Waypoint]:
        if self._target_id is None:
            return None
        return self._controller.get_waypoint(self._target_id)

    def _reset(self):
        self.target_yaw = None

    def _select(self, waypoint: Optional[Waypoint]):
        self._reset()
        self._target_id = waypoint.id if waypoint is not None else None
        self.visible = waypoint is not None

    def on_navigation_started(self, waypoint: Optional[Waypoint]):
        self._select(waypoint)

    def on_arrived_at_place(self, waypoint: Waypoint):
        current = self.target
        if current is not None and current is not waypoint:
            return
        places = self._controller.places
        start = self._controller.index_of(waypoint) + 1
        next_place = next((place for place in places[start:] if not place.visited), None)
        if next_place is not None:
            self._select(next_place)
        else:
            self._select(None)
            self.log_debug("All waypoints reached, arrow hidden", category=LogCategory.PRESENTATION)

    def _orientation_target(self) -> Optional[Waypoint]:
        # Before anything is selected the arrow points at the first waypoint
        target = self.target
        if target is None and self._target_id is None and self._controller.places:
            target = self._controller.places[0]
        return target

    def update(self, delta_time: float) -> None:
        """Recompute the target yaw and turn the arrow towards it."""
        target = self._orientation_target()
        if target is None:
            return
        angle = self._user_position.bearing_to(target, relative=True)
        if angle is None or target.get_relative_position() is None:
            return
        self.target_yaw = angle
        if not self.visible or self.target is None:
            return
        factor = min(1.0, max(0.0, delta_time * self.turn_rate))
        turn = signed_angle_difference(self.target_yaw, self.current_yaw)
        self.current_yaw = normalize_angle(self.current_yaw + turn * factor)

    @property
    def distance_m(self) -> Optional[float]:
        target = self.target
        if target is None:
            return None
        return self._user_position.distance_to(target)

    @property
    def distance_text(self) -> str:
        return format_distance(self.distance_m, self.measurement_system)

    @property
    def is_here(self) -> bool:
        distance = self.distance_m
        return distance is not None and distance <= self.here_radius_m


# ----------------------------------------------------------------------
# Minimap pins
# ----------------------------------------------------------------------
@dataclass
class PinState:
    """Display state of one minimap pin."""
    waypoint_id: str
    label: str
    visited: bool = False
    next_active: bool = False
    selected: bool = False
    is_user: bool = False

    @property
    def color(self) -> Color:
        if self.visited:
            return VISITED_PIN_COLOR
        if self.selected:
            return SELECTED_PIN_COLOR
        return DEFAULT_PIN_COLOR

    @property
    def outline_color(self) -> Optional[Color]:
        return HIGHLIGHT_PIN_COLOR if self.next_active and not self.visited else None

    @property
    def visible(self) -> bool:
        return self.visited or self.next_active or self.is_user


class MinimapPinAdapter(QObject, LoggableMixin):
    """Pin states for the rotating minimap."""
    pin_visited = Signal(str)

    def __init__(self, controller: QuestController, *, zoom_level: float = 16,
                 minimum_accuracy_m: float = 10.0):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self._controller = controller
        self._user_position = controller.user_position
        self.zoom_level = zoom_level
        self.minimum_accuracy_m = minimum_accuracy_m
        self._pins: Dict[str, PinState] = {}
        self.accuracy_scale: Optional[float] = None
        self.has_heading = False
        controller.places_updated.connect(self.sync_pins)
        controller.navigation_started.connect(self.on_navigation_started)
        controller.arrived_at_place.connect(self.on_arrived_at_place)
        self._user_position.user_position_updated.connect(self.update_accuracy)
        self.sync_pins()

    @property
    def pins(self) -> List[PinState]:
        return [self._pins[place.id] for place in self._controller.places if place.id in self._pins]

    def pin_for(self, waypoint_id: str) -> Optional[PinState]:
        return self._pins.get(waypoint_id)

    def sync_pins(self):
        """Create pins for new waypoints and drop pins of removed ones."""
        current_ids = set()
        for place in self._controller.places:
            current_ids.add(place.id)
            if place.id not in self._pins:
                self._pins[place.id] = PinState(place.id, place.name)
        for stale in set(self._pins) - current_ids:
            del self._pins[stale]
        self.refresh()

    def on_navigation_started(self, waypoint: Optional[Waypoint]):
        selected_id = waypoint.id if waypoint is not None else None
        for pin in self._pins.values():
            pin.selected = pin.waypoint_id == selected_id
            pin.next_active = pin.selected

    def on_arrived_at_place(self, waypoint: Waypoint):
        self._set_visited(waypoint.id, True)

    def refresh(self):
        """Follow the waypoints' visited flags, including reverted ones."""
        for place in self._controller.places:
            self._set_visited(place.id, place.visited)

    def _set_visited(self, waypoint_id: str, visited: bool):
        pin = self._pins.get(waypoint_id)
        if pin is None or pin.visited == visited:
            return
        pin.visited = visited
        if visited:
            self.pin_visited.emit(waypoint_id)

    def update_accuracy(self):
        geo = self._user_position.get_geo_position()
        if geo is None or geo.horizontal_accuracy is None:
            return
        self.accuracy_scale = accuracy_circle_scale(
            geo.horizontal_accuracy, self.zoom_level, self.minimum_accuracy_m
        )
        self.has_heading = self._user_position.status is UserPositionStatus.GEO_LOCALIZATION_AVAILABLE


# ----------------------------------------------------------------------
# 3D markers
# ----------------------------------------------------------------------
@dataclass
class MarkerState:
    """A spawned 3D marker for one waypoint."""
    waypoint_id: str
    label: str
    appearance: Any
    position: Optional[Vec3] = None
    yaw_degrees: float = 0.0
    status: str = ""
    triggered: List[str] = field(default_factory=list)


class MarkerAdapter(QObject, LoggableMixin):
    """Spawns waypoint markers and decides their animation states."""
    animation_triggered = Signal(str, str)

    def __init__(
        self,
        controller: QuestController,
        *,
        default_appearance: Any = None,
        terminal_appearance: Any = None,
        auto_spawn: bool = True,
        smoothing_factor: float = 0.1,
    ):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self._controller = controller
        self.default_appearance = default_appearance
        self.terminal_appearance = terminal_appearance
        self.auto_spawn = auto_spawn
        self.smoothing_factor = smoothing_factor
        self._markers: Dict[str, MarkerState] = {}
        self.last_visited_index = -1
        controller.places_updated.connect(self.on_places_updated)
        controller.navigation_started.connect(self.on_navigation_started)
        controller.arrived_at_place.connect(self.on_arrived_at_place)

    def marker_for(self, waypoint_id: str) -> Optional[MarkerState]:
        return self._markers.get(waypoint_id)

    @property
    def markers(self) -> List[MarkerState]:
        return [self._markers[place.id] for place in self._controller.places if place.id in self._markers]

    def choose_appearance(self, waypoint: Waypoint) -> Any:
        """Custom token, then the START/FINISH token, then the default."""
        if waypoint.appearance_token is not None:
            return waypoint.appearance_token
        if waypoint.is_terminal and self.terminal_appearance is not None:
            return self.terminal_appearance
        return self.default_appearance

    def on_places_updated(self):
        current_ids = {place.id for place in self._controller.places}
        for stale in set(self._markers) - current_ids:
            del self._markers[stale]
        self.last_visited_index = max(
            (index for index, place in enumerate(self._controller.places) if place.visited),
            default=-1,
        )
        if self.auto_spawn:
            self.spawn_all()

    def spawn_all(self):
        if self.default_appearance is None:
            return
        for place in self._controller.places:
            if place.id in self._markers:
                continue
            marker = MarkerState(
                waypoint_id=place.id,
                label=place.name,
                appearance=self.choose_appearance(place),
                position=place.get_relative_position(),
                yaw_degrees=place.get_orientation(),
                status=place.name,
            )
            self._markers[place.id] = marker
            self.log_debug("Marker spawned", category=LogCategory.PRESENTATION, waypoint=place.name)

    def on_navigation_started(self, waypoint: Optional[Waypoint]):
        self.update()

    def on_arrived_at_place(self, waypoint: Waypoint):
        places = self._controller.places
        index = self._controller.index_of(waypoint)
        if index < 0 or index <= self.last_visited_index:
            return
        if 0 <= self.last_visited_index < len(places):
            self._trigger(places[self.last_visited_index].id, ANIMATION_PASSED)
        if index + 1 < len(places):
            self._trigger(places[index + 1].id, ANIMATION_SPAWN)
            self._trigger(waypoint.id, ANIMATION_VISITED)
        else:
            self._trigger(waypoint.id, ANIMATION_PASSED)
        self.last_visited_index = index

    def _status_for(self, index: int, place: Waypoint, total: int) -> str:
        if index < self.last_visited_index:
            return ANIMATION_PASSED
        if index == self.last_visited_index:
            return ANIMATION_PASSED if index == total - 1 else ANIMATION_VISITED
        if index == self.last_visited_index + 1:
            return ANIMATION_SPAWN
        return place.name

    def _trigger(self, waypoint_id: str, key: str):
        marker = self._markers.get(waypoint_id)
        if marker is None or marker.status == key:
            return
        marker.status = key
        if key in (ANIMATION_SPAWN, ANIMATION_VISITED, ANIMATION_PASSED):
            marker.triggered.append(key)
            self.animation_triggered.emit(waypoint_id, key)

    def update(self):
        """Follow projected positions and keep animation states current."""
        places = self._controller.places
        for index, place in enumerate(places):
            marker = self._markers.get(place.id)
            if marker is None:
                continue
            relative = place.get_relative_position()
            if relative is not None:
                if marker.position is None:
                    marker.position = relative
                else:
                    marker.position = marker.position.lerp(relative, self.smoothing_factor)
            marker.label = place.name
            self._trigger(place.id, self._status_for(index, place, len(places)))


__all__ = [
    "ANIMATION_PASSED",
    "ANIMATION_SPAWN",
    "ANIMATION_VISITED",
    "ArrowAdapter",
    "MarkerAdapter",
    "MarkerState",
    "MeasurementSystem",
    "MinimapPinAdapter",
    "PinState",
    "accuracy_circle_scale",
    "format_distance",
]
