"""
Quest progression controller.

Owns the ordered waypoint list and the single active waypoint, detects
arrivals, advances to the next unvisited waypoint and reports completion.
All state changes happen inside ``tick()``, which the host calls once per
frame, or inside the explicit registration/selection calls.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from PySide6.QtCore import QObject, Signal

from logger import LogCategory, LoggableMixin
from user_position import UserPositionTracker
from waypoint import Waypoint, WaypointDefinition, WaypointRegistrationError


class QuestStatus(Enum):
    """Progress of the quest as a whole."""
    LOCATION_NOT_SELECTED = "Location Not Selected"
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    SUCCEEDED = "Succeeded"


class QuestController(QObject, LoggableMixin):
    """Sequential quest state machine.

    Events:
        navigation_started(waypoint or None)
        arrived_at_place(waypoint)
        places_updated()
        all_places_visited()
    """
    navigation_started = Signal(object)
    arrived_at_place = Signal(object)
    places_updated = Signal()
    all_places_visited = Signal()

    def __init__(self, user_position: UserPositionTracker):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self._user_position = user_position
        self._places: List[Waypoint] = []
        self._active: Optional[Waypoint] = None
        self._status = QuestStatus.NOT_STARTED
        # Last visited value seen by the consistency sweep, per waypoint id
        self._observed: Dict[str, bool] = {}
        # Visits confirmed through the sequential path or the sweep
        self._confirmed: Dict[str, bool] = {}
        self._emitted_all_visited = False
        self._arrived_at_active = False
        self._announced: Set[str] = set()
        self._tick_count = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def places(self) -> Tuple[Waypoint, ...]:
        return tuple(self._places)

    @property
    def status(self) -> QuestStatus:
        return self._status

    @property
    def active_waypoint(self) -> Optional[Waypoint]:
        return self._active

    @property
    def user_position(self) -> UserPositionTracker:
        return self._user_position

    @property
    def has_arrived_at_active(self) -> bool:
        return self._arrived_at_active

    def index_of(self, waypoint: Optional[Waypoint]) -> int:
        """Index of ``waypoint`` in quest order, -1 when not registered."""
        for index, place in enumerate(self._places):
            if place is waypoint:
                return index
        return -1

    def get_waypoint(self, waypoint_id: str) -> Optional[Waypoint]:
        for place in self._places:
            if place.id == waypoint_id:
                return place
        return None

    def _contains(self, waypoint: Waypoint) -> bool:
        return self.index_of(waypoint) >= 0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def add_waypoint(self, waypoint: Waypoint) -> None:
        """Append ``waypoint`` to the quest; adding it twice is ignored."""
        if waypoint is None:
            raise WaypointRegistrationError("Cannot register a null waypoint")
        if self._contains(waypoint):
            self.log_debug(
                "Attempted to add waypoint already present in the quest. Ignored.",
                category=LogCategory.QUEST,
                waypoint=waypoint.name,
            )
            return
        self._places.append(waypoint)
        self._observed[waypoint.id] = False
        self._confirmed[waypoint.id] = False
        self._emitted_all_visited = False
        if self._status is QuestStatus.SUCCEEDED:
            self._status = QuestStatus.LOCATION_NOT_SELECTED
        self.log_info(
            "Waypoint registered",
            category=LogCategory.QUEST,
            waypoint=waypoint.name,
            index=len(self._places) - 1,
            radius_m=waypoint.activation_radius_m,
        )
        self.places_updated.emit()

    def register(self, definition: WaypointDefinition) -> Optional[Waypoint]:
        """Build a waypoint from an authored definition and add it.

        Inactive definitions are skipped and return ``None``. Invalid
        definitions raise ``WaypointRegistrationError`` and leave the quest
        untouched.
        """
        if not definition.active:
            self.log_debug("Skipping inactive waypoint definition", label=definition.label)
            return None
        waypoint = definition.build(self._user_position)
        self.add_waypoint(waypoint)
        return waypoint

    def register_all(self, definitions: Iterable[WaypointDefinition]) -> List[Waypoint]:
        """Validate every definition first, then register them in order."""
        definitions = [definition for definition in definitions if definition.active]
        waypoints = [definition.build(self._user_position) for definition in definitions]
        for waypoint in waypoints:
            self.add_waypoint(waypoint)
        return waypoints

    def remove_waypoint(self, waypoint: Waypoint) -> bool:
        """Remove ``waypoint``; returns False when it was not registered."""
        index = self.index_of(waypoint)
        if index < 0:
            return False
        del self._places[index]
        self._observed.pop(waypoint.id, None)
        self._confirmed.pop(waypoint.id, None)
        self.log_info("Waypoint removed", category=LogCategory.QUEST, waypoint=waypoint.name)
        if self._active is waypoint:
            self.stop()
        if not self._places:
            self._status = QuestStatus.NOT_STARTED
            self._emitted_all_visited = False
        self.places_updated.emit()
        return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def select_active(self, waypoint: Optional[Waypoint]) -> None:
        """Make ``waypoint`` the navigation target, or stop with ``None``."""
        if waypoint is self._active:
            return
        if waypoint is not None and not self._contains(waypoint):
            self.add_waypoint(waypoint)
        self._status = QuestStatus.IN_PROGRESS if waypoint is not None else QuestStatus.LOCATION_NOT_SELECTED
        self._active = waypoint
        self._arrived_at_active = False
        self.log_user_action(
            "navigate_to" if waypoint is not None else "stop_navigation",
            {"waypoint": waypoint.name if waypoint is not None else None},
        )
        self.navigation_started.emit(waypoint)

    def stop(self) -> None:
        self.select_active(None)

    def start_quest(self) -> Optional[Waypoint]:
        """Navigate to the first unvisited waypoint, if any."""
        for place in self._places:
            if not place.visited:
                self.select_active(place)
                return place
        return None

    def _announce_arrival(self, waypoint: Waypoint) -> None:
        # One arrived_at_place per waypoint per tick
        if waypoint.id in self._announced:
            return
        self._announced.add(waypoint.id)
        self.arrived_at_place.emit(waypoint)

    def _previous_visited(self, index: int) -> bool:
        return index == 0 or self._places[index - 1].visited

    # ------------------------------------------------------------------
    # Per-frame evaluation
    # ------------------------------------------------------------------
    def tick(self) -> None:
        """Run one evaluation pass. Never raises."""
        self._tick_count += 1
        self._announced.clear()
        try:
            self._evaluate_active()
            self._sweep_consistency()
            self._check_completion()
        except Exception as exc:
            self.log_error("Quest evaluation failed; progress held for this tick",
                           exception=exc, category=LogCategory.QUEST, tick=self._tick_count)

    def _evaluate_active(self) -> None:
        active = self._active
        if active is None:
            return
        index = self.index_of(active)
        distance = self._user_position.distance_to(active)
        if (
            distance is not None
            and distance <= active.activation_radius_m
            and self._previous_visited(index)
            and not active.visited
        ):
            active.mark_visited()
            self._arrived_at_active = True
            self.log_quest_event(
                f"Arrived at {active.name}",
                waypoint=active.name,
                index=index,
                distance_m=round(distance, 2),
            )
            self._announce_arrival(active)

        if not active.visited:
            return
        self._announce_arrival(active)
        self._arrived_at_active = True
        next_place = None
        for place in self._places[index + 1:]:
            if not place.visited:
                next_place = place
                break
        if next_place is not None:
            self.log_debug("Advancing to next waypoint", category=LogCategory.QUEST, waypoint=next_place.name)
            self.select_active(next_place)
        else:
            self._active = None
            self._status = QuestStatus.SUCCEEDED
            self.log_quest_event("Final waypoint reached", waypoint=active.name)

    def _sweep_consistency(self) -> None:
        for index, place in enumerate(self._places):
            observed = self._observed.get(place.id, False)
            if place.visited == observed:
                continue
            if not place.visited:
                self._observed[place.id] = False
                self._confirmed[place.id] = False
                continue
            if self._previous_visited(index):
                self._observed[place.id] = True
                self._confirmed[place.id] = True
                self._announce_arrival(place)
            else:
                # A later waypoint cannot be visited before its predecessor
                place.visited = False
                self.log_warning(
                    "Out-of-order arrival reverted",
                    category=LogCategory.QUEST,
                    waypoint=place.name,
                    index=index,
                )

    def _all_visited(self) -> bool:
        return bool(self._places) and all(place.visited for place in self._places)

    def _check_completion(self) -> None:
        # Reverting an out-of-order final waypoint undoes its success
        if self._status is QuestStatus.SUCCEEDED and not self._all_visited():
            self._status = QuestStatus.LOCATION_NOT_SELECTED
            self.log_warning("Quest no longer complete", category=LogCategory.QUEST,
                             total=len(self._places))
        if self._emitted_all_visited or not self._confirmed:
            return
        if all(self._confirmed.get(place.id, False) for place in self._places):
            self._emitted_all_visited = True
            self._active = None
            self._status = QuestStatus.SUCCEEDED
            self.log_quest_event("All waypoints visited", total=len(self._places))
            self.all_places_visited.emit()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def progress_summary(self) -> Dict[str, Any]:
        visited = sum(1 for place in self._places if place.visited)
        return {
            "status": self._status.value,
            "total": len(self._places),
            "visited": visited,
            "remaining": len(self._places) - visited,
            "active": self._active.name if self._active is not None else None,
            "visited_names": [place.name for place in self._places if place.visited],
            "ticks": self._tick_count,
        }


__all__ = ["QuestController", "QuestStatus"]
