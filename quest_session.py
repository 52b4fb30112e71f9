"""
Quest session wiring.

Connects a GPS provider, the user position tracker, the quest controller and
the presentation adapters, and drives the per-frame tick with a QTimer.
"""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from PySide6.QtCore import QObject, QTimer

from config_validation import QuestSettings
from gps_provider import BaseGPSProvider
from logger import LogCategory, LoggableMixin
from presentation import ArrowAdapter, MarkerAdapter, MeasurementSystem, MinimapPinAdapter
from quest_controller import QuestController
from user_position import UserPositionTracker
from waypoint import Waypoint, WaypointDefinition, load_waypoint_definitions


class QuestSession(QObject, LoggableMixin):
    """One running quest with all of its collaborators."""

    def __init__(
        self,
        settings: Optional[QuestSettings] = None,
        *,
        default_appearance: Any = None,
        terminal_appearance: Any = None,
    ):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self.settings = settings or QuestSettings()
        self.user_position = UserPositionTracker()
        self.controller = QuestController(self.user_position)
        self.arrow = ArrowAdapter(
            self.controller,
            here_radius_m=self.settings.arrow_here_radius_m,
            directional_tip_deg=self.settings.arrow_directional_tip_deg,
            measurement_system=MeasurementSystem(self.settings.measurement_system),
        )
        self.pins = MinimapPinAdapter(
            self.controller,
            zoom_level=self.settings.minimap_zoom_level,
            minimum_accuracy_m=self.settings.minimum_accuracy_m,
        )
        self.markers = MarkerAdapter(
            self.controller,
            default_appearance=default_appearance,
            terminal_appearance=terminal_appearance,
            auto_spawn=self.settings.auto_spawn_markers,
            smoothing_factor=self.settings.marker_smoothing_factor,
        )
        self._gps_provider: Optional[BaseGPSProvider] = None
        self._tick_timer: Optional[QTimer] = None
        self._running = False

    @property
    def gps_provider(self) -> Optional[BaseGPSProvider]:
        return self._gps_provider

    @property
    def is_running(self) -> bool:
        return self._running

    def set_gps_provider(self, provider: Optional[BaseGPSProvider]):
        """Swap the GPS source feeding the tracker."""
        if provider is self._gps_provider:
            return
        if self._gps_provider is not None:
            try:
                self._gps_provider.position_updated.disconnect(self.user_position.on_geo_update)
            except (TypeError, RuntimeError):
                pass
            self._gps_provider.stop()
        self._gps_provider = provider
        if provider is not None:
            provider.position_updated.connect(self.user_position.on_geo_update)
            self.log_info("GPS provider attached", category=LogCategory.GPS,
                          provider=type(provider).__name__)

    # ------------------------------------------------------------------
    # Waypoints
    # ------------------------------------------------------------------
    def register(self, definitions: Iterable[WaypointDefinition]) -> List[Waypoint]:
        """Register authored waypoints using the configured default radius."""
        prepared = [
            replace(definition, activation_radius_m=self.settings.default_activation_radius_m)
            if definition.activation_radius_m is None else definition
            for definition in definitions
        ]
        return self.controller.register_all(prepared)

    def load_waypoints(self, source: Union[Path, str]) -> List[Waypoint]:
        definitions = load_waypoint_definitions(source)
        waypoints = self.register(definitions)
        self.log_info("Quest file loaded", category=LogCategory.DATA,
                      source=str(source), waypoints=len(waypoints))
        return waypoints

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, use_timer: bool = True) -> Optional[Waypoint]:
        """Start GPS and select the first unvisited waypoint.

        With ``use_timer`` a QTimer calls ``tick()`` every
        ``tick_interval_ms``; otherwise the caller ticks by hand, as the
        headless replay does.
        """
        if self._gps_provider is not None:
            if self.settings.periodic_gps_updates:
                self._gps_provider.start()
            else:
                self._gps_provider.request_snapshot()
        first = self.controller.start_quest()
        if use_timer and self._tick_timer is None:
            self._tick_timer = QTimer()
            self._tick_timer.setInterval(self.settings.tick_interval_ms)
            self._tick_timer.timeout.connect(self._on_tick_timer)
            self._tick_timer.start()
        self._running = True
        self.log_info("Quest session started", category=LogCategory.SYSTEM,
                      waypoints=len(self.controller.places),
                      first=first.name if first is not None else None)
        return first

    def _on_tick_timer(self):
        self.tick(self.settings.tick_interval_ms / 1000.0)

    def tick(self, delta_time: float) -> None:
        """Advance quest logic, then the adapters that mirror it."""
        self.controller.tick()
        self.arrow.update(delta_time)
        self.markers.update()
        self.pins.refresh()

    def stop(self):
        if self._tick_timer is not None:
            self._tick_timer.stop()
            self._tick_timer = None
        if self._gps_provider is not None:
            self._gps_provider.stop()
        if self._running:
            self._running = False
            self.log_info("Quest session stopped", category=LogCategory.SYSTEM,
                          **self.controller.progress_summary())

    def cleanup(self):
        """Stop everything and detach the GPS provider."""
        self.stop()
        self.set_gps_provider(None)


__all__ = ["QuestSession"]
