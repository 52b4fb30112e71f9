"""Shared fixtures for the GPS Quest test-suite."""

from __future__ import annotations

import pytest

from geo_math import GeoPosition, destination
from logger import setup_logger

ORIGIN = GeoPosition(47.3769, 8.5417, altitude=400.0)


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path):
    """Keep log files out of the user's home directory."""
    logger = setup_logger(log_dir=tmp_path / "logs")
    yield logger
    logger.close()


@pytest.fixture
def at():
    """Position ``meters`` away from ``ORIGIN`` along ``bearing``."""

    def _at(bearing: float, meters: float, altitude: float = ORIGIN.altitude) -> GeoPosition:
        position = destination(ORIGIN, bearing, meters)
        return GeoPosition(position.latitude, position.longitude, altitude)

    return _at


@pytest.fixture
def tracker():
    from user_position import UserPositionTracker

    return UserPositionTracker()


@pytest.fixture
def move_to(tracker):
    """Feed one GPS reading for ``position`` into the tracker."""
    from user_position import GPSReading

    def _move(position: GeoPosition, heading=None, accuracy=None) -> bool:
        reading = GPSReading(
            latitude=position.latitude,
            longitude=position.longitude,
            altitude=position.altitude,
            horizontal_accuracy=accuracy,
            heading=heading,
        )
        return tracker.on_geo_update(reading)

    return _move


@pytest.fixture
def make_waypoint(tracker):
    from waypoint import Waypoint

    def _make(name: str, position: GeoPosition, radius: float = 10.0, **kwargs) -> Waypoint:
        return Waypoint(name, position, tracker, activation_radius_m=radius, **kwargs)

    return _make


@pytest.fixture
def controller(tracker):
    from quest_controller import QuestController

    return QuestController(tracker)
