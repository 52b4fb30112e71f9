"""
GPS providers for GPS Quest.
Providers push ``GPSReading`` samples through a Qt signal; the quest session
forwards them to the user position tracker.
"""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from PySide6.QtCore import QObject, QTimer, Signal

from geo_math import GeoPosition
from logger import LogCategory, LoggableMixin
from user_position import GPSReading

FeedSource = Union[
    Sequence[GPSReading],
    Sequence[GeoPosition],
    Sequence[Mapping[str, Any]],
    Mapping[str, Any],
    Path,
    str,
]


class BaseGPSProvider(QObject, LoggableMixin):
    """Base class for GPS providers with common lifecycle management."""
    position_updated = Signal(object)  # GPSReading

    def __init__(self):
        QObject.__init__(self)
        LoggableMixin.__init__(self)
        self._active = False

    @property
    def is_active(self) -> bool:
        """Return whether the provider is currently emitting updates."""
        return self._active

    def start(self):
        """Start emitting periodic GPS updates."""
        if not self._active:
            self._active = True
            self._on_start()

    def stop(self):
        """Stop emitting GPS updates."""
        if self._active:
            self._active = False
            self._on_stop()

    def request_snapshot(self) -> Optional[GPSReading]:
        """Emit a single reading without starting periodic updates."""
        reading = self._next_reading()
        if reading is not None:
            self.position_updated.emit(reading)
        return reading

    def _on_start(self):
        raise NotImplementedError

    def _on_stop(self):
        raise NotImplementedError

    def _next_reading(self) -> Optional[GPSReading]:
        raise NotImplementedError


class SimulatedGPSProvider(BaseGPSProvider):
    """GPS provider that replays deterministic samples, e.g. a recorded walk."""

    def __init__(
        self,
        samples: Sequence[GPSReading],
        interval_ms: Optional[int] = 1000,
        loop: bool = False,
    ):
        super().__init__()
        self._samples = list(samples)
        self._interval_ms = interval_ms
        self._loop = loop
        self._index = 0
        self._timer = None if interval_ms is None else QTimer()
        if self._timer is not None:
            self._timer.setInterval(interval_ms)
            self._timer.timeout.connect(self._emit_next)

    @property
    def remaining(self) -> int:
        return max(0, len(self._samples) - self._index)

    def _on_start(self):
        self._index = 0 if self._index >= len(self._samples) else self._index
        if self._timer is not None and self._samples:
            self._timer.start()
            self.log_info(
                "Simulated GPS provider started",
                category=LogCategory.GPS,
                samples=len(self._samples),
                interval_ms=self._interval_ms,
            )
        elif not self._samples:
            self.log_warning("Simulated GPS provider started without samples", category=LogCategory.GPS)

    def _on_stop(self):
        if self._timer is not None:
            self._timer.stop()
        if self._samples:
            self.log_info("Simulated GPS provider stopped after replay", category=LogCategory.GPS)

    def manual_step(self):
        """Emit the next sample immediately (useful for tests and replays)."""
        if self.is_active:
            self._emit_next()

    def _next_reading(self) -> Optional[GPSReading]:
        if not self._samples:
            return None
        if self._index >= len(self._samples):
            if not self._loop:
                return None
            self._index = 0
        sample = self._samples[self._index]
        self._index += 1
        if sample.timestamp is None:
            sample = GPSReading(
                latitude=sample.latitude,
                longitude=sample.longitude,
                altitude=sample.altitude,
                horizontal_accuracy=sample.horizontal_accuracy,
                timestamp=datetime.now().timestamp(),
                heading=sample.heading,
            )
        return sample

    def _emit_next(self):
        reading = self._next_reading()
        if reading is None:
            self.stop()
            return
        self.position_updated.emit(reading)
        if not self._loop and self._index >= len(self._samples):
            # Stop automatically after the final sample has been emitted.
            self.stop()

    @staticmethod
    def from_feed(
        feed_source: FeedSource,
        interval_ms: Optional[int] = 1000,
        loop: bool = False,
    ) -> "SimulatedGPSProvider":
        """Create a simulated provider from readings, positions, dicts or a JSON file."""
        readings = SimulatedGPSProvider._normalize_feed(feed_source)
        return SimulatedGPSProvider(readings, interval_ms=interval_ms, loop=loop)

    @staticmethod
    def _normalize_feed(feed_source: FeedSource) -> List[GPSReading]:
        if isinstance(feed_source, (str, Path)):
            path = Path(feed_source)
            data = json.loads(path.read_text(encoding="utf-8"))
            return SimulatedGPSProvider._normalize_feed(data)
        if isinstance(feed_source, Mapping):
            if "points" in feed_source:
                return SimulatedGPSProvider._normalize_feed(feed_source["points"])
            raise TypeError("GPS track object must contain a 'points' list")
        readings: List[GPSReading] = []
        for entry in feed_source:
            if isinstance(entry, GPSReading):
                readings.append(entry)
            elif isinstance(entry, GeoPosition):
                readings.append(GPSReading.from_position(entry))
            elif isinstance(entry, Mapping):
                readings.append(_reading_from_mapping(entry))
            else:
                raise TypeError(
                    "Unsupported feed entry type for simulated GPS provider: "
                    f"{type(entry)!r}"
                )
        return readings


def _reading_from_mapping(entry: Mapping[str, Any]) -> GPSReading:
    if "coordinate" in entry:
        merged: Dict[str, Any] = dict(entry["coordinate"])
        if "heading" in entry:
            merged.setdefault("heading", entry["heading"])
        entry = merged
    if "latitude" not in entry or "longitude" not in entry:
        raise TypeError("Unsupported dictionary structure in simulated GPS feed")
    accuracy = entry.get("horizontal_accuracy", entry.get("accuracy"))
    heading = entry.get("heading")
    timestamp = entry.get("timestamp")
    return GPSReading(
        latitude=float(entry["latitude"]),
        longitude=float(entry["longitude"]),
        altitude=float(entry.get("altitude") or 0.0),
        horizontal_accuracy=None if accuracy is None else float(accuracy),
        timestamp=None if timestamp is None else float(timestamp),
        heading=None if heading is None else float(heading),
    )


__all__ = ["BaseGPSProvider", "SimulatedGPSProvider"]
