import json

import pytest

pytest.importorskip("PySide6")

from geo_math import GeoPosition
from gps_provider import SimulatedGPSProvider
from user_position import GPSReading


def test_simulated_provider_manual_step():
    samples = [
        GPSReading(35.0, -83.0, altitude=400.0, horizontal_accuracy=3.0),
        GPSReading(35.0005, -83.0005, altitude=401.0, horizontal_accuracy=3.5),
        GPSReading(35.001, -83.001, altitude=402.0, horizontal_accuracy=4.0),
    ]
    provider = SimulatedGPSProvider(samples, interval_ms=None)
    captured = []
    provider.position_updated.connect(captured.append)
    provider.start()

    for _ in samples:
        provider.manual_step()

    assert [(r.latitude, r.longitude, r.altitude, r.horizontal_accuracy) for r in captured] == [
        (pytest.approx(35.0), pytest.approx(-83.0), pytest.approx(400.0), pytest.approx(3.0)),
        (pytest.approx(35.0005), pytest.approx(-83.0005), pytest.approx(401.0), pytest.approx(3.5)),
        (pytest.approx(35.001), pytest.approx(-83.001), pytest.approx(402.0), pytest.approx(4.0)),
    ]
    assert all(reading.timestamp is not None for reading in captured)
    assert not provider.is_active
    assert provider.remaining == 0


def test_manual_step_requires_start():
    provider = SimulatedGPSProvider([GPSReading(35.0, -83.0)], interval_ms=None)
    captured = []
    provider.position_updated.connect(captured.append)

    provider.manual_step()

    assert captured == []


def test_snapshot_emits_single_reading_without_starting():
    provider = SimulatedGPSProvider(
        [GPSReading(35.0, -83.0), GPSReading(35.1, -83.1)], interval_ms=None
    )
    captured = []
    provider.position_updated.connect(captured.append)

    reading = provider.request_snapshot()

    assert captured == [reading]
    assert reading.latitude == 35.0
    assert not provider.is_active
    assert provider.remaining == 1


def test_looping_provider_restarts_track():
    provider = SimulatedGPSProvider(
        [GPSReading(35.0, -83.0), GPSReading(35.1, -83.1)], interval_ms=None, loop=True
    )
    captured = []
    provider.position_updated.connect(captured.append)
    provider.start()

    for _ in range(3):
        provider.manual_step()

    assert [reading.latitude for reading in captured] == [35.0, 35.1, 35.0]
    assert provider.is_active
    provider.stop()
    assert not provider.is_active


def test_simulated_feed_from_track_dict():
    track_payload = {
        "name": "Training lap",
        "points": [
            {
                "coordinate": {
                    "latitude": 44.0,
                    "longitude": -85.0,
                    "altitude": 250.0,
                    "accuracy": 5.0,
                },
                "heading": 90.0,
            },
            {
                "coordinate": {
                    "latitude": 44.0004,
                    "longitude": -85.0004,
                    "altitude": 251.0,
                    "accuracy": 4.5,
                }
            },
        ],
    }

    provider = SimulatedGPSProvider.from_feed(track_payload, interval_ms=None)
    captured = []
    provider.position_updated.connect(captured.append)
    provider.start()
    provider.manual_step()
    provider.manual_step()

    assert captured[0].heading == 90.0
    assert captured[0].horizontal_accuracy == 5.0
    assert captured[1].heading is None
    assert captured[1].altitude == pytest.approx(251.0)


def test_simulated_feed_from_json_file(tmp_path):
    track_file = tmp_path / "walk.json"
    track_file.write_text(json.dumps([
        {"latitude": 47.0, "longitude": 8.0, "horizontal_accuracy": 6.0, "timestamp": 1700000000},
        {"latitude": 47.0001, "longitude": 8.0},
    ]), encoding="utf-8")

    provider = SimulatedGPSProvider.from_feed(track_file, interval_ms=None)

    assert provider.remaining == 2
    first = provider.request_snapshot()
    assert first.timestamp == 1700000000.0
    assert first.horizontal_accuracy == 6.0


def test_feed_accepts_geo_positions():
    provider = SimulatedGPSProvider.from_feed([GeoPosition(1.0, 2.0, 3.0, 4.0)], interval_ms=None)
    reading = provider.request_snapshot()
    assert (reading.latitude, reading.longitude, reading.altitude, reading.horizontal_accuracy) == (1.0, 2.0, 3.0, 4.0)


@pytest.mark.parametrize("feed", [[{"lat": 1.0}], [42], {"track": []}])
def test_unsupported_feed_entries_raise(feed):
    with pytest.raises(TypeError):
        SimulatedGPSProvider.from_feed(feed, interval_ms=None)


def test_provider_drives_tracker(tracker):
    provider = SimulatedGPSProvider([GPSReading(35.0, -83.0, heading=45.0)], interval_ms=None)
    provider.position_updated.connect(tracker.on_geo_update)

    provider.request_snapshot()

    assert tracker.get_geo_position().latitude == 35.0
    assert tracker.get_bearing() == 45.0
