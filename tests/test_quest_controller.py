import pytest

pytest.importorskip("PySide6")

from quest_controller import QuestStatus
from waypoint import WaypointDefinition, WaypointRegistrationError


class SignalRecorder:
    """Collects controller signal emissions in order."""

    def __init__(self, controller):
        self.events = []
        controller.navigation_started.connect(lambda w: self.events.append(("navigation_started", w)))
        controller.arrived_at_place.connect(lambda w: self.events.append(("arrived", w)))
        controller.places_updated.connect(lambda: self.events.append(("places_updated", None)))
        controller.all_places_visited.connect(lambda: self.events.append(("all_visited", None)))

    def of(self, kind):
        return [payload for name, payload in self.events if name == kind]


@pytest.fixture
def recorder(controller):
    return SignalRecorder(controller)


@pytest.fixture
def route(controller, make_waypoint, at):
    """Three waypoints 100 m apart heading north."""
    places = [
        make_waypoint("Start", at(0.0, 100.0)),
        make_waypoint("Fountain", at(0.0, 200.0)),
        make_waypoint("Finish", at(0.0, 300.0)),
    ]
    for place in places:
        controller.add_waypoint(place)
    return places


def test_initial_state(controller):
    assert controller.status is QuestStatus.NOT_STARTED
    assert controller.active_waypoint is None
    assert controller.places == ()


def test_arrival_advances_to_next_waypoint(controller, recorder, move_to, make_waypoint, at):
    first = make_waypoint("A", at(0.0, 1000.0))
    second = make_waypoint("B", at(0.0, 2000.0))
    controller.add_waypoint(first)
    controller.add_waypoint(second)
    controller.select_active(first)

    move_to(at(0.0, 0.0))
    controller.tick()
    assert not first.visited

    move_to(at(0.0, 995.0))
    controller.tick()

    assert first.visited
    assert not second.visited
    assert controller.active_waypoint is second
    assert controller.status is QuestStatus.IN_PROGRESS
    assert recorder.of("arrived") == [first]
    assert recorder.of("navigation_started") == [first, second]


def test_co_located_waypoints_unlock_one_per_tick(controller, recorder, move_to, make_waypoint, at):
    first = make_waypoint("A", at(0.0, 0.0))
    second = make_waypoint("B", at(0.0, 0.0))
    controller.add_waypoint(first)
    controller.add_waypoint(second)
    controller.start_quest()
    move_to(at(0.0, 0.0))

    controller.tick()
    assert first.visited
    assert not second.visited
    assert controller.active_waypoint is second

    controller.tick()
    assert second.visited
    assert controller.status is QuestStatus.SUCCEEDED
    assert recorder.of("arrived") == [first, second]


def test_later_waypoint_cannot_unlock_before_predecessor(controller, move_to, make_waypoint, at):
    first = make_waypoint("A", at(0.0, 500.0))
    second = make_waypoint("B", at(0.0, 0.0))
    controller.add_waypoint(first)
    controller.add_waypoint(second)
    controller.select_active(second)
    move_to(at(0.0, 0.0))

    for _ in range(5):
        controller.tick()

    assert not second.visited
    assert controller.active_waypoint is second


def test_full_route_succeeds_and_latches_completion(controller, recorder, route, move_to):
    controller.start_quest()
    for place in route:
        move_to(place.target)
        controller.tick()

    assert all(place.visited for place in route)
    assert controller.status is QuestStatus.SUCCEEDED
    assert controller.active_waypoint is None
    assert recorder.of("arrived") == route

    for _ in range(5000):
        controller.tick()

    assert len(recorder.of("all_visited")) == 1
    assert controller.status is QuestStatus.SUCCEEDED


def test_final_arrival_does_not_select_a_next_waypoint(controller, recorder, route, move_to):
    controller.start_quest()
    for place in route:
        move_to(place.target)
        controller.tick()

    assert recorder.of("navigation_started") == route


def test_visited_waypoints_stay_visited(controller, route, move_to, at):
    controller.start_quest()
    move_to(route[0].target)
    controller.tick()

    move_to(at(180.0, 5000.0))
    for _ in range(100):
        controller.tick()

    assert route[0].visited
    assert controller.active_waypoint is route[1]


def test_out_of_order_visit_is_reverted(controller, recorder, route, move_to, at):
    controller.start_quest()
    move_to(at(180.0, 5000.0))
    route[2].visited = True

    controller.tick()

    assert route[2].visited is False
    assert recorder.of("arrived") == []
    assert controller.active_waypoint is route[0]


def test_externally_visited_successor_is_confirmed(controller, recorder, route, move_to):
    controller.start_quest()
    move_to(route[0].target)
    controller.tick()

    route[1].visited = True
    controller.tick()

    assert route[1].visited
    assert route[1] in recorder.of("arrived")


def test_reverted_final_waypoint_does_not_complete_the_quest(controller, recorder, route, move_to, at):
    move_to(at(180.0, 5000.0))
    route[2].visited = True
    controller.select_active(route[2])

    controller.tick()

    assert route[2].visited is False
    assert controller.active_waypoint is None
    assert controller.status is QuestStatus.LOCATION_NOT_SELECTED
    assert recorder.of("all_visited") == []
    assert controller.start_quest() is route[0]


def test_reselecting_active_waypoint_is_a_no_op(controller, recorder, route):
    controller.select_active(route[1])
    controller.select_active(route[1])
    assert recorder.of("navigation_started") == [route[1]]


def test_selecting_unregistered_waypoint_registers_it(controller, recorder, make_waypoint, at):
    waypoint = make_waypoint("Lookout", at(90.0, 50.0))
    controller.select_active(waypoint)

    assert controller.places == (waypoint,)
    assert controller.status is QuestStatus.IN_PROGRESS
    assert len(recorder.of("places_updated")) == 1


def test_stop_clears_active_waypoint(controller, recorder, route):
    controller.start_quest()
    controller.stop()

    assert controller.active_waypoint is None
    assert controller.status is QuestStatus.LOCATION_NOT_SELECTED
    assert recorder.of("navigation_started") == [route[0], None]


def test_duplicate_add_is_ignored(controller, recorder, make_waypoint, at):
    waypoint = make_waypoint("Fountain", at(0.0, 100.0))
    controller.add_waypoint(waypoint)
    controller.add_waypoint(waypoint)

    assert controller.places == (waypoint,)
    assert len(recorder.of("places_updated")) == 1


def test_adding_none_raises(controller):
    with pytest.raises(WaypointRegistrationError):
        controller.add_waypoint(None)


def test_remove_waypoint(controller, recorder, route, make_waypoint, at):
    recorder.events.clear()
    stranger = make_waypoint("Elsewhere", at(0.0, 10.0))
    assert controller.remove_waypoint(stranger) is False
    assert recorder.of("places_updated") == []

    assert controller.remove_waypoint(route[1]) is True
    assert controller.places == (route[0], route[2])
    assert len(recorder.of("places_updated")) == 1
    assert controller.get_waypoint(route[1].id) is None


def test_removing_active_waypoint_stops_navigation(controller, recorder, route):
    controller.start_quest()
    controller.remove_waypoint(route[0])

    assert controller.active_waypoint is None
    assert controller.status is QuestStatus.LOCATION_NOT_SELECTED
    assert recorder.of("navigation_started")[-1] is None


def test_removing_every_waypoint_after_success_resets_status(controller, recorder, route, move_to):
    controller.start_quest()
    for place in route:
        move_to(place.target)
        controller.tick()
    assert controller.status is QuestStatus.SUCCEEDED

    for place in route:
        controller.remove_waypoint(place)
    controller.tick()

    assert controller.places == ()
    assert controller.status is QuestStatus.NOT_STARTED
    assert len(recorder.of("all_visited")) == 1


def test_removal_keeps_completed_quest_succeeded(controller, route, move_to):
    controller.start_quest()
    for place in route:
        move_to(place.target)
        controller.tick()

    controller.remove_waypoint(route[1])
    controller.tick()

    assert controller.status is QuestStatus.SUCCEEDED


def test_invalid_definition_is_not_registered(controller, recorder):
    definition = WaypointDefinition(latitude="47.0", longitude="abc", label="Fountain")
    with pytest.raises(WaypointRegistrationError, match="Longitude"):
        controller.register(definition)
    assert controller.places == ()
    assert recorder.of("places_updated") == []


def test_register_all_is_all_or_nothing(controller):
    definitions = [
        WaypointDefinition("47.0", "8.0", "Start"),
        WaypointDefinition("47.0", "", "Broken"),
    ]
    with pytest.raises(WaypointRegistrationError):
        controller.register_all(definitions)
    assert controller.places == ()


def test_register_skips_inactive_definition(controller):
    assert controller.register(WaypointDefinition("47.0", "8.0", "Detour", active=False)) is None
    assert controller.places == ()


def test_adding_after_completion_rearms_the_quest(controller, recorder, route, move_to, make_waypoint, at):
    controller.start_quest()
    for place in route:
        move_to(place.target)
        controller.tick()

    bonus = make_waypoint("Bonus", at(0.0, 400.0))
    controller.add_waypoint(bonus)
    assert controller.status is QuestStatus.LOCATION_NOT_SELECTED

    assert controller.start_quest() is bonus
    move_to(bonus.target)
    controller.tick()

    assert controller.status is QuestStatus.SUCCEEDED
    assert len(recorder.of("all_visited")) == 2


def test_tick_without_fix_does_nothing(controller, route):
    controller.start_quest()
    controller.tick()
    assert not any(place.visited for place in route)
    assert controller.status is QuestStatus.IN_PROGRESS


def test_tick_never_raises(controller, route, tracker, monkeypatch):
    controller.start_quest()

    def broken(_waypoint):
        raise RuntimeError("sensor fault")

    monkeypatch.setattr(tracker, "distance_to", broken)
    controller.tick()
    assert controller.active_waypoint is route[0]


def test_progress_summary(controller, route, move_to):
    controller.start_quest()
    move_to(route[0].target)
    controller.tick()

    summary = controller.progress_summary()
    assert summary["status"] == QuestStatus.IN_PROGRESS.value
    assert summary["total"] == 3
    assert summary["visited"] == 1
    assert summary["remaining"] == 2
    assert summary["active"] == "Fountain"
    assert summary["visited_names"] == ["Start"]
    assert summary["ticks"] == 1
