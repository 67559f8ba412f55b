"""
Unit tests for the normalized itinerary models.
"""

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError

from itinerary_planner.data.models import (
    ChangeSet,
    CreateItineraryRequest,
    DiffItem,
    Edge,
    ItineraryDiff,
    NodeTiming,
    NormalizedDay,
    NormalizedItinerary,
)
from tests.unit.factories import TRIP_START, at


def test_wire_format_uses_camel_case(itinerary):
    wire = itinerary.to_wire()

    assert wire["itineraryId"] == "it_test"
    day = wire["days"][0]
    assert day["dayNumber"] == 1
    assert day["totalCost"] == 45.0
    assert day["edges"][0]["from"] == "day1_node1"
    assert day["edges"][0]["to"] == "day1_node2"
    assert day["nodes"][0]["timing"]["startTime"] == "2026-05-01T09:00:00Z"


def test_wire_round_trip_accepts_aliases(itinerary):
    assert NormalizedItinerary.model_validate(itinerary.to_wire()) == itinerary


def test_edges_accept_field_names_and_aliases():
    by_alias = Edge.model_validate({"from": "a", "to": "b"})
    by_name = Edge(from_id="a", to_id="b")
    assert by_alias == by_name


def test_timing_derives_duration():
    timing = NodeTiming(start_time=at(TRIP_START, 9), end_time=at(TRIP_START, 10, 30))
    assert timing.duration_min == 90
    assert NodeTiming(start_time=at(TRIP_START, 9)).duration_min is None


def test_day_numbers_start_at_one():
    with pytest.raises(ValidationError):
        NormalizedDay(day_number=0)


def test_dates_parse_as_calendar_dates():
    day = NormalizedDay.model_validate({"dayNumber": 1, "date": "2026-05-01"})
    assert day.date == date(2026, 5, 1)

    request = CreateItineraryRequest(
        destination="Kyoto", duration_days=2, start_date="2026-05-01"
    )
    assert request.start_date == date(2026, 5, 1)


def test_trip_lasts_at_least_one_day():
    with pytest.raises(ValidationError):
        CreateItineraryRequest(destination="Kyoto", duration_days=0)


def test_lookups(itinerary):
    day, node = itinerary.find_node("day2_node2")
    assert day.day_number == 2
    assert node.type.value == "meal"
    assert itinerary.find_node("day9_node1") is None
    assert itinerary.find_day(3) is None
    assert day.node_index("day2_node3") == 2
    assert day.node_index("missing") == -1
    assert itinerary.node_count() == 6
    assert itinerary.has_contiguous_days()

    itinerary.days.pop(0)
    assert not itinerary.has_contiguous_days()


def test_recompute_totals(itinerary):
    day = itinerary.days[0]
    day.nodes[0].cost.amount = 100.0
    day.edges[0].transit.distance_km = 1.25

    day.recompute_totals()

    assert day.total_cost == 125.0
    assert day.total_distance_km == 1.25
    assert day.total_duration_min == 120 + 60 + 120


def test_change_set_parses_wire_payload():
    change_set = ChangeSet.model_validate(
        {
            "scope": "trip",
            "ops": [
                {"op": "delete", "id": "day1_node2"},
                {"op": "move", "id": "day2_node1", "startTime": "2026-05-02T10:00:00Z"},
            ],
            "preferences": {"autoApply": True, "respectLocks": False},
        }
    )

    assert change_set.scope.value == "trip"
    assert change_set.ops[1].start_time == datetime(2026, 5, 2, 10, tzinfo=UTC)
    assert change_set.preferences.auto_apply
    assert not change_set.preferences.respect_locks
    assert change_set.agent == "user"


def test_diff_reverse_swaps_sides(itinerary):
    node = itinerary.days[0].nodes[0]
    diff = ItineraryDiff(
        added=[DiffItem(node_id=node.id, day=1, index=0, after=node)],
        updated=[DiffItem(node_id="x", day=1, index=1, fields=["title"], before=node)],
    )

    reversed_diff = diff.reverse()

    assert reversed_diff.removed[0].before == node
    assert reversed_diff.removed[0].after is None
    assert reversed_diff.updated[0].after == node
    assert reversed_diff.added == []
    assert ItineraryDiff().is_empty()
    assert not diff.is_empty()
