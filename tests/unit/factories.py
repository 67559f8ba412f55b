"""
Builders for itinerary documents used across the unit tests.
"""

from datetime import UTC, date, datetime

from itinerary_planner.data.models import (
    Edge,
    NodeCost,
    NodeTiming,
    NodeType,
    NormalizedDay,
    NormalizedItinerary,
    NormalizedNode,
    TransitInfo,
)

TRIP_START = date(2026, 5, 1)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def make_node(
    node_id: str,
    day: date,
    start: tuple[int, int],
    end: tuple[int, int],
    node_type: NodeType = NodeType.ATTRACTION,
    locked: bool = False,
    cost: float | None = None,
) -> NormalizedNode:
    return NormalizedNode(
        id=node_id,
        type=node_type,
        title=f"Stop {node_id}",
        timing=NodeTiming(start_time=at(day, *start), end_time=at(day, *end)),
        cost=NodeCost(amount=cost) if cost is not None else None,
        locked=locked,
    )


def make_itinerary(itinerary_id: str = "it_test", with_edges: bool = True):
    """Two days with three linked nodes each; day 1's last node is locked."""
    days = []
    for number in (1, 2):
        day_date = date(2026, 5, number)
        nodes = [
            make_node(f"day{number}_node1", day_date, (9, 0), (11, 0), cost=20.0),
            make_node(
                f"day{number}_node2", day_date, (12, 0), (13, 0), NodeType.MEAL, cost=15.0
            ),
            make_node(
                f"day{number}_node3",
                day_date,
                (14, 0),
                (16, 0),
                locked=number == 1,
                cost=10.0,
            ),
        ]
        edges = (
            [
                Edge(from_id=a.id, to_id=b.id, transit=TransitInfo(mode="walking"))
                for a, b in zip(nodes, nodes[1:], strict=False)
            ]
            if with_edges
            else []
        )
        day = NormalizedDay(
            day_number=number, date=day_date, nodes=nodes, edges=edges, node_seq=3
        )
        day.recompute_totals()
        days.append(day)

    return NormalizedItinerary(
        itinerary_id=itinerary_id,
        version=1,
        user_id="user-1",
        destination="Kyoto",
        start_date=TRIP_START,
        end_date=date(2026, 5, 2),
        duration_days=2,
        days=days,
    )
