"""
Node id allocation.

Node ids look like ``day{N}_node{K}``. Each day keeps a monotonically
increasing ``node_seq`` counter so a deleted node's id is never handed out
again, and allocation is deterministic for a given document.
"""

import re
from collections.abc import Collection

from itinerary_planner.data.models import NormalizedDay, NormalizedItinerary

NODE_ID_PATTERN = re.compile(r"^day(\d+)_node(\d+)$")


def format_node_id(day_number: int, seq: int) -> str:
    """Build a node id from its day number and sequence."""
    return f"day{day_number}_node{seq}"


def parse_node_id(node_id: str) -> tuple[int, int] | None:
    """Split a generated node id into (day number, sequence), if it is one."""
    match = NODE_ID_PATTERN.match(node_id)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def sync_node_seq(day: NormalizedDay) -> None:
    """Advance the day's counter past every generated id it already holds."""
    for node in day.nodes:
        parsed = parse_node_id(node.id)
        if parsed and parsed[0] == day.day_number and parsed[1] > day.node_seq:
            day.node_seq = parsed[1]


def allocate_node_id(day: NormalizedDay, taken: Collection[str] = ()) -> str:
    """
    Allocate the next unused node id for a day.

    Args:
        day: Day that will hold the node; its counter is advanced
        taken: Ids already in use anywhere in the itinerary

    Returns:
        A new itinerary-unique node id
    """
    sync_node_seq(day)
    while True:
        day.node_seq += 1
        node_id = format_node_id(day.day_number, day.node_seq)
        if node_id not in taken:
            return node_id


def all_node_ids(itinerary: NormalizedItinerary) -> set[str]:
    """Return every node id in the itinerary."""
    return {node.id for day in itinerary.days for node in day.nodes}
