"""
Itinerary change engine, diffs and edit service.
"""

from itinerary_planner.changes.change_engine import (
    ApplyResult,
    ChangeEngine,
    ProposeResult,
    UndoResult,
    apply_diff,
)
from itinerary_planner.changes.diff import compute_diff
from itinerary_planner.changes.edit_service import ItineraryEditService
from itinerary_planner.changes.node_ids import allocate_node_id

__all__ = [
    "ApplyResult",
    "ChangeEngine",
    "ItineraryEditService",
    "ProposeResult",
    "UndoResult",
    "allocate_node_id",
    "apply_diff",
    "compute_diff",
]
