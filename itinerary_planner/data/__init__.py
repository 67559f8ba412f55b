"""
Data layer for the Itinerary Planner system.
"""

from itinerary_planner.data.locks import ItineraryLocks
from itinerary_planner.data.models import (
    ChangeOperation,
    ChangePreferences,
    ChangeScope,
    ChangeSet,
    CreateItineraryRequest,
    DiffItem,
    Edge,
    ItineraryDiff,
    NodeType,
    NormalizedDay,
    NormalizedItinerary,
    NormalizedNode,
    OperationKind,
)
from itinerary_planner.data.store import InMemoryItineraryStore, ItineraryStore

__all__ = [
    "ChangeOperation",
    "ChangePreferences",
    "ChangeScope",
    "ChangeSet",
    "CreateItineraryRequest",
    "DiffItem",
    "Edge",
    "InMemoryItineraryStore",
    "ItineraryDiff",
    "ItineraryLocks",
    "ItineraryStore",
    "NodeType",
    "NormalizedDay",
    "NormalizedItinerary",
    "NormalizedNode",
    "OperationKind",
]
