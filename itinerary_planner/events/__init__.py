"""
Event streaming for the Itinerary Planner system.
"""

from itinerary_planner.events.broadcast import EventBroadcast, Subscription
from itinerary_planner.events.models import (
    TERMINAL_KINDS,
    EventKind,
    ItineraryEvent,
    replay,
)
from itinerary_planner.events.transport import (
    QueueConnection,
    QueueTransport,
    Transport,
)

__all__ = [
    "TERMINAL_KINDS",
    "EventBroadcast",
    "EventKind",
    "ItineraryEvent",
    "QueueConnection",
    "QueueTransport",
    "Subscription",
    "Transport",
    "replay",
]
