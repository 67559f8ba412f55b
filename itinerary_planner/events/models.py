"""
Event model for itinerary progress streaming.

Every event published for an itinerary gets a per-itinerary sequence
number. Subscribers remember the last sequence they received, which makes
reconnect replay a pure function of the event log and that cursor.
"""

from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from itinerary_planner.utils.helpers import utc_now

# Flat fields older clients read from the top level of a wire event
LEGACY_FLAT_FIELDS = ("progress", "message", "status")


class EventKind(str, Enum):
    """Kinds of events streamed to itinerary subscribers."""

    CONNECTION_ESTABLISHED = "connection_established"
    AGENT_PROGRESS = "agent_progress"
    DAY_COMPLETED = "day_completed"
    PHASE_TRANSITION = "phase_transition"
    AGENT_COMPLETE = "agent_complete"
    WARNING = "warning"
    ERROR = "error"
    GENERATION_COMPLETE = "generation_complete"
    ITINERARY_UPDATED = "itinerary_updated"


TERMINAL_KINDS = frozenset({EventKind.GENERATION_COMPLETE, EventKind.ERROR})


class ItineraryEvent(BaseModel):
    """One event in an itinerary's ordered event log."""

    model_config = ConfigDict(frozen=True)

    itinerary_id: str
    sequence: int
    kind: EventKind
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        """Whether this event ends a generation run."""
        return self.kind in TERMINAL_KINDS

    def to_wire(self, legacy_flat_fields: bool = True) -> dict[str, Any]:
        """
        Render the event in its wire shape.

        Args:
            legacy_flat_fields: Also copy progress/message/status to the top level

        Returns:
            JSON-compatible payload
        """
        payload: dict[str, Any] = {
            "updateType": self.kind.value,
            "itineraryId": self.itinerary_id,
            "sequence": self.sequence,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
        }
        if legacy_flat_fields:
            for key in LEGACY_FLAT_FIELDS:
                if key in self.data:
                    payload[key] = self.data[key]
        return payload


def replay(log: Iterable[ItineraryEvent], last_seen: int) -> list[ItineraryEvent]:
    """
    Return the events a subscriber has not seen yet, in order.

    Args:
        log: Ordered event log of one itinerary
        last_seen: Highest sequence the subscriber already received

    Returns:
        Events with a sequence greater than last_seen
    """
    return [event for event in log if event.sequence > last_seen]


def agent_progress_data(
    progress: int, step: str, message: str, status: str = "running"
) -> dict[str, Any]:
    return {"progress": progress, "step": step, "message": message, "status": status}


def day_completed_data(day_number: int, node_count: int) -> dict[str, Any]:
    return {"dayNumber": day_number, "nodeCount": node_count}


def phase_transition_data(from_phase: str | None, to_phase: str) -> dict[str, Any]:
    return {"fromPhase": from_phase, "toPhase": to_phase}


def agent_complete_data(agent_name: str, items_processed: int) -> dict[str, Any]:
    return {"agentName": agent_name, "itemsProcessed": items_processed}
