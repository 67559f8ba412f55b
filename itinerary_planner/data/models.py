"""
Data models for the itinerary planner system.

This module defines the normalized itinerary document (itinerary, days,
nodes and transit edges), the ChangeSet wire model used to edit it, and
the diff produced by the change engine. Every model serializes with
camelCase aliases so the documents match what clients already consume.
"""

from datetime import date as Date
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump the model as JSON-compatible data with wire aliases."""
        return self.model_dump(mode="json", by_alias=True)


class NodeType(str, Enum):
    """Kinds of schedulable nodes within a day."""

    ATTRACTION = "attraction"
    MEAL = "meal"
    ACCOMMODATION = "accommodation"
    TRANSPORT = "transport"
    ACTIVITY = "activity"
    FREE_TIME = "free_time"


class NodeStatus(str, Enum):
    """Lifecycle status of a node during the trip."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class NodeTiming(CamelModel):
    """Absolute start and end instants of a node."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_min: int | None = None

    @model_validator(mode="after")
    def fill_duration(self) -> "NodeTiming":
        """Derive the duration when both instants are known."""
        if self.start_time and self.end_time and self.duration_min is None:
            delta = self.end_time - self.start_time
            self.duration_min = int(delta.total_seconds() // 60)
        return self


class NodeCost(CamelModel):
    """Estimated cost of a node."""

    amount: float = 0.0
    currency: str = "USD"
    per: str = "person"


class NodeLocation(CamelModel):
    """Human-readable location of a node."""

    name: str | None = None
    address: str | None = None


class NodeDetails(CamelModel):
    """Descriptive details added by the population and enrichment agents."""

    description: str | None = None
    rating: float | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)


class NormalizedNode(CamelModel):
    """The smallest schedulable unit of a day."""

    id: str = ""
    type: NodeType = NodeType.ATTRACTION
    title: str = ""
    timing: NodeTiming = Field(default_factory=NodeTiming)
    cost: NodeCost | None = None
    location: NodeLocation | None = None
    details: NodeDetails | None = None
    tips: list[str] = Field(default_factory=list)
    locked: bool = False
    booking_ref: str | None = None
    status: NodeStatus = NodeStatus.PLANNED
    updated_by: str | None = None


class TransitInfo(CamelModel):
    """How a traveller moves between two consecutive nodes."""

    mode: str = "walking"
    duration_min: int | None = None
    distance_km: float | None = None


class Edge(CamelModel):
    """Directed transit link between two nodes of the same day."""

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    transit: TransitInfo | None = None


class NormalizedDay(CamelModel):
    """One day of the trip with its ordered nodes and transit edges."""

    day_number: int
    date: Date | None = None
    location: str | None = None
    summary: str | None = None
    pace: str | None = None
    nodes: list[NormalizedNode] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    total_cost: float = 0.0
    total_distance_km: float = 0.0
    total_duration_min: int = 0
    node_seq: int = 0
    warnings: list[str] = Field(default_factory=list)

    @field_validator("day_number")
    @classmethod
    def validate_day_number(cls, value: int) -> int:
        """Day numbers are 1-based."""
        if value < 1:
            raise ValueError(f"Day numbers start at 1, got {value}")
        return value

    def find_node(self, node_id: str) -> NormalizedNode | None:
        """Return the node with the given id, if this day holds it."""
        return next((n for n in self.nodes if n.id == node_id), None)

    def node_index(self, node_id: str) -> int:
        """Return the position of a node in this day, or -1."""
        for index, node in enumerate(self.nodes):
            if node.id == node_id:
                return index
        return -1

    def recompute_totals(self) -> None:
        """Recompute the derived cost, distance and duration totals."""
        self.total_cost = round(
            sum(node.cost.amount for node in self.nodes if node.cost), 2
        )
        self.total_duration_min = sum(
            node.timing.duration_min or 0 for node in self.nodes
        )
        self.total_distance_km = round(
            sum(
                edge.transit.distance_km or 0.0
                for edge in self.edges
                if edge.transit is not None
            ),
            2,
        )


class AgentRunStatus(str, Enum):
    """Status of one agent for one itinerary."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AgentStatus(CamelModel):
    """Per-agent status entry in the itinerary document."""

    status: AgentRunStatus = AgentRunStatus.IDLE
    items_processed: int = 0
    message: str | None = None
    updated_at: datetime | None = None


class GenerationState(str, Enum):
    """Overall status of the generation pipeline for an itinerary."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class GenerationProgress(CamelModel):
    """Progress of the generation pipeline, persisted after each stage."""

    status: GenerationState = GenerationState.PENDING
    progress: int = 0
    current_stage: str | None = None
    completed_days: int = 0
    failed_days: list[int] = Field(default_factory=list)
    error: str | None = None


class NormalizedItinerary(CamelModel):
    """The itinerary document shared by the pipeline and the change engine."""

    itinerary_id: str
    version: int = 1
    user_id: str | None = None
    summary: str | None = None
    currency: str = "USD"
    themes: list[str] = Field(default_factory=list)
    origin: str | None = None
    destination: str | None = None
    start_date: Date | None = None
    end_date: Date | None = None
    duration_days: int = 0
    days: list[NormalizedDay] = Field(default_factory=list)
    agents: dict[str, AgentStatus] = Field(default_factory=dict)
    generation: GenerationProgress = Field(default_factory=GenerationProgress)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_day(self, day_number: int) -> NormalizedDay | None:
        """Return the day with the given number, if present."""
        return next((d for d in self.days if d.day_number == day_number), None)

    def find_node(self, node_id: str) -> tuple[NormalizedDay, NormalizedNode] | None:
        """Return the day and node holding the given node id, if any."""
        for day in self.days:
            node = day.find_node(node_id)
            if node is not None:
                return day, node
        return None

    def node_count(self) -> int:
        """Return the number of nodes across all days."""
        return sum(len(day.nodes) for day in self.days)

    def has_contiguous_days(self) -> bool:
        """Check that day numbers are exactly 1..N."""
        numbers = [day.day_number for day in self.days]
        return numbers == list(range(1, len(numbers) + 1))


class CreateItineraryRequest(CamelModel):
    """Trip parameters supplied when an itinerary is created."""

    destination: str
    duration_days: int
    start_date: Date | None = None
    origin: str | None = None
    currency: str = "USD"
    themes: list[str] = Field(default_factory=list)
    budget_tier: str = "medium"
    party_size: int = 1
    language: str = "en"

    @field_validator("duration_days")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """A trip lasts at least one day."""
        if value < 1:
            raise ValueError("A trip must last at least one day")
        return value


class ChangeScope(str, Enum):
    """Whether a ChangeSet targets one day or the whole trip."""

    DAY = "day"
    TRIP = "trip"


class OperationKind(str, Enum):
    """Supported ChangeSet operations."""

    INSERT = "insert"
    DELETE = "delete"
    MOVE = "move"
    REPLACE = "replace"


class ChangeOperation(CamelModel):
    """A single edit within a ChangeSet."""

    op: OperationKind
    id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    node: NormalizedNode | None = None
    after: str | None = None
    at_day_start: bool = False


class ChangePreferences(CamelModel):
    """Caller preferences that govern how a ChangeSet is applied."""

    user_first: bool = True
    auto_apply: bool = False
    respect_locks: bool = True


class ChangeSet(CamelModel):
    """An atomic, named collection of edit operations."""

    scope: ChangeScope = ChangeScope.DAY
    day: int | None = None
    ops: list[ChangeOperation] = Field(default_factory=list)
    reason: str | None = None
    agent: str = "user"
    preferences: ChangePreferences = Field(default_factory=ChangePreferences)


class DiffItem(CamelModel):
    """One node-level difference between two itinerary versions."""

    node_id: str
    day: int
    index: int
    fields: list[str] = Field(default_factory=list)
    before: NormalizedNode | None = None
    after: NormalizedNode | None = None


class ItineraryDiff(CamelModel):
    """Node-level differences between two itinerary versions."""

    added: list[DiffItem] = Field(default_factory=list)
    removed: list[DiffItem] = Field(default_factory=list)
    updated: list[DiffItem] = Field(default_factory=list)

    def is_empty(self) -> bool:
        """Return True when the diff records no change."""
        return not (self.added or self.removed or self.updated)

    def reverse(self) -> "ItineraryDiff":
        """Return the diff that undoes this one."""

        def flip(item: DiffItem) -> DiffItem:
            return item.model_copy(update={"before": item.after, "after": item.before})

        return ItineraryDiff(
            added=[flip(item) for item in self.removed],
            removed=[flip(item) for item in self.added],
            updated=[flip(item) for item in self.updated],
        )
