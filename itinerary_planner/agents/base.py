"""
Base agent class for the itinerary planner system.

This module implements the foundation every generation and chat agent
inherits from. Agents are stateless: each call receives an explicit
`AgentContext` scoped to one itinerary, so concurrent runs for different
itineraries can never see each other's data.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from itinerary_planner.config import AgentModelConfig, config
from itinerary_planner.data.models import (
    ChangeSet,
    CreateItineraryRequest,
    NodeDetails,
    NodeLocation,
    NodeType,
    NormalizedDay,
    NormalizedItinerary,
    NormalizedNode,
)
from itinerary_planner.orchestration.core.agent_registry import (
    AgentCapabilities,
    TaskType,
)
from itinerary_planner.utils.error_handling import StageFailure
from itinerary_planner.utils.helpers import clean_json_response
from itinerary_planner.utils.logging import AgentLogger

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class AgentContext(BaseModel):
    """Everything an agent may use for one call, scoped to one itinerary."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    itinerary_id: str
    request: CreateItineraryRequest
    generator: Any = Field(description="GenerationClient used for AI calls")
    currency: str = "USD"
    user_id: str | None = None


@dataclass
class StageResult:
    """Outcome of one pipeline stage for one day."""

    day: NormalizedDay
    items_processed: int = 0


@dataclass
class ChatResponse:
    """Outcome of a chat task."""

    message: str
    change_set: ChangeSet | None = None


class NodeUpdate(BaseModel):
    """Fields an agent may fill in on an existing node."""

    node_id: str
    title: str | None = None
    description: str | None = None
    category: str | None = None
    rating: float | None = None
    location_name: str | None = None
    address: str | None = None
    tips: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class NodeUpdatesResponse(BaseModel):
    """AI response listing updates for the nodes of one day."""

    nodes: list[NodeUpdate] = Field(default_factory=list)


def day_instant(day_date: date | None, clock: str | None) -> datetime | None:
    """
    Combine a day's date with an ``HH:MM`` clock time into a UTC instant.

    Returns None when either part is missing or the clock is malformed.
    """
    if day_date is None or not clock:
        return None
    try:
        parsed = time.fromisoformat(clock.strip())
    except ValueError:
        return None
    return datetime.combine(day_date, parsed, tzinfo=UTC)


def trip_day_date(request: CreateItineraryRequest, day_number: int) -> date | None:
    """Return the calendar date of a trip day, if the trip has a start date."""
    if request.start_date is None:
        return None
    return request.start_date + timedelta(days=day_number - 1)


class BaseAgent:
    """
    Base class for all itinerary planner agents.

    Subclasses declare their routing capabilities as class attributes and
    implement `process_day` (pipeline agents) or `handle_chat` (chat agents).
    """

    agent_id: ClassVar[str] = "base"
    model_key: ClassVar[str] = "default"
    instructions: ClassVar[str] = ""
    supported_tasks: ClassVar[frozenset[TaskType]] = frozenset()
    data_sections: ClassVar[frozenset[str]] = frozenset()
    priority: ClassVar[int] = 50
    chat_enabled: ClassVar[bool] = False

    def __init__(self, model: AgentModelConfig | None = None):
        """
        Initialize a base agent.

        Args:
            model: Model configuration (defaults to the configured model
                for this agent type)
        """
        self.model = model or config.get_agent_model(self.model_key)
        self.logger = AgentLogger(self.agent_id)

    @property
    def name(self) -> str:
        """Get the name of the agent."""
        return self.agent_id

    @classmethod
    def capabilities(cls) -> AgentCapabilities:
        """Build the capability entry this agent registers with."""
        return AgentCapabilities(
            agent_id=cls.agent_id,
            supported_tasks=cls.supported_tasks,
            supported_data_sections=cls.data_sections,
            priority=cls.priority,
            chat_enabled=cls.chat_enabled,
        )

    async def process_day(
        self, context: AgentContext, day: NormalizedDay
    ) -> StageResult:
        """Run this agent's pipeline stage for one day."""
        raise NotImplementedError(f"{self.agent_id} is not a pipeline agent")

    async def handle_chat(
        self, context: AgentContext, itinerary: NormalizedItinerary, message: str
    ) -> ChatResponse:
        """Serve a chat task against the itinerary."""
        raise NotImplementedError(f"{self.agent_id} is not a chat agent")

    async def _generate(
        self,
        context: AgentContext,
        prompt: str,
        response_model: type[ResponseT],
        stage: str | None = None,
    ) -> ResponseT:
        """
        Call the generation client and parse its JSON answer.

        Args:
            context: Call context holding the generation client
            prompt: Prompt text
            response_model: Pydantic model the answer must validate against
            stage: Pipeline stage name for error reporting (optional)

        Returns:
            Parsed response model

        Raises:
            StageFailure: If the call fails, returns nothing, or returns
                something that does not parse
        """
        log = self.logger.for_itinerary(context.itinerary_id)
        try:
            text = await context.generator.generate(
                prompt,
                response_model,
                system_instruction=self.instructions or None,
                model=self.model,
            )
        except Exception as e:
            log.error(f"Generation call failed: {e!s}")
            raise StageFailure("AI generation failed", self.agent_id, stage, e) from e

        if not text or not text.strip():
            raise StageFailure("AI generation returned no content", self.agent_id, stage)

        try:
            return response_model.model_validate_json(clean_json_response(text))
        except PydanticValidationError as e:
            log.warning(f"Unparseable AI response: {e.error_count()} errors")
            raise StageFailure(
                "AI response could not be parsed", self.agent_id, stage, e
            ) from e

    def _apply_node_updates(
        self,
        day: NormalizedDay,
        updates: list[NodeUpdate],
        node_types: set[NodeType] | None = None,
    ) -> int:
        """
        Merge AI node updates into a day in place.

        Updates for unknown ids, locked nodes or other node types are skipped.

        Returns:
            Number of nodes updated
        """
        processed = 0
        for update in updates:
            node = day.find_node(update.node_id)
            if node is None or node.locked:
                self.logger.debug(f"Skipping update for node {update.node_id}")
                continue
            if node_types is not None and node.type not in node_types:
                continue
            merge_node_update(node, update, self.agent_id)
            processed += 1
        return processed


def merge_node_update(node: NormalizedNode, update: NodeUpdate, agent_id: str) -> None:
    """Copy the non-empty fields of an update onto a node."""
    if update.title:
        node.title = update.title

    details = node.details or NodeDetails()
    if update.description:
        details.description = update.description
    if update.category:
        details.category = update.category
    if update.rating is not None:
        details.rating = update.rating
    if update.tags:
        details.tags = list(dict.fromkeys([*details.tags, *update.tags]))
    node.details = details

    if update.location_name or update.address:
        location = node.location or NodeLocation()
        location.name = update.location_name or location.name
        location.address = update.address or location.address
        node.location = location

    if update.tips:
        node.tips = list(dict.fromkeys([*node.tips, *update.tips]))
    node.updated_by = agent_id


def describe_nodes(day: NormalizedDay, node_types: set[NodeType] | None = None) -> str:
    """Render a day's nodes as prompt lines."""
    lines = []
    for node in day.nodes:
        if node_types is not None and node.type not in node_types:
            continue
        start = node.timing.start_time.strftime("%H:%M") if node.timing.start_time else "?"
        end = node.timing.end_time.strftime("%H:%M") if node.timing.end_time else "?"
        lines.append(f"- {node.id} [{node.type.value}] {start}-{end}: {node.title}")
    return "\n".join(lines) or "- (no nodes)"


class NodePopulationAgent(BaseAgent):
    """
    Pipeline agent that fills in details for nodes of selected types.

    Subclasses set `node_types`, `stage` and `focus`; the AI is shown the
    matching nodes of a day and answers with one `NodeUpdate` per node.
    """

    node_types: ClassVar[frozenset[NodeType] | None] = None
    stage: ClassVar[str] = ""
    focus: ClassVar[str] = ""

    def build_prompt(self, context: AgentContext, day: NormalizedDay) -> str:
        """Build the population prompt for one day."""
        request = context.request
        return (
            f"Destination: {request.destination}\n"
            f"Day {day.day_number} base: {day.location or request.destination}\n"
            f"Themes: {', '.join(request.themes) or 'general sightseeing'}\n"
            f"Budget tier: {request.budget_tier}\n"
            f"Language: {request.language}\n"
            f"{self.focus}\n"
            "Nodes:\n"
            f"{describe_nodes(day, set(self.node_types) if self.node_types else None)}\n"
            "Return one entry per node id as JSON."
        )

    async def process_day(
        self, context: AgentContext, day: NormalizedDay
    ) -> StageResult:
        day = day.model_copy(deep=True)
        targets = set(self.node_types) if self.node_types else None
        if not any(targets is None or n.type in targets for n in day.nodes):
            return StageResult(day=day, items_processed=0)

        response = await self._generate(
            context,
            self.build_prompt(context, day),
            NodeUpdatesResponse,
            stage=self.stage,
        )
        processed = self._apply_node_updates(day, response.nodes, targets)
        self.logger.for_itinerary(context.itinerary_id).debug(
            f"Updated {processed} nodes on day {day.day_number}"
        )
        return StageResult(day=day, items_processed=processed)
