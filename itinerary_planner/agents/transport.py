"""
Transport agent.

Links consecutive nodes of a day with transit edges and fills in the
details of explicit transport legs.
"""

from pydantic import BaseModel, Field

from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    NodeUpdate,
    StageResult,
    describe_nodes,
)
from itinerary_planner.data.models import Edge, NodeType, NormalizedDay, TransitInfo
from itinerary_planner.orchestration.core.agent_registry import TaskType


class TransitLeg(BaseModel):
    """How to get from one node to the next."""

    from_id: str
    to_id: str
    mode: str = "walking"
    duration_min: int | None = None
    distance_km: float | None = None


class TransportResponse(BaseModel):
    """AI response for the transport stage of one day."""

    legs: list[TransitLeg] = Field(default_factory=list)
    nodes: list[NodeUpdate] = Field(default_factory=list)


class TransportAgent(BaseAgent):
    """Builds the transit path of each day."""

    agent_id = "transport_agent"
    model_key = "transport"
    instructions = (
        "You plan local transit between consecutive itinerary stops. For each "
        "pair of stops give the best mode (walking, metro, bus, taxi, train), "
        "the travel time in minutes and the distance in kilometres."
    )
    supported_tasks = frozenset({TaskType.POPULATE_TRANSPORT})
    data_sections = frozenset({"edges", "transport"})
    priority = 10

    async def process_day(
        self, context: AgentContext, day: NormalizedDay
    ) -> StageResult:
        day = day.model_copy(deep=True)
        pairs = list(zip(day.nodes, day.nodes[1:], strict=False))
        if not pairs:
            day.edges = []
            return StageResult(day=day, items_processed=0)

        leg_lines = "\n".join(f"- {a.id} -> {b.id}" for a, b in pairs)
        prompt = (
            f"City: {day.location or context.request.destination}\n"
            f"Day {day.day_number} stops:\n{describe_nodes(day)}\n"
            f"Legs to plan:\n{leg_lines}\n"
            "Also describe any transport nodes. Return JSON."
        )
        response = await self._generate(
            context, prompt, TransportResponse, stage="transport"
        )

        legs = {(leg.from_id, leg.to_id): leg for leg in response.legs}
        edges = []
        for a, b in pairs:
            leg = legs.get((a.id, b.id))
            transit = (
                TransitInfo(
                    mode=leg.mode,
                    duration_min=leg.duration_min,
                    distance_km=leg.distance_km,
                )
                if leg is not None
                else TransitInfo()
            )
            edges.append(Edge(from_id=a.id, to_id=b.id, transit=transit))
        day.edges = edges

        updated = self._apply_node_updates(day, response.nodes, {NodeType.TRANSPORT})
        return StageResult(day=day, items_processed=len(edges) + updated)
