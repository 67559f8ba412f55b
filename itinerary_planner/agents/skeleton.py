"""
Skeleton planner agent.

Lays out the shape of each day: where the traveller is, the pace, and a
timed sequence of empty slots (attractions, meals, transport legs) that the
population agents fill in afterwards.
"""

from pydantic import BaseModel, Field

from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    StageResult,
    day_instant,
)
from itinerary_planner.changes.node_ids import allocate_node_id
from itinerary_planner.data.models import (
    NodeTiming,
    NodeType,
    NormalizedDay,
    NormalizedNode,
)
from itinerary_planner.orchestration.core.agent_registry import TaskType
from itinerary_planner.utils.error_handling import StageFailure


class SkeletonSlot(BaseModel):
    """One timed slot of a day skeleton."""

    type: NodeType
    title: str
    start_time: str | None = Field(default=None, description="HH:MM")
    end_time: str | None = Field(default=None, description="HH:MM")


class SkeletonDayResponse(BaseModel):
    """AI response describing the skeleton of one day."""

    location: str | None = None
    summary: str | None = None
    pace: str | None = None
    slots: list[SkeletonSlot] = Field(default_factory=list)


class SkeletonPlannerAgent(BaseAgent):
    """Produces the timed node skeleton of each day."""

    agent_id = "skeleton_planner"
    model_key = "skeleton"
    instructions = (
        "You plan the structure of travel itinerary days. For the requested "
        "day, return the base location, a one-sentence summary, a pace "
        "(relaxed, moderate or packed) and an ordered list of timed slots "
        "covering sights, meals and transport legs. Do not overlap slots."
    )
    supported_tasks = frozenset({TaskType.SKELETON})
    data_sections = frozenset({"days", "nodes"})
    priority = 1

    async def process_day(
        self, context: AgentContext, day: NormalizedDay
    ) -> StageResult:
        request = context.request
        themes = ", ".join(request.themes) or "general sightseeing"
        prompt = (
            f"Destination: {request.destination}\n"
            f"Trip length: {request.duration_days} days\n"
            f"Day: {day.day_number}"
            f"{f' ({day.date.isoformat()})' if day.date else ''}\n"
            f"Themes: {themes}\n"
            f"Budget tier: {request.budget_tier}\n"
            f"Party size: {request.party_size}\n"
            "Return the day skeleton as JSON."
        )

        response = await self._generate(
            context, prompt, SkeletonDayResponse, stage="skeleton"
        )
        if not response.slots:
            raise StageFailure(
                f"Skeleton for day {day.day_number} has no slots",
                self.agent_id,
                "skeleton",
            )

        day = day.model_copy(deep=True)
        day.location = response.location or request.destination
        day.summary = response.summary
        day.pace = response.pace
        for slot in response.slots:
            day.nodes.append(
                NormalizedNode(
                    id=allocate_node_id(day),
                    type=slot.type,
                    title=slot.title,
                    timing=NodeTiming(
                        start_time=day_instant(day.date, slot.start_time),
                        end_time=day_instant(day.date, slot.end_time),
                    ),
                    updated_by=self.agent_id,
                )
            )

        self.logger.for_itinerary(context.itinerary_id).info(
            f"Planned {len(day.nodes)} slots for day {day.day_number}"
        )
        return StageResult(day=day, items_processed=len(response.slots))
