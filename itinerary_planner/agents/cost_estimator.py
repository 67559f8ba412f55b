"""
Cost estimator agent.

Estimates the cost of every node of a day in the itinerary's currency and
recomputes the day totals.
"""

from pydantic import BaseModel, Field

from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    StageResult,
    describe_nodes,
)
from itinerary_planner.data.models import NodeCost, NormalizedDay
from itinerary_planner.orchestration.core.agent_registry import TaskType


class NodeCostEstimate(BaseModel):
    """Estimated cost of one node."""

    node_id: str
    amount: float = Field(ge=0)
    per: str = "person"


class CostEstimateResponse(BaseModel):
    """AI response with cost estimates for one day."""

    estimates: list[NodeCostEstimate] = Field(default_factory=list)


class CostEstimatorAgent(BaseAgent):
    """Estimates node costs and day totals."""

    agent_id = "cost_estimator"
    model_key = "cost"
    instructions = (
        "You estimate realistic travel costs. Give the typical price of each "
        "itinerary stop for one person in the requested currency; free stops "
        "cost 0."
    )
    supported_tasks = frozenset({TaskType.ESTIMATE_COSTS})
    data_sections = frozenset({"costs"})
    priority = 50

    async def process_day(
        self, context: AgentContext, day: NormalizedDay
    ) -> StageResult:
        day = day.model_copy(deep=True)
        if day.nodes:
            prompt = (
                f"Destination: {context.request.destination}\n"
                f"Currency: {context.currency}\n"
                f"Budget tier: {context.request.budget_tier}\n"
                f"Day {day.day_number} stops:\n{describe_nodes(day)}\n"
                "Return one estimate per node id as JSON."
            )
            response = await self._generate(
                context, prompt, CostEstimateResponse, stage="cost_estimation"
            )
            processed = 0
            for estimate in response.estimates:
                node = day.find_node(estimate.node_id)
                if node is None or node.locked:
                    continue
                node.cost = NodeCost(
                    amount=round(estimate.amount, 2),
                    currency=context.currency,
                    per=estimate.per,
                )
                processed += 1
        else:
            processed = 0

        day.recompute_totals()
        return StageResult(day=day, items_processed=processed)
