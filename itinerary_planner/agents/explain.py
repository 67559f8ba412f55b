"""
Explain agent.

Answers questions about an itinerary without changing it.
"""

from pydantic import BaseModel

from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    ChatResponse,
    describe_nodes,
)
from itinerary_planner.data.models import NormalizedItinerary
from itinerary_planner.orchestration.core.agent_registry import TaskType
from itinerary_planner.utils.helpers import format_price


class ExplainResponse(BaseModel):
    """AI response to a question about the itinerary."""

    reply: str


class ExplainAgent(BaseAgent):
    """Explains the itinerary in plain language."""

    agent_id = "explain_agent"
    model_key = "explain"
    instructions = (
        "You explain travel itineraries. Answer the traveller's question using "
        "only the itinerary provided; say so when it does not contain the answer."
    )
    supported_tasks = frozenset({TaskType.EXPLAIN})
    data_sections = frozenset({"summary"})
    priority = 15
    chat_enabled = True

    async def handle_chat(
        self, context: AgentContext, itinerary: NormalizedItinerary, message: str
    ) -> ChatResponse:
        days = "\n".join(
            f"Day {day.day_number} in {day.location or itinerary.destination} "
            f"(total {format_price(day.total_cost, itinerary.currency)}):\n"
            f"{describe_nodes(day)}"
            for day in itinerary.days
        )
        prompt = (
            f"Question: {message}\n"
            f"Trip summary: {itinerary.summary or 'n/a'}\n"
            f"Itinerary:\n{days}\n"
            "Return JSON with your reply."
        )
        response = await self._generate(context, prompt, ExplainResponse)
        return ChatResponse(message=response.reply)
