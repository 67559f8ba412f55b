"""
Editor agent.

Turns a traveller's edit request from chat into a ChangeSet that the
change engine can preview or apply.
"""

from pydantic import BaseModel

from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    ChatResponse,
    describe_nodes,
)
from itinerary_planner.data.models import ChangeSet, NormalizedItinerary
from itinerary_planner.orchestration.core.agent_registry import TaskType


class EditorResponse(BaseModel):
    """AI response for an edit request."""

    reply: str
    change_set: ChangeSet | None = None


class EditorAgent(BaseAgent):
    """Translates chat edit requests into ChangeSets."""

    agent_id = "editor_agent"
    model_key = "editor"
    instructions = (
        "You edit travel itineraries. Translate the traveller's request into a "
        "ChangeSet using only insert, delete, move and replace operations on "
        "the listed node ids. Inserts need an 'after' node id or atDayStart. "
        "Never touch locked nodes. Reply briefly describing the change."
    )
    supported_tasks = frozenset({TaskType.EDIT})
    data_sections = frozenset({"nodes", "edges"})
    priority = 10
    chat_enabled = True

    async def handle_chat(
        self, context: AgentContext, itinerary: NormalizedItinerary, message: str
    ) -> ChatResponse:
        days = "\n".join(
            f"Day {day.day_number} ({day.date or 'undated'}):\n{describe_nodes(day)}"
            for day in itinerary.days
        )
        locked = [n.id for d in itinerary.days for n in d.nodes if n.locked]
        prompt = (
            f"Request: {message}\n"
            f"Current version: {itinerary.version}\n"
            f"Itinerary:\n{days}\n"
            f"Locked nodes: {', '.join(locked) or 'none'}\n"
            "Return JSON with a reply and the change set."
        )
        response = await self._generate(context, prompt, EditorResponse)

        change_set = response.change_set
        if change_set is not None:
            if not change_set.ops:
                change_set = None
            else:
                change_set = change_set.model_copy(
                    update={"agent": self.agent_id, "reason": change_set.reason or message}
                )
        return ChatResponse(message=response.reply, change_set=change_set)
