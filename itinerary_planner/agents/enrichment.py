"""
Enrichment agent.

Adds practical tips and tags to every node. It runs as a pipeline stage
during generation and also serves the chat "enrich" task, where it proposes
its additions as a ChangeSet of replace operations.
"""

from itinerary_planner.agents.base import (
    AgentContext,
    ChatResponse,
    NodePopulationAgent,
    NodeUpdatesResponse,
    describe_nodes,
    merge_node_update,
)
from itinerary_planner.data.models import (
    ChangeOperation,
    ChangeScope,
    ChangeSet,
    NormalizedItinerary,
    OperationKind,
)
from itinerary_planner.orchestration.core.agent_registry import TaskType


class EnrichmentAgent(NodePopulationAgent):
    """Adds tips and tags to nodes, in the pipeline and from chat."""

    agent_id = "enrichment_agent"
    model_key = "enrichment"
    instructions = (
        "You enrich itinerary stops with practical advice: opening-hour "
        "caveats, booking hints, what to bring, and short descriptive tags."
    )
    supported_tasks = frozenset({TaskType.ENRICH})
    data_sections = frozenset({"nodes", "tips"})
    priority = 20
    chat_enabled = True
    stage = "enrichment"
    focus = "For each node give up to three practical tips and a few tags."

    async def handle_chat(
        self, context: AgentContext, itinerary: NormalizedItinerary, message: str
    ) -> ChatResponse:
        days = "\n".join(
            f"Day {day.day_number}:\n{describe_nodes(day)}" for day in itinerary.days
        )
        prompt = (
            f"Traveller request: {message}\n"
            f"Itinerary for {itinerary.destination or context.request.destination}:\n"
            f"{days}\n"
            "Return updates only for the nodes the request is about, as JSON."
        )
        response = await self._generate(context, prompt, NodeUpdatesResponse)

        ops = []
        for update in response.nodes:
            found = itinerary.find_node(update.node_id)
            if found is None or found[1].locked:
                continue
            node = found[1].model_copy(deep=True)
            merge_node_update(node, update, self.agent_id)
            ops.append(
                ChangeOperation(op=OperationKind.REPLACE, id=node.id, node=node)
            )

        if not ops:
            return ChatResponse(message="I could not find anything to enrich.")

        change_set = ChangeSet(
            scope=ChangeScope.TRIP,
            ops=ops,
            reason=message,
            agent=self.agent_id,
        )
        return ChatResponse(
            message=f"Added tips and details to {len(ops)} item(s).",
            change_set=change_set,
        )
