"""
Chat task dispatch.

A chat message names a task type (edit, explain or enrich). The registry
routes it to the single chat-enabled agent for that task, and any ChangeSet
the agent returns goes through the edit service: previewed by default, or
committed when its preferences ask for auto-apply.
"""

from dataclasses import dataclass

from itinerary_planner.agents.base import AgentContext
from itinerary_planner.changes.change_engine import ApplyResult, ProposeResult
from itinerary_planner.changes.edit_service import ItineraryEditService
from itinerary_planner.data.models import (
    ChangeSet,
    CreateItineraryRequest,
    NormalizedItinerary,
)
from itinerary_planner.data.store import ItineraryStore
from itinerary_planner.orchestration.core.agent_registry import AgentRegistry, TaskType
from itinerary_planner.utils.error_handling import NotFoundError, ValidationError
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChatResult:
    """Outcome of one chat turn."""

    message: str
    task_type: TaskType
    agent_id: str
    change_set: ChangeSet | None = None
    proposal: ProposeResult | None = None
    applied: ApplyResult | None = None


def request_from_itinerary(itinerary: NormalizedItinerary) -> CreateItineraryRequest:
    """Rebuild the trip parameters an agent needs from a stored itinerary."""
    return CreateItineraryRequest(
        destination=itinerary.destination or "",
        duration_days=max(itinerary.duration_days, len(itinerary.days), 1),
        start_date=itinerary.start_date,
        origin=itinerary.origin,
        currency=itinerary.currency,
        themes=list(itinerary.themes),
    )


class ChatService:
    """Routes chat messages to the agent that serves their task."""

    def __init__(
        self,
        store: ItineraryStore,
        registry: AgentRegistry,
        edit_service: ItineraryEditService,
        generator,
    ):
        self.store = store
        self.registry = registry
        self.edit_service = edit_service
        self.generator = generator

    async def handle(
        self,
        itinerary_id: str,
        user_id: str,
        task_type: TaskType | str,
        message: str,
    ) -> ChatResult:
        """
        Handle one chat message for an itinerary.

        Args:
            itinerary_id: Target itinerary
            user_id: User sending the message
            task_type: Chat task to run
            message: The user's message

        Returns:
            The agent's reply and what happened to its ChangeSet, if any

        Raises:
            NotFoundError: If the itinerary does not exist or is not owned by user_id
            ValidationError: If the message is empty or task_type is unknown
            AmbiguousRoutingError: If the task does not route to exactly one agent
        """
        if not message or not message.strip():
            raise ValidationError("Chat message is empty")
        try:
            task = TaskType(task_type)
        except ValueError as e:
            raise ValidationError(f"Unknown task type '{task_type}'", e) from e

        if self.store.get_owner(itinerary_id) != user_id:
            raise NotFoundError(f"Itinerary '{itinerary_id}' not found")
        itinerary = self.store.get_itinerary(itinerary_id)
        if itinerary is None:
            raise NotFoundError(f"Itinerary '{itinerary_id}' not found")

        agent = self.registry.resolve_chat_agent(task)
        context = AgentContext(
            itinerary_id=itinerary_id,
            request=request_from_itinerary(itinerary),
            generator=self.generator,
            currency=itinerary.currency,
            user_id=user_id,
        )
        logger.info(f"Chat '{task.value}' for {itinerary_id} routed to {agent.agent_id}")
        response = await agent.handle_chat(context, itinerary, message)

        result = ChatResult(
            message=response.message,
            task_type=task,
            agent_id=agent.agent_id,
            change_set=response.change_set,
        )
        if response.change_set is None:
            return result

        if response.change_set.preferences.auto_apply:
            result.applied = await self.edit_service.apply(
                itinerary_id, response.change_set
            )
        else:
            result.proposal = await self.edit_service.propose(
                itinerary_id, response.change_set
            )
        return result
