"""
Agent registry for the itinerary planner system.

This module provides the capability table that routes every task type to
its handler(s). Task types form a closed enumeration and each registered
agent declares the tasks it supports, a priority and whether it may be
reached from chat. For chat-triggered tasks exactly one enabled,
chat-enabled agent must match; anything else is a configuration defect
reported as an AmbiguousRoutingError instead of silently picking one.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from itinerary_planner.utils.error_handling import AmbiguousRoutingError, NotFoundError
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


class TaskType(str, Enum):
    """Closed set of tasks an agent may be asked to perform."""

    SKELETON = "skeleton"
    POPULATE_ATTRACTIONS = "populate_attractions"
    POPULATE_MEALS = "populate_meals"
    POPULATE_TRANSPORT = "populate_transport"
    ENRICH = "enrich"
    ESTIMATE_COSTS = "estimate_costs"
    EDIT = "edit"
    EXPLAIN = "explain"


# Tasks that can be triggered from chat and must route to exactly one agent
CHAT_TASKS: frozenset[TaskType] = frozenset(
    {TaskType.EDIT, TaskType.EXPLAIN, TaskType.ENRICH}
)


class AgentCapabilities(BaseModel):
    """What an agent can do and how it is preferred."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    supported_tasks: frozenset[TaskType] = Field(default_factory=frozenset)
    supported_data_sections: frozenset[str] = Field(default_factory=frozenset)
    priority: int = Field(default=50, description="Lower values are preferred")
    chat_enabled: bool = False
    enabled: bool = True
    configuration: dict[str, Any] = Field(default_factory=dict)

    def supports(self, task_type: TaskType) -> bool:
        """Check whether the agent declares support for a task."""
        return task_type in self.supported_tasks


@dataclass
class _Registration:
    capabilities: AgentCapabilities
    agent: Any
    order: int


class AgentRegistry:
    """
    Central capability table for agent routing.

    Registration is idempotent (last write wins) and keeps the position an
    agent first registered at, which breaks priority ties.
    """

    def __init__(
        self,
        entries: Iterable[tuple[AgentCapabilities, Any]] | None = None,
    ):
        """
        Initialize the agent registry.

        Args:
            entries: Optional (capabilities, agent) pairs to register. When
                given, the registry is validated before construction returns.

        Raises:
            AmbiguousRoutingError: If entries were given and a chat task does
                not route to exactly one agent
        """
        self._entries: dict[str, _Registration] = {}
        self._next_order = 0

        if entries is not None:
            for capabilities, agent in entries:
                self.register(capabilities.agent_id, capabilities, agent)
            self.validate()

    def register(
        self, agent_id: str, capabilities: AgentCapabilities, agent: Any = None
    ) -> None:
        """
        Register an agent in the registry.

        Args:
            agent_id: Identifier of the agent
            capabilities: Capabilities the agent declares
            agent: Agent instance that serves the tasks (optional)
        """
        if capabilities.agent_id != agent_id:
            capabilities = capabilities.model_copy(update={"agent_id": agent_id})

        existing = self._entries.get(agent_id)
        if existing is not None:
            order = existing.order
            logger.debug(f"Re-registering agent: {agent_id}")
        else:
            order = self._next_order
            self._next_order += 1

        self._entries[agent_id] = _Registration(capabilities, agent, order)
        logger.debug(
            f"Registered agent: {agent_id} "
            f"(tasks: {sorted(t.value for t in capabilities.supported_tasks)}, "
            f"priority: {capabilities.priority}, chat: {capabilities.chat_enabled})"
        )

    def _registration(self, agent_id: str) -> _Registration:
        registration = self._entries.get(agent_id)
        if registration is None:
            raise NotFoundError(f"Agent '{agent_id}' not registered")
        return registration

    def _matching(self, task_type: TaskType, chat_only: bool) -> list[_Registration]:
        matches = [
            r
            for r in self._entries.values()
            if r.capabilities.enabled
            and r.capabilities.supports(task_type)
            and (r.capabilities.chat_enabled or not chat_only)
        ]
        return sorted(matches, key=lambda r: (r.capabilities.priority, r.order))

    def resolve(
        self, task_type: TaskType, chat_only: bool = False
    ) -> list[AgentCapabilities]:
        """
        Resolve a task type to the agents that may handle it.

        Args:
            task_type: Task to route
            chat_only: Only consider chat-enabled agents

        Returns:
            Matching capabilities, most preferred first

        Raises:
            AmbiguousRoutingError: If a chat task resolved with chat_only does
                not match exactly one agent
        """
        task_type = TaskType(task_type)
        matches = self._matching(task_type, chat_only)

        if chat_only and task_type in CHAT_TASKS and len(matches) != 1:
            logger.error(
                f"Chat task '{task_type.value}' resolved to {len(matches)} agents"
            )
            raise AmbiguousRoutingError({task_type.value: len(matches)})

        return [r.capabilities for r in matches]

    def resolve_chat_agent(self, task_type: TaskType) -> Any:
        """
        Return the single agent that serves a chat task.

        Raises:
            AmbiguousRoutingError: If zero or several agents match
        """
        task_type = TaskType(task_type)
        matches = self._matching(task_type, chat_only=True)
        if len(matches) != 1:
            raise AmbiguousRoutingError({task_type.value: len(matches)})
        return matches[0].agent

    def resolve_pipeline_agent(self, task_type: TaskType) -> Any:
        """
        Return the preferred agent for a pipeline task.

        Raises:
            AmbiguousRoutingError: If no enabled agent supports the task
        """
        task_type = TaskType(task_type)
        matches = self._matching(task_type, chat_only=False)
        if not matches:
            raise AmbiguousRoutingError({task_type.value: 0})
        return matches[0].agent

    def validate(self) -> None:
        """
        Check that every chat task routes to exactly one chat-enabled agent.

        Raises:
            AmbiguousRoutingError: Listing every offending task type
        """
        problems = {}
        for task_type in sorted(CHAT_TASKS, key=lambda t: t.value):
            count = len(self._matching(task_type, chat_only=True))
            if count != 1:
                problems[task_type.value] = count

        if problems:
            logger.error(f"Agent registry validation failed: {problems}")
            raise AmbiguousRoutingError(problems)

        logger.debug("Agent registry validation passed")

    def enable(self, agent_id: str) -> None:
        """Enable a registered agent."""
        self._set_enabled(agent_id, True)

    def disable(self, agent_id: str) -> None:
        """Disable a registered agent."""
        self._set_enabled(agent_id, False)

    def _set_enabled(self, agent_id: str, enabled: bool) -> None:
        registration = self._registration(agent_id)
        registration.capabilities = registration.capabilities.model_copy(
            update={"enabled": enabled}
        )
        logger.info(f"{'Enabled' if enabled else 'Disabled'} agent: {agent_id}")

    def get(self, agent_id: str) -> Any:
        """
        Get an agent from the registry.

        Raises:
            NotFoundError: If the agent is not registered
        """
        return self._registration(agent_id).agent

    def capabilities_for(self, agent_id: str) -> AgentCapabilities:
        """
        Get the capabilities an agent registered with.

        Raises:
            NotFoundError: If the agent is not registered
        """
        return self._registration(agent_id).capabilities

    def agents_for_data_section(self, section: str) -> list[AgentCapabilities]:
        """Return enabled agents that write a data section, most preferred first."""
        matches = [
            r
            for r in self._entries.values()
            if r.capabilities.enabled and section in r.capabilities.supported_data_sections
        ]
        matches.sort(key=lambda r: (r.capabilities.priority, r.order))
        return [r.capabilities for r in matches]

    @property
    def agent_ids(self) -> list[str]:
        """Registered agent ids in registration order."""
        return [
            agent_id
            for agent_id, _ in sorted(self._entries.items(), key=lambda kv: kv[1].order)
        ]

    def statistics(self) -> dict[str, Any]:
        """Summarize the registry for diagnostics."""
        capabilities = [r.capabilities for r in self._entries.values()]
        enabled = [c for c in capabilities if c.enabled]
        task_support: Counter[str] = Counter()
        for c in enabled:
            task_support.update(t.value for t in c.supported_tasks)

        return {
            "total_agents": len(capabilities),
            "enabled_agents": len(enabled),
            "disabled_agents": len(capabilities) - len(enabled),
            "chat_enabled_agents": sum(1 for c in enabled if c.chat_enabled),
            "task_support": dict(sorted(task_support.items())),
        }

    def register_defaults(self) -> None:
        """Register all default agents in the registry."""
        from itinerary_planner.agents import DEFAULT_AGENT_CLASSES

        for agent_class in DEFAULT_AGENT_CLASSES:
            agent = agent_class()
            self.register(agent.agent_id, agent.capabilities(), agent)

        logger.info("Default agents registered")

    def clear(self) -> None:
        """Clear all registered agents (useful for testing)."""
        self._entries.clear()
        self._next_order = 0
        logger.debug("Agent registry cleared")

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def build_default_registry() -> AgentRegistry:
    """
    Build a registry holding the stock agents and validate it.

    Raises:
        AmbiguousRoutingError: If the stock table is misconfigured
    """
    registry = AgentRegistry()
    registry.register_defaults()
    registry.validate()
    return registry
