"""
Core orchestration components for the itinerary generation workflow.

This package contains the agent registry that routes tasks to agents and the
graph builder (`graph_builder.create_batch_graph`) that chains pipeline
stages for one batch of days.
"""

from itinerary_planner.orchestration.core.agent_registry import (
    CHAT_TASKS,
    AgentCapabilities,
    AgentRegistry,
    TaskType,
    build_default_registry,
)

__all__ = [
    "CHAT_TASKS",
    "AgentCapabilities",
    "AgentRegistry",
    "TaskType",
    "build_default_registry",
]
