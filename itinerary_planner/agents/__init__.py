"""
Agents for the Itinerary Planner system.
"""

from itinerary_planner.agents.activities import ActivityAgent
from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    ChatResponse,
    NodePopulationAgent,
    StageResult,
)
from itinerary_planner.agents.cost_estimator import CostEstimatorAgent
from itinerary_planner.agents.editor import EditorAgent
from itinerary_planner.agents.enrichment import EnrichmentAgent
from itinerary_planner.agents.explain import ExplainAgent
from itinerary_planner.agents.meals import MealAgent
from itinerary_planner.agents.skeleton import SkeletonPlannerAgent
from itinerary_planner.agents.transport import TransportAgent

# Stock agents in registration order
DEFAULT_AGENT_CLASSES: tuple[type[BaseAgent], ...] = (
    SkeletonPlannerAgent,
    ActivityAgent,
    MealAgent,
    TransportAgent,
    EnrichmentAgent,
    CostEstimatorAgent,
    EditorAgent,
    ExplainAgent,
)

__all__ = [
    "DEFAULT_AGENT_CLASSES",
    "ActivityAgent",
    "AgentContext",
    "BaseAgent",
    "ChatResponse",
    "CostEstimatorAgent",
    "EditorAgent",
    "EnrichmentAgent",
    "ExplainAgent",
    "MealAgent",
    "NodePopulationAgent",
    "SkeletonPlannerAgent",
    "StageResult",
    "TransportAgent",
]
