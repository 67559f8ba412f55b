"""
Meal agent.

Chooses restaurants and food stops for the meal slots of each day.
"""

from itinerary_planner.agents.base import NodePopulationAgent
from itinerary_planner.data.models import NodeType
from itinerary_planner.orchestration.core.agent_registry import TaskType


class MealAgent(NodePopulationAgent):
    """Populates meal nodes."""

    agent_id = "meal_agent"
    model_key = "meal"
    instructions = (
        "You recommend places to eat for itinerary meal slots. Prefer local "
        "cuisine close to the surrounding activities and within the budget tier."
    )
    supported_tasks = frozenset({TaskType.POPULATE_MEALS})
    data_sections = frozenset({"nodes", "meals"})
    priority = 10
    node_types = frozenset({NodeType.MEAL})
    stage = "meals"
    focus = (
        "For each meal slot name a restaurant: title, cuisine as category, "
        "short description, rating (0-5), location name and address."
    )
