"""
Activity agent.

Fills in the attractions and activities of each day's skeleton with concrete
places, descriptions and visiting tips.
"""

from itinerary_planner.agents.base import NodePopulationAgent
from itinerary_planner.data.models import NodeType
from itinerary_planner.orchestration.core.agent_registry import TaskType


class ActivityAgent(NodePopulationAgent):
    """Populates attraction, activity and free-time nodes."""

    agent_id = "activity_agent"
    model_key = "activity"
    instructions = (
        "You choose concrete attractions and activities for itinerary slots. "
        "Pick real, well-known places near the day's base that fit the slot "
        "time and the traveller's themes. Keep descriptions short."
    )
    supported_tasks = frozenset({TaskType.POPULATE_ATTRACTIONS})
    data_sections = frozenset({"nodes", "attractions"})
    priority = 10
    node_types = frozenset({NodeType.ATTRACTION, NodeType.ACTIVITY, NodeType.FREE_TIME})
    stage = "activities"
    focus = (
        "For each attraction or activity slot give a concrete place: title, "
        "short description, category, rating (0-5), location name and address."
    )
