"""
State definitions for the generation pipeline.
"""

from itinerary_planner.orchestration.states.batch_state import BatchState
from itinerary_planner.orchestration.states.pipeline_stages import (
    STAGE_ORDER,
    STAGE_TASKS,
    PipelineStage,
    next_stage,
    stage_progress,
)

__all__ = [
    "STAGE_ORDER",
    "STAGE_TASKS",
    "BatchState",
    "PipelineStage",
    "next_stage",
    "stage_progress",
]
