"""
Pipeline stage definitions for the itinerary planner system.

This module defines the fixed sequence of stages every batch of days goes
through, and the task type each stage is routed by.
"""

from enum import Enum

from itinerary_planner.orchestration.core.agent_registry import TaskType


class PipelineStage(str, Enum):
    """Enum representing the stages of the generation pipeline, in order."""

    SKELETON = "skeleton"
    ACTIVITIES = "activities"
    MEALS = "meals"
    TRANSPORT = "transport"
    ENRICHMENT = "enrichment"
    COST_ESTIMATION = "cost_estimation"
    FINALIZATION = "finalization"


STAGE_ORDER: tuple[PipelineStage, ...] = tuple(PipelineStage)

# Finalization is carried out by the orchestrator itself
STAGE_TASKS: dict[PipelineStage, TaskType] = {
    PipelineStage.SKELETON: TaskType.SKELETON,
    PipelineStage.ACTIVITIES: TaskType.POPULATE_ATTRACTIONS,
    PipelineStage.MEALS: TaskType.POPULATE_MEALS,
    PipelineStage.TRANSPORT: TaskType.POPULATE_TRANSPORT,
    PipelineStage.ENRICHMENT: TaskType.ENRICH,
    PipelineStage.COST_ESTIMATION: TaskType.ESTIMATE_COSTS,
}


def next_stage(stage: PipelineStage) -> PipelineStage | None:
    """Return the stage that follows `stage`, or None after the last one."""
    index = STAGE_ORDER.index(stage)
    return STAGE_ORDER[index + 1] if index + 1 < len(STAGE_ORDER) else None


def stage_progress(batch_index: int, batch_count: int, stage: PipelineStage) -> int:
    """
    Overall pipeline progress, in percent, once `stage` of a batch is done.

    Args:
        batch_index: Zero-based index of the batch
        batch_count: Number of batches in the run
        stage: Stage that just completed
    """
    if batch_count <= 0:
        return 100
    done = batch_index + (STAGE_ORDER.index(stage) + 1) / len(STAGE_ORDER)
    return min(100, int(done * 100 / batch_count))
