"""
Graph builder for the batch generation workflow.

This module builds the LangGraph state graph one batch of days runs
through. Each pipeline stage is a node; after every node a conditional
edge either continues to the next stage or, once a stage has failed,
ends the run so later stages never start.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from langgraph.graph import END, START, StateGraph

from itinerary_planner.orchestration.states.batch_state import BatchState
from itinerary_planner.orchestration.states.pipeline_stages import (
    STAGE_ORDER,
    PipelineStage,
)
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)

StageRunner = Callable[[PipelineStage, BatchState], Awaitable[dict[str, Any]]]


def node_name(stage: PipelineStage) -> str:
    """Graph node name for a stage."""
    return f"run_{stage.value}"


def route_after_stage(state: BatchState) -> str:
    """Decide whether the batch continues after a stage."""
    return "failed" if state.failed else "continue"


def _stage_node(
    run_stage: StageRunner, stage: PipelineStage
) -> Callable[[BatchState], Awaitable[dict[str, Any]]]:
    async def node(state: BatchState) -> dict[str, Any]:
        return await run_stage(stage, state)

    node.__name__ = node_name(stage)
    node.__doc__ = f"Run the {stage.value} stage for a batch of days."
    return node


def create_batch_graph(
    run_stage: StageRunner, stages: Sequence[PipelineStage] = STAGE_ORDER
):
    """
    Create the state graph for one batch of days.

    The graph implements this flow:
        START -> skeleton -> activities -> meals -> transport
              -> enrichment -> cost_estimation -> finalization -> END
    with a shortcut to END after any stage that failed.

    Args:
        run_stage: Coroutine that runs one stage and returns a state update
        stages: Stages to chain, in order

    Returns:
        Compiled graph
    """
    if not stages:
        raise ValueError("A batch graph needs at least one stage")

    workflow = StateGraph(BatchState)

    for stage in stages:
        workflow.add_node(node_name(stage), _stage_node(run_stage, stage))

    workflow.add_edge(START, node_name(stages[0]))

    for current, following in zip(stages, stages[1:], strict=False):
        workflow.add_conditional_edges(
            node_name(current),
            route_after_stage,
            {"continue": node_name(following), "failed": END},
        )

    workflow.add_edge(node_name(stages[-1]), END)

    logger.debug(f"Batch graph compiled with {len(stages)} stages")
    return workflow.compile()
