"""
State carried through the batch graph.

One `BatchState` describes a batch of consecutive days as it moves through
the pipeline stages. Graph nodes return partial updates; a failed stage sets
`error` and `failed_stage`, which routes the graph straight to its end.
"""

from pydantic import BaseModel, Field

from itinerary_planner.data.models import NormalizedDay


class BatchState(BaseModel):
    """State of one batch of days in the generation pipeline."""

    itinerary_id: str
    batch_index: int = 0
    day_numbers: list[int] = Field(default_factory=list)
    days: list[NormalizedDay] = Field(default_factory=list)
    completed_stages: list[str] = Field(default_factory=list)
    items_processed: dict[str, int] = Field(default_factory=dict)
    error: str | None = None
    failed_stage: str | None = None

    @property
    def failed(self) -> bool:
        """Whether a stage of this batch failed."""
        return self.error is not None
