"""
Itinerary generation orchestrator.

Creating an itinerary has two phases. The synchronous phase allocates the
id, persists an empty skeleton and records ownership before returning, so
an ownership check made right afterwards always succeeds. The asynchronous
phase runs on the orchestrator's own pipeline pool: it waits for the first
subscriber (or a bounded timeout), then generates the days in small batches.

Each batch runs through a LangGraph state graph of the fixed stage sequence
skeleton -> activities -> meals -> transport -> enrichment ->
cost_estimation -> finalization. Within a stage the days of a batch are
generated concurrently; stages run strictly one after another and each one
is persisted before the next starts. Days are appended to the stored
document only at finalization, so readers never see a half-built day.

A stage failure ends its batch, is published as an `error` event and is not
retried here. Days from earlier batches stay valid. No later batch is
scheduled, which keeps day numbers contiguous.
"""

import asyncio
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from itinerary_planner.agents.base import (
    AgentContext,
    BaseAgent,
    StageResult,
    trip_day_date,
)
from itinerary_planner.changes.node_ids import sync_node_seq
from itinerary_planner.config import PipelineConfig, config
from itinerary_planner.data.locks import ItineraryLocks
from itinerary_planner.data.models import (
    AgentRunStatus,
    AgentStatus,
    CreateItineraryRequest,
    GenerationProgress,
    GenerationState,
    NormalizedDay,
    NormalizedItinerary,
)
from itinerary_planner.data.store import ItineraryStore
from itinerary_planner.events.broadcast import EventBroadcast
from itinerary_planner.events.models import (
    EventKind,
    agent_complete_data,
    agent_progress_data,
    day_completed_data,
    phase_transition_data,
)
from itinerary_planner.orchestration.core.agent_registry import AgentRegistry
from itinerary_planner.orchestration.core.graph_builder import create_batch_graph
from itinerary_planner.orchestration.states.batch_state import BatchState
from itinerary_planner.orchestration.states.pipeline_stages import (
    STAGE_ORDER,
    STAGE_TASKS,
    PipelineStage,
    stage_progress,
)
from itinerary_planner.utils.error_handling import (
    AmbiguousRoutingError,
    NotFoundError,
    StageFailure,
    user_message_for,
)
from itinerary_planner.utils.helpers import chunked, generate_id, utc_now
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)

ORCHESTRATOR_ID = "orchestrator"


class ItineraryOrchestrator:
    """Drives itinerary generation end to end."""

    def __init__(
        self,
        store: ItineraryStore,
        registry: AgentRegistry,
        broadcast: EventBroadcast,
        generator: Any,
        locks: ItineraryLocks | None = None,
        settings: PipelineConfig | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Persistence collaborator
            registry: Validated agent registry
            broadcast: Event broadcast for progress events
            generator: GenerationClient handed to agents through their context
            locks: Writer locks shared with the edit service
            settings: Pipeline configuration (defaults to the global config)
        """
        self.store = store
        self.registry = registry
        self.broadcast = broadcast
        self.generator = generator
        self.locks = locks if locks is not None else ItineraryLocks()
        self.settings = settings or config.pipeline
        self._pool = asyncio.Semaphore(self.settings.pipeline_workers)
        self._runs: dict[str, asyncio.Task] = {}
        self._stop_requested: set[str] = set()

    # --- Synchronous phase ---

    def create_itinerary(
        self,
        user_id: str,
        request: CreateItineraryRequest,
        start_generation: bool = True,
    ) -> str:
        """
        Create an itinerary and schedule its generation.

        The skeleton document and the ownership record are durable before this
        returns. Must be called from the event loop thread when
        start_generation is True.

        Args:
            user_id: Creating user, recorded as owner
            request: Trip parameters
            start_generation: Schedule the asynchronous phase

        Returns:
            The new itinerary id
        """
        itinerary_id = generate_id("it")
        end_date = (
            request.start_date + timedelta(days=request.duration_days - 1)
            if request.start_date
            else None
        )
        doc = NormalizedItinerary(
            itinerary_id=itinerary_id,
            version=1,
            user_id=user_id,
            currency=request.currency,
            themes=list(request.themes),
            origin=request.origin,
            destination=request.destination,
            start_date=request.start_date,
            end_date=end_date,
            duration_days=request.duration_days,
            generation=GenerationProgress(status=GenerationState.PENDING),
            created_at=utc_now(),
        )

        self.store.create_itinerary(doc)
        self.store.record_ownership(user_id, itinerary_id)
        logger.info(
            f"Created itinerary {itinerary_id} for {user_id}: "
            f"{request.duration_days} days in {request.destination}"
        )

        if start_generation:
            self._runs[itinerary_id] = asyncio.get_running_loop().create_task(
                self.run_generation(itinerary_id, request, user_id),
                name=f"generate-{itinerary_id}",
            )
        return itinerary_id

    def get_owner(self, itinerary_id: str) -> str:
        """
        Return the owner of an itinerary.

        Raises:
            NotFoundError: If no ownership record exists
        """
        owner = self.store.get_owner(itinerary_id)
        if owner is None:
            raise NotFoundError(f"Itinerary '{itinerary_id}' not found")
        return owner

    def is_owner(self, user_id: str, itinerary_id: str) -> bool:
        """Check whether user_id owns itinerary_id."""
        return self.store.get_owner(itinerary_id) == user_id

    def get_itinerary(self, itinerary_id: str, user_id: str) -> NormalizedItinerary:
        """
        Return the latest committed itinerary for its owner.

        Raises:
            NotFoundError: If it does not exist or is not owned by user_id
        """
        if not self.is_owner(user_id, itinerary_id):
            raise NotFoundError(f"Itinerary '{itinerary_id}' not found")
        itinerary = self.store.get_itinerary(itinerary_id)
        if itinerary is None:
            raise NotFoundError(f"Itinerary '{itinerary_id}' not found")
        return itinerary

    # --- Control ---

    def request_stop(self, itinerary_id: str) -> bool:
        """
        Stop scheduling batches for a running generation.

        The batch in flight finishes; nothing is cancelled mid-stage.

        Returns:
            True if a run was active
        """
        task = self._runs.get(itinerary_id)
        if task is None or task.done():
            return False
        self._stop_requested.add(itinerary_id)
        logger.info(f"Stop requested for {itinerary_id}")
        return True

    def is_running(self, itinerary_id: str) -> bool:
        """Whether a generation run is active for the itinerary."""
        task = self._runs.get(itinerary_id)
        return task is not None and not task.done()

    async def wait_for_generation(
        self, itinerary_id: str, timeout: float | None = None
    ) -> None:
        """Wait until the itinerary's generation run has ended."""
        task = self._runs.get(itinerary_id)
        if task is None:
            return
        async with asyncio.timeout(timeout):
            await asyncio.shield(task)

    async def shutdown(self) -> None:
        """Stop every run at its next batch boundary and wait for them."""
        tasks = [task for task in self._runs.values() if not task.done()]
        for itinerary_id in list(self._runs):
            self.request_stop(itinerary_id)
        if tasks:
            await asyncio.gather(*tasks)
        logger.info("Orchestrator shut down")

    # --- Asynchronous phase ---

    async def run_generation(
        self,
        itinerary_id: str,
        request: CreateItineraryRequest,
        user_id: str | None = None,
    ) -> GenerationState:
        """
        Generate every day of an itinerary.

        Returns:
            Final generation state
        """
        async with self._pool:
            try:
                ready = await self.broadcast.wait_for_subscriber(
                    itinerary_id, self.settings.readiness_timeout
                )
                if not ready:
                    logger.info(
                        f"No subscriber for {itinerary_id}; generating without one"
                    )
                return await self._generate(itinerary_id, request, user_id)
            except Exception as e:
                logger.exception(f"Generation of {itinerary_id} crashed: {e!s}")
                await self._finish_failed(itinerary_id, e, None, [])
                return GenerationState.FAILED
            finally:
                self._stop_requested.discard(itinerary_id)
                self._runs.pop(itinerary_id, None)

    async def _generate(
        self,
        itinerary_id: str,
        request: CreateItineraryRequest,
        user_id: str | None,
    ) -> GenerationState:
        context = AgentContext(
            itinerary_id=itinerary_id,
            request=request,
            generator=self.generator,
            currency=request.currency,
            user_id=user_id,
        )
        batches = list(
            chunked(range(1, request.duration_days + 1), self.settings.days_per_batch)
        )

        def mark_running(doc: NormalizedItinerary) -> None:
            doc.generation.status = GenerationState.RUNNING
            doc.generation.progress = 0
            doc.generation.current_stage = STAGE_ORDER[0].value

        await self._mutate(itinerary_id, mark_running)
        self.broadcast.publish(
            itinerary_id,
            EventKind.AGENT_PROGRESS,
            agent_progress_data(
                0,
                "start",
                f"Planning {request.duration_days} days in {request.destination}",
            ),
        )

        graph = create_batch_graph(self._stage_runner(context, len(batches)))

        for batch_index, day_numbers in enumerate(batches):
            if itinerary_id in self._stop_requested:
                await self._finish_stopped(itinerary_id)
                return GenerationState.STOPPED

            logger.info(
                f"Itinerary {itinerary_id}: batch {batch_index + 1}/{len(batches)} "
                f"(days {day_numbers})"
            )
            initial = BatchState(
                itinerary_id=itinerary_id,
                batch_index=batch_index,
                day_numbers=day_numbers,
                days=[
                    NormalizedDay(day_number=n, date=trip_day_date(request, n))
                    for n in day_numbers
                ],
            )
            final = BatchState.model_validate(await graph.ainvoke(initial))

            if final.failed:
                error = StageFailure(final.error or "", ORCHESTRATOR_ID, final.failed_stage)
                await self._finish_failed(
                    itinerary_id, error, final.failed_stage, day_numbers
                )
                return GenerationState.FAILED

        await self._finish_completed(itinerary_id, request)
        return GenerationState.COMPLETED

    # --- Stages ---

    def _stage_runner(
        self, context: AgentContext, batch_count: int
    ) -> Callable[[PipelineStage, BatchState], Any]:
        async def run_stage(stage: PipelineStage, state: BatchState) -> dict[str, Any]:
            index = STAGE_ORDER.index(stage)
            if index > 0:
                from_phase = STAGE_ORDER[index - 1].value
            else:
                from_phase = STAGE_ORDER[-1].value if state.batch_index > 0 else None
            self.broadcast.publish(
                context.itinerary_id,
                EventKind.PHASE_TRANSITION,
                phase_transition_data(from_phase, stage.value),
            )

            if stage == PipelineStage.FINALIZATION:
                return await self._finalize(context, state, batch_count)
            return await self._run_agent_stage(context, stage, state, batch_count)

        return run_stage

    async def _run_agent_stage(
        self,
        context: AgentContext,
        stage: PipelineStage,
        state: BatchState,
        batch_count: int,
    ) -> dict[str, Any]:
        itinerary_id = context.itinerary_id
        try:
            agent = self.registry.resolve_pipeline_agent(STAGE_TASKS[stage])
            results = await self._run_days(agent, context, stage, state.days)
        except (StageFailure, AmbiguousRoutingError) as e:
            logger.error(
                f"Stage {stage.value} failed for {itinerary_id} "
                f"days {state.day_numbers}: {e!s}"
            )
            agent_id = getattr(e, "agent_name", ORCHESTRATOR_ID)
            await self._record_agent(
                itinerary_id, agent_id, AgentRunStatus.FAILED, 0, stage, None
            )
            return {"error": str(e), "failed_stage": stage.value}

        items = sum(result.items_processed for result in results)
        progress = stage_progress(state.batch_index, batch_count, stage)
        await self._record_agent(
            itinerary_id, agent.agent_id, AgentRunStatus.COMPLETED, items, stage, progress
        )

        self.broadcast.publish(
            itinerary_id,
            EventKind.AGENT_PROGRESS,
            agent_progress_data(
                progress,
                stage.value,
                f"{stage.value.replace('_', ' ').capitalize()} done for "
                f"day(s) {', '.join(str(n) for n in state.day_numbers)}",
            ),
        )
        self.broadcast.publish(
            itinerary_id,
            EventKind.AGENT_COMPLETE,
            agent_complete_data(agent.agent_id, items),
        )

        return {
            "days": [result.day for result in results],
            "completed_stages": [*state.completed_stages, stage.value],
            "items_processed": {**state.items_processed, stage.value: items},
        }

    async def _run_days(
        self,
        agent: BaseAgent,
        context: AgentContext,
        stage: PipelineStage,
        days: list[NormalizedDay],
    ) -> list[StageResult]:
        """Run one stage for every day of a batch."""

        async def run_day(day: NormalizedDay) -> StageResult:
            try:
                async with asyncio.timeout(self.settings.ai_timeout):
                    return await agent.process_day(context, day)
            except TimeoutError as e:
                raise StageFailure(
                    f"Timed out on day {day.day_number}", agent.agent_id, stage.value, e
                ) from e

        if not self.settings.parallel_days:
            return [await run_day(day) for day in days]

        outcomes = await asyncio.gather(
            *(run_day(day) for day in days), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(outcomes)

    async def _finalize(
        self, context: AgentContext, state: BatchState, batch_count: int
    ) -> dict[str, Any]:
        itinerary_id = context.itinerary_id
        days = [day.model_copy(deep=True) for day in state.days]
        for day in days:
            sync_node_seq(day)
            day.recompute_totals()
            day.warnings = _timing_warnings(day)

        progress = stage_progress(state.batch_index, batch_count, PipelineStage.FINALIZATION)

        def commit_days(doc: NormalizedItinerary) -> None:
            expected_first = len(doc.days) + 1
            if days and days[0].day_number != expected_first:
                raise StageFailure(
                    f"Day {days[0].day_number} does not follow day {expected_first - 1}",
                    ORCHESTRATOR_ID,
                    PipelineStage.FINALIZATION.value,
                )
            doc.days.extend(days)
            doc.generation.completed_days = len(doc.days)
            doc.generation.progress = progress
            doc.generation.current_stage = PipelineStage.FINALIZATION.value

        try:
            await self._mutate(itinerary_id, commit_days)
        except StageFailure as e:
            logger.error(f"Finalization failed for {itinerary_id}: {e!s}")
            return {"error": str(e), "failed_stage": PipelineStage.FINALIZATION.value}

        for day in days:
            self.broadcast.publish(
                itinerary_id,
                EventKind.DAY_COMPLETED,
                day_completed_data(day.day_number, len(day.nodes)),
            )
        self.broadcast.publish(
            itinerary_id,
            EventKind.AGENT_PROGRESS,
            agent_progress_data(
                progress,
                PipelineStage.FINALIZATION.value,
                f"Day(s) {', '.join(str(d.day_number) for d in days)} ready",
            ),
        )
        return {
            "days": days,
            "completed_stages": [*state.completed_stages, PipelineStage.FINALIZATION.value],
        }

    # --- Persistence ---

    async def _mutate(
        self, itinerary_id: str, mutate: Callable[[NormalizedItinerary], None]
    ) -> NormalizedItinerary:
        """Load, change and commit the itinerary under its writer lock."""
        async with self.locks.lock_for(itinerary_id):
            doc = self.store.get_itinerary(itinerary_id)
            if doc is None:
                raise NotFoundError(f"Itinerary '{itinerary_id}' not found")
            expected = doc.version
            mutate(doc)
            doc.version = expected + 1
            return self.store.update_itinerary(doc, expected_version=expected)

    async def _record_agent(
        self,
        itinerary_id: str,
        agent_id: str,
        status: AgentRunStatus,
        items: int,
        stage: PipelineStage,
        progress: int | None,
    ) -> None:
        def update(doc: NormalizedItinerary) -> None:
            previous = doc.agents.get(agent_id)
            total = (previous.items_processed if previous else 0) + items
            doc.agents[agent_id] = AgentStatus(
                status=status,
                items_processed=total,
                message=f"{stage.value} {status.value}",
                updated_at=utc_now(),
            )
            doc.generation.current_stage = stage.value
            if progress is not None:
                doc.generation.progress = progress

        await self._mutate(itinerary_id, update)

    async def _finish_completed(
        self, itinerary_id: str, request: CreateItineraryRequest
    ) -> None:
        def complete(doc: NormalizedItinerary) -> None:
            node_total = doc.node_count()
            doc.summary = doc.summary or (
                f"{request.duration_days}-day trip to {request.destination} "
                f"with {node_total} planned stops"
            )
            doc.generation.status = GenerationState.COMPLETED
            doc.generation.progress = 100
            doc.generation.current_stage = None

        doc = await self._mutate(itinerary_id, complete)
        logger.info(f"Generation of {itinerary_id} completed ({len(doc.days)} days)")
        self.broadcast.publish(
            itinerary_id,
            EventKind.GENERATION_COMPLETE,
            {
                "status": GenerationState.COMPLETED.value,
                "progress": 100,
                "message": "Your itinerary is ready",
                "totalDays": len(doc.days),
                "totalNodes": doc.node_count(),
                "version": doc.version,
            },
        )

    async def _finish_stopped(self, itinerary_id: str) -> None:
        def stop(doc: NormalizedItinerary) -> None:
            doc.generation.status = GenerationState.STOPPED
            doc.generation.current_stage = None

        doc = await self._mutate(itinerary_id, stop)
        logger.info(f"Generation of {itinerary_id} stopped after {len(doc.days)} days")
        self.broadcast.publish(
            itinerary_id,
            EventKind.WARNING,
            {
                "message": f"Generation stopped after {len(doc.days)} day(s)",
                "completedDays": len(doc.days),
            },
        )
        self.broadcast.publish(
            itinerary_id,
            EventKind.GENERATION_COMPLETE,
            {
                "status": GenerationState.STOPPED.value,
                "progress": doc.generation.progress,
                "message": "Generation stopped",
                "totalDays": len(doc.days),
                "totalNodes": doc.node_count(),
                "version": doc.version,
            },
        )

    async def _finish_failed(
        self,
        itinerary_id: str,
        error: Exception,
        stage: str | None,
        day_numbers: list[int],
    ) -> None:
        message = user_message_for(error)

        def fail(doc: NormalizedItinerary) -> None:
            doc.generation.status = GenerationState.FAILED
            doc.generation.failed_days = list(day_numbers)
            doc.generation.error = message
            doc.generation.current_stage = stage

        try:
            doc = await self._mutate(itinerary_id, fail)
            progress = doc.generation.progress
        except NotFoundError:
            logger.error(f"Itinerary {itinerary_id} vanished during generation")
            progress = 0

        self.broadcast.publish(
            itinerary_id,
            EventKind.ERROR,
            {
                "status": GenerationState.FAILED.value,
                "progress": progress,
                "message": message,
                "stage": stage,
                "dayNumbers": list(day_numbers),
            },
        )


def _timing_warnings(day: NormalizedDay) -> list[str]:
    """Flag consecutive nodes whose times overlap."""
    warnings = []
    for current, following in zip(day.nodes, day.nodes[1:], strict=False):
        end = current.timing.end_time
        start = following.timing.start_time
        if end is not None and start is not None and start < end:
            warnings.append(f"'{current.title}' overlaps '{following.title}'")
    return warnings
