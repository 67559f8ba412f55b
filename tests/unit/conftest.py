"""
Test configuration for unit tests.
"""

import pytest

from itinerary_planner.changes.edit_service import ItineraryEditService
from itinerary_planner.config import BroadcastConfig, ChangeConfig, PipelineConfig
from itinerary_planner.data.locks import ItineraryLocks
from itinerary_planner.data.models import CreateItineraryRequest
from itinerary_planner.data.store import InMemoryItineraryStore
from itinerary_planner.events.broadcast import EventBroadcast
from itinerary_planner.events.transport import QueueTransport
from itinerary_planner.orchestration.core.agent_registry import build_default_registry
from itinerary_planner.orchestration.orchestrator import ItineraryOrchestrator
from tests.unit.factories import TRIP_START, make_itinerary
from tests.unit.fake_generation import ScriptedGenerationClient


@pytest.fixture
def itinerary():
    return make_itinerary()


@pytest.fixture
def trip_request():
    return CreateItineraryRequest(
        destination="Kyoto",
        duration_days=4,
        start_date=TRIP_START,
        themes=["temples", "food"],
        currency="JPY",
    )


@pytest.fixture
def generator():
    return ScriptedGenerationClient()


@pytest.fixture
def store():
    return InMemoryItineraryStore()


@pytest.fixture
def locks():
    return ItineraryLocks()


@pytest.fixture
def transport():
    return QueueTransport()


@pytest.fixture
def broadcast(transport):
    return EventBroadcast(transport, BroadcastConfig(grace_period=60.0))


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def pipeline_settings():
    return PipelineConfig(
        days_per_batch=2,
        pipeline_workers=2,
        readiness_timeout=0.05,
        ai_timeout=5.0,
        parallel_days=True,
    )


@pytest.fixture
def orchestrator(store, registry, broadcast, generator, locks, pipeline_settings):
    return ItineraryOrchestrator(
        store, registry, broadcast, generator, locks, pipeline_settings
    )


@pytest.fixture
def edit_service(store, broadcast, locks):
    return ItineraryEditService(
        store, broadcast, locks, settings=ChangeConfig(max_revisions=5)
    )
