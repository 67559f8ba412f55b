"""
Unit tests for chat task dispatch.
"""

import json

import pytest

from itinerary_planner.events.models import EventKind
from itinerary_planner.orchestration.core.agent_registry import (
    AgentCapabilities,
    TaskType,
)
from itinerary_planner.services.chat_service import ChatService
from itinerary_planner.utils.error_handling import (
    AmbiguousRoutingError,
    NotFoundError,
    ValidationError,
)


def edit_answer(auto_apply: bool) -> str:
    return json.dumps(
        {
            "reply": "Moved the morning visit to 10:00.",
            "change_set": {
                "scope": "day",
                "day": 2,
                "ops": [
                    {
                        "op": "move",
                        "id": "day2_node1",
                        "startTime": "2026-05-02T10:00:00Z",
                    }
                ],
                "preferences": {"autoApply": auto_apply},
            },
        }
    )


@pytest.fixture
def stored(store, itinerary):
    store.create_itinerary(itinerary)
    store.record_ownership("user-1", itinerary.itinerary_id)
    return itinerary


@pytest.fixture
def chat(store, registry, edit_service, generator):
    return ChatService(store, registry, edit_service, generator)


@pytest.mark.asyncio
async def test_explain_answers_without_changes(chat, store, generator, stored):
    result = await chat.handle(stored.itinerary_id, "user-1", "explain", "What is on day 1?")

    assert result.agent_id == "explain_agent"
    assert result.task_type == TaskType.EXPLAIN
    assert result.message == "The first day starts with a morning sight."
    assert result.change_set is None
    assert store.get_itinerary(stored.itinerary_id).version == 1
    assert "What is on day 1?" in generator.calls[-1]["prompt"]


@pytest.mark.asyncio
async def test_edit_is_proposed_by_default(chat, store, generator, stored):
    generator.override("EditorResponse", edit_answer(auto_apply=False))

    result = await chat.handle(stored.itinerary_id, "user-1", TaskType.EDIT, "Start later")

    assert result.agent_id == "editor_agent"
    assert result.change_set.agent == "editor_agent"
    assert result.change_set.reason == "Start later"
    assert result.applied is None
    assert result.proposal.preview_version == 2
    assert result.proposal.diff.updated[0].node_id == "day2_node1"
    assert store.get_itinerary(stored.itinerary_id).version == 1


@pytest.mark.asyncio
async def test_edit_with_auto_apply_commits(chat, store, broadcast, generator, stored):
    generator.override("EditorResponse", edit_answer(auto_apply=True))

    result = await chat.handle(stored.itinerary_id, "user-1", "edit", "Start later")

    assert result.proposal is None
    assert result.applied.to_version == 2
    current = store.get_itinerary(stored.itinerary_id)
    assert current.version == 2
    assert current.find_day(2).nodes[0].updated_by == "editor_agent"
    events = broadcast.buffered_events(stored.itinerary_id)
    assert events[-1].kind == EventKind.ITINERARY_UPDATED
    assert events[-1].data["agent"] == "editor_agent"


@pytest.mark.asyncio
async def test_edit_without_operations_returns_reply_only(chat, stored):
    result = await chat.handle(stored.itinerary_id, "user-1", "edit", "Anything to fix?")

    assert result.message == "Nothing to change."
    assert result.change_set is None
    assert result.proposal is None


@pytest.mark.asyncio
async def test_enrich_skips_locked_nodes(chat, stored):
    result = await chat.handle(stored.itinerary_id, "user-1", "enrich", "Add tips")

    updated = {item.node_id for item in result.proposal.diff.updated}
    assert result.agent_id == "enrichment_agent"
    assert "day1_node3" not in updated
    assert len(updated) == 5
    assert all(op.op.value == "replace" for op in result.change_set.ops)


@pytest.mark.asyncio
async def test_only_the_owner_can_chat(chat, stored):
    with pytest.raises(NotFoundError):
        await chat.handle(stored.itinerary_id, "user-2", "explain", "Hello")
    with pytest.raises(NotFoundError):
        await chat.handle("it_missing", "user-1", "explain", "Hello")


@pytest.mark.asyncio
async def test_rejects_bad_requests(chat, stored):
    with pytest.raises(ValidationError):
        await chat.handle(stored.itinerary_id, "user-1", "explain", "   ")
    with pytest.raises(ValidationError):
        await chat.handle(stored.itinerary_id, "user-1", "book_flights", "Hello")


@pytest.mark.asyncio
async def test_ambiguous_chat_routing_is_refused(chat, registry, stored):
    registry.register(
        "second_explainer",
        AgentCapabilities(
            agent_id="second_explainer",
            supported_tasks=frozenset({TaskType.EXPLAIN}),
            chat_enabled=True,
        ),
    )

    with pytest.raises(AmbiguousRoutingError):
        await chat.handle(stored.itinerary_id, "user-1", "explain", "Hello")
