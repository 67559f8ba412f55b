"""
Unit tests for the itinerary edit service.
"""

import asyncio
from datetime import date

import pytest

from itinerary_planner.data.models import (
    ChangeOperation,
    ChangeScope,
    ChangeSet,
    OperationKind,
)
from itinerary_planner.events.models import EventKind
from itinerary_planner.utils.error_handling import (
    LockedNodeError,
    NotFoundError,
    ValidationError,
    VersionConflictError,
)
from tests.unit.factories import at

DAY_TWO = date(2026, 5, 2)


@pytest.fixture
def stored(store, itinerary):
    store.create_itinerary(itinerary)
    store.record_ownership("user-1", itinerary.itinerary_id)
    return itinerary


def move_change(minute: int) -> ChangeSet:
    return ChangeSet(
        scope=ChangeScope.DAY,
        day=2,
        ops=[
            ChangeOperation(
                op=OperationKind.MOVE, id="day2_node1", start_time=at(DAY_TWO, 9, minute)
            )
        ],
        reason=f"shift by {minute} minutes",
    )


@pytest.mark.asyncio
async def test_apply_commits_next_version(edit_service, store, broadcast, stored):
    result = await edit_service.apply(stored.itinerary_id, move_change(30))

    current = store.get_itinerary(stored.itinerary_id)
    assert result.to_version == 2
    assert current.version == 2
    assert current.find_day(2).nodes[0].timing.start_time == at(DAY_TWO, 9, 30)
    assert store.list_revisions(stored.itinerary_id) == [1]

    events = broadcast.buffered_events(stored.itinerary_id)
    assert [event.kind for event in events] == [EventKind.ITINERARY_UPDATED]
    assert events[0].data["version"] == 2
    assert events[0].data["fromVersion"] == 1
    assert events[0].data["diff"]["updated"][0]["nodeId"] == "day2_node1"


@pytest.mark.asyncio
async def test_propose_leaves_store_untouched(edit_service, store, broadcast, stored):
    proposal = await edit_service.propose(stored.itinerary_id, move_change(15))

    assert proposal.preview_version == 2
    assert store.get_itinerary(stored.itinerary_id).version == 1
    assert store.list_revisions(stored.itinerary_id) == []
    assert broadcast.buffered_events(stored.itinerary_id) == []


@pytest.mark.asyncio
async def test_rejected_changeset_commits_nothing(edit_service, store, stored):
    change_set = ChangeSet(
        scope=ChangeScope.DAY,
        day=1,
        ops=[ChangeOperation(op=OperationKind.DELETE, id="day1_node3")],
    )

    with pytest.raises(LockedNodeError):
        await edit_service.apply(stored.itinerary_id, change_set)

    assert store.get_itinerary(stored.itinerary_id).version == 1
    assert store.list_revisions(stored.itinerary_id) == []


@pytest.mark.asyncio
async def test_apply_unknown_itinerary(edit_service):
    with pytest.raises(NotFoundError):
        await edit_service.apply("it_missing", move_change(10))


@pytest.mark.asyncio
async def test_concurrent_applies_are_serialized(edit_service, store, stored):
    results = await asyncio.gather(
        edit_service.apply(stored.itinerary_id, move_change(10)),
        edit_service.apply(stored.itinerary_id, move_change(20)),
        edit_service.apply(stored.itinerary_id, move_change(40)),
    )

    assert sorted(result.to_version for result in results) == [2, 3, 4]
    assert store.get_itinerary(stored.itinerary_id).version == 4
    assert store.list_revisions(stored.itinerary_id) == [1, 2, 3]


@pytest.mark.asyncio
async def test_undo_restores_content_as_new_version(edit_service, store, stored):
    await edit_service.apply(stored.itinerary_id, move_change(30))
    await edit_service.apply(stored.itinerary_id, move_change(45))

    result = await edit_service.undo(stored.itinerary_id, 1)

    current = store.get_itinerary(stored.itinerary_id)
    assert result.to_version == 4
    assert result.restored_version == 1
    assert current.version == 4
    assert current.find_day(2).nodes[0].timing == stored.find_day(2).nodes[0].timing
    assert 3 in store.list_revisions(stored.itinerary_id)


@pytest.mark.asyncio
async def test_undo_rejects_current_or_missing_versions(edit_service, stored):
    await edit_service.apply(stored.itinerary_id, move_change(30))

    with pytest.raises(ValidationError):
        await edit_service.undo(stored.itinerary_id, 2)
    with pytest.raises(ValidationError):
        await edit_service.undo(stored.itinerary_id, 7)

    await edit_service.apply(stored.itinerary_id, move_change(40))
    await edit_service.undo(stored.itinerary_id, 2)
    with pytest.raises(NotFoundError):
        await edit_service.undo(stored.itinerary_id, 0)


@pytest.mark.asyncio
async def test_revisions_are_bounded(edit_service, store, stored):
    for minute in range(1, 9):
        await edit_service.apply(stored.itinerary_id, move_change(minute))

    assert store.get_itinerary(stored.itinerary_id).version == 9
    assert edit_service.list_revisions(stored.itinerary_id) == [4, 5, 6, 7, 8]


def test_store_rejects_stale_writer(store, stored):
    first = store.get_itinerary(stored.itinerary_id)
    second = store.get_itinerary(stored.itinerary_id)

    first.version = 2
    store.update_itinerary(first, expected_version=1)

    second.version = 2
    with pytest.raises(VersionConflictError) as exc_info:
        store.update_itinerary(second, expected_version=1)
    assert exc_info.value.actual == 2


@pytest.mark.asyncio
async def test_apply_waits_for_writer_lock(edit_service, locks, store, stored):
    lock = locks.lock_for(stored.itinerary_id)
    await lock.acquire()
    assert locks.is_locked(stored.itinerary_id)

    pending = asyncio.create_task(edit_service.apply(stored.itinerary_id, move_change(15)))
    await asyncio.sleep(0.01)
    assert not pending.done()
    assert store.get_itinerary(stored.itinerary_id).version == 1

    lock.release()
    result = await pending

    assert result.to_version == 2
    assert not locks.is_locked(stored.itinerary_id)
    locks.discard(stored.itinerary_id)
    assert len(locks) == 0


def test_writers_share_one_lock_registry(orchestrator, edit_service, locks):
    # An empty registry must still be shared rather than replaced
    assert len(locks) == 0
    assert orchestrator.locks is locks
    assert edit_service.locks is locks
