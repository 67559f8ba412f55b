"""Tests for the DynamoDB itinerary repository."""

from unittest.mock import MagicMock

import pytest

from itinerary_planner.data.dynamodb import ConditionFailed
from itinerary_planner.data.repository import DynamoDBItineraryRepository
from itinerary_planner.data.store import ItineraryStore
from itinerary_planner.utils.error_handling import (
    NotFoundError,
    ValidationError,
    VersionConflictError,
)


@pytest.fixture
def mock_db():
    return MagicMock()


@pytest.fixture
def repo(mock_db):
    return DynamoDBItineraryRepository(mock_db)


def stored_item(doc):
    return {
        "PK": f"ITINERARY#{doc.itinerary_id}",
        "SK": "METADATA",
        "EntityType": "Itinerary",
        "Version": doc.version,
        "Data": doc.model_dump_json(by_alias=True),
    }


def test_repository_satisfies_store_protocol(repo):
    assert isinstance(repo, ItineraryStore)


def test_create_itinerary(repo, mock_db, itinerary):
    assert repo.create_itinerary(itinerary) == "it_test"

    mock_db.put_new_item.assert_called_once()
    item = mock_db.put_new_item.call_args[0][0]
    assert item["PK"] == "ITINERARY#it_test"
    assert item["SK"] == "METADATA"
    assert item["EntityType"] == "Itinerary"
    assert item["Version"] == 1
    assert '"itineraryId":"it_test"' in item["Data"]


def test_create_duplicate_itinerary(repo, mock_db, itinerary):
    mock_db.put_new_item.side_effect = ConditionFailed("exists")

    with pytest.raises(ValidationError):
        repo.create_itinerary(itinerary)


def test_get_itinerary(repo, mock_db, itinerary):
    mock_db.get_item.return_value = stored_item(itinerary)

    doc = repo.get_itinerary("it_test")

    assert doc == itinerary
    mock_db.get_item.assert_called_with("ITINERARY#it_test", "METADATA")


def test_get_itinerary_not_found(repo, mock_db):
    mock_db.get_item.return_value = None
    assert repo.get_itinerary("it_missing") is None


def test_update_itinerary_is_conditional(repo, mock_db, itinerary):
    itinerary.version = 2

    saved = repo.update_itinerary(itinerary, expected_version=1)

    assert saved.version == 2
    assert saved.updated_at is not None
    item, expected = mock_db.put_if_version.call_args[0]
    assert item["Version"] == 2
    assert expected == 1


def test_update_must_advance_version_by_one(repo, mock_db, itinerary):
    itinerary.version = 3

    with pytest.raises(ValidationError):
        repo.update_itinerary(itinerary, expected_version=1)
    mock_db.put_if_version.assert_not_called()


def test_update_with_stale_version_conflicts(repo, mock_db, itinerary):
    current = itinerary.model_copy(update={"version": 4})
    mock_db.put_if_version.side_effect = ConditionFailed("stale")
    mock_db.get_item.return_value = stored_item(current)
    itinerary.version = 2

    with pytest.raises(VersionConflictError) as exc_info:
        repo.update_itinerary(itinerary, expected_version=1)

    assert exc_info.value.expected == 1
    assert exc_info.value.actual == 4


def test_update_missing_itinerary(repo, mock_db, itinerary):
    mock_db.put_if_version.side_effect = ConditionFailed("missing")
    mock_db.get_item.return_value = None
    itinerary.version = 2

    with pytest.raises(NotFoundError):
        repo.update_itinerary(itinerary, expected_version=1)


def test_record_ownership_writes_both_records(repo, mock_db):
    repo.record_ownership("user-1", "it_test")

    items = [call[0][0] for call in mock_db.put_item.call_args_list]
    assert (items[0]["PK"], items[0]["SK"], items[0]["UserId"]) == (
        "ITINERARY#it_test",
        "OWNER",
        "user-1",
    )
    assert (items[1]["PK"], items[1]["SK"], items[1]["ItineraryId"]) == (
        "USER#user-1",
        "ITINERARY#it_test",
        "it_test",
    )


def test_get_owner(repo, mock_db):
    mock_db.get_item.return_value = {"UserId": "user-1"}
    assert repo.get_owner("it_test") == "user-1"
    mock_db.get_item.assert_called_with("ITINERARY#it_test", "OWNER")

    mock_db.get_item.return_value = None
    assert repo.get_owner("it_other") is None


def test_list_user_itineraries(repo, mock_db):
    mock_db.query.return_value = [{"ItineraryId": "it_a"}, {"ItineraryId": "it_b"}]

    assert repo.list_user_itineraries("user-1") == ["it_a", "it_b"]
    mock_db.query.assert_called_with(pk="USER#user-1", sk_prefix="ITINERARY#")


def test_save_and_get_revision(repo, mock_db, itinerary):
    repo.save_revision(itinerary)

    item = mock_db.put_item.call_args[0][0]
    assert item["PK"] == "ITINERARY#it_test#REVISION"
    assert item["SK"] == "VERSION#000001"
    assert item["EntityType"] == "ItineraryRevision"

    mock_db.get_item.return_value = item
    assert repo.get_revision("it_test", 1) == itinerary
    mock_db.get_item.assert_called_with("ITINERARY#it_test#REVISION", "VERSION#000001")


def test_prune_revisions_keeps_newest(repo, mock_db):
    mock_db.query.return_value = [{"Version": v} for v in (3, 1, 4, 2)]

    assert repo.list_revisions("it_test") == [1, 2, 3, 4]
    assert repo.prune_revisions("it_test", keep=2) == 2

    deleted = [call[0] for call in mock_db.delete_item.call_args_list]
    assert deleted == [
        ("ITINERARY#it_test#REVISION", "VERSION#000001"),
        ("ITINERARY#it_test#REVISION", "VERSION#000002"),
    ]
