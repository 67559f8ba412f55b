"""Tests for DynamoDB single-table client."""

from unittest.mock import MagicMock, patch

import pytest

from itinerary_planner.data.dynamodb import ConditionFailed, DynamoDBClient


class ConditionalCheckFailedException(Exception):
    pass


class ResourceNotFoundException(Exception):
    pass


@pytest.fixture
def mock_boto3():
    with patch("itinerary_planner.data.dynamodb.boto3") as mock:
        mock_table = MagicMock()
        errors = mock_table.meta.client.exceptions
        errors.ConditionalCheckFailedException = ConditionalCheckFailedException
        errors.ResourceNotFoundException = ResourceNotFoundException
        mock_resource = MagicMock()
        mock_resource.Table.return_value = mock_table
        mock.resource.return_value = mock_resource
        yield mock, mock_table


@pytest.fixture
def client(mock_boto3):
    return DynamoDBClient(table_name="test-table", region="ap-northeast-1")


def test_client_init_local(mock_boto3):
    mock, _ = mock_boto3
    client = DynamoDBClient(
        table_name="test-table",
        endpoint_url="http://localhost:8000",
        region="ap-northeast-1",
    )
    assert client.table_name == "test-table"
    mock.resource.assert_called_once_with(
        "dynamodb", region_name="ap-northeast-1", endpoint_url="http://localhost:8000"
    )


def test_client_init_aws(mock_boto3):
    mock, _ = mock_boto3
    DynamoDBClient(table_name="test-table", region="ap-northeast-1")
    mock.resource.assert_called_once_with("dynamodb", region_name="ap-northeast-1")


def test_client_accepts_existing_resource(mock_boto3):
    mock, _ = mock_boto3
    resource = MagicMock()
    client = DynamoDBClient(table_name="test-table", resource=resource)
    assert client.table is resource.Table.return_value
    mock.resource.assert_not_called()


def test_put_item(client, mock_boto3):
    _, mock_table = mock_boto3
    client.put_item({"PK": "ITINERARY#1", "SK": "METADATA"})
    mock_table.put_item.assert_called_once_with(
        Item={"PK": "ITINERARY#1", "SK": "METADATA"}
    )


def test_put_if_version_sends_condition(client, mock_boto3):
    _, mock_table = mock_boto3
    client.put_if_version({"PK": "ITINERARY#1", "SK": "METADATA", "Version": 3}, 2)
    kwargs = mock_table.put_item.call_args.kwargs
    assert "ConditionExpression" in kwargs


def test_rejected_condition_raises(client, mock_boto3):
    _, mock_table = mock_boto3
    mock_table.put_item.side_effect = ConditionalCheckFailedException("rejected")

    with pytest.raises(ConditionFailed):
        client.put_new_item({"PK": "ITINERARY#1", "SK": "METADATA"})


def test_get_item(client, mock_boto3):
    _, mock_table = mock_boto3
    mock_table.get_item.return_value = {
        "Item": {"PK": "ITINERARY#1", "SK": "OWNER", "UserId": "user-1"}
    }
    item = client.get_item("ITINERARY#1", "OWNER")
    assert item["UserId"] == "user-1"
    mock_table.get_item.assert_called_once_with(
        Key={"PK": "ITINERARY#1", "SK": "OWNER"}, ConsistentRead=True
    )


def test_get_item_not_found(client, mock_boto3):
    _, mock_table = mock_boto3
    mock_table.get_item.return_value = {}
    assert client.get_item("ITINERARY#999", "METADATA") is None


def test_query(client, mock_boto3):
    _, mock_table = mock_boto3
    mock_table.query.return_value = {
        "Items": [
            {"PK": "USER#1", "SK": "ITINERARY#a"},
            {"PK": "USER#1", "SK": "ITINERARY#b"},
        ]
    }
    items = client.query(pk="USER#1", sk_prefix="ITINERARY#", limit=5)
    assert len(items) == 2
    kwargs = mock_table.query.call_args.kwargs
    assert kwargs["Limit"] == 5
    assert kwargs["ScanIndexForward"] is True


def test_delete_item(client, mock_boto3):
    _, mock_table = mock_boto3
    client.delete_item("ITINERARY#1#REVISION", "VERSION#000002")
    mock_table.delete_item.assert_called_once_with(
        Key={"PK": "ITINERARY#1#REVISION", "SK": "VERSION#000002"}
    )


def test_create_table_when_missing(client, mock_boto3):
    _, mock_table = mock_boto3
    mock_table.load.side_effect = ResourceNotFoundException("missing")

    client.create_table_if_not_exists()

    create = mock_table.meta.client.create_table
    create.assert_called_once()
    assert create.call_args.kwargs["TableName"] == "test-table"


def test_create_table_skipped_when_present(client, mock_boto3):
    _, mock_table = mock_boto3
    client.create_table_if_not_exists()
    mock_table.meta.client.create_table.assert_not_called()
