"""
DynamoDB single-table client.

Supports both DynamoDB Local (development) and AWS DynamoDB (production).
Set DYNAMODB_ENDPOINT env var for local, omit for AWS.
"""

from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr, ConditionBase, Key

from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


class ConditionFailed(Exception):
    """Raised when a conditional write is rejected by DynamoDB."""


class DynamoDBClient:
    """Client for DynamoDB single-table operations."""

    def __init__(
        self,
        table_name: str,
        region: str = "ap-northeast-1",
        endpoint_url: str | None = None,
        resource: Any | None = None,
    ):
        self.table_name = table_name
        if resource is None:
            kwargs: dict[str, Any] = {"region_name": region}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
                logger.info(f"Using DynamoDB Local at {endpoint_url}")
            resource = boto3.resource("dynamodb", **kwargs)
        self.table = resource.Table(table_name)

    def put_item(
        self, item: dict[str, Any], condition: ConditionBase | None = None
    ) -> None:
        """
        Put an item into the table.

        Args:
            item: Item to write
            condition: Optional condition the existing item must satisfy

        Raises:
            ConditionFailed: If the condition is not met
        """
        kwargs: dict[str, Any] = {"Item": item}
        if condition is not None:
            kwargs["ConditionExpression"] = condition

        errors = self.table.meta.client.exceptions
        try:
            self.table.put_item(**kwargs)
        except errors.ConditionalCheckFailedException as e:
            raise ConditionFailed(str(e)) from e

    def put_new_item(self, item: dict[str, Any]) -> None:
        """Put an item only if no item with the same key exists."""
        self.put_item(item, condition=Attr("PK").not_exists())

    def put_if_version(self, item: dict[str, Any], expected_version: int) -> None:
        """Replace an item only if its stored Version equals expected_version."""
        self.put_item(item, condition=Attr("Version").eq(expected_version))

    def get_item(
        self, pk: str, sk: str, consistent: bool = True
    ) -> dict[str, Any] | None:
        """Get a single item by PK and SK."""
        response = self.table.get_item(
            Key={"PK": pk, "SK": sk}, ConsistentRead=consistent
        )
        return response.get("Item")

    def query(
        self,
        pk: str,
        sk_prefix: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
    ) -> list[dict[str, Any]]:
        """
        Query items by partition key with an optional sort key prefix.

        Args:
            pk: Partition key value
            sk_prefix: Sort key prefix (begins_with)
            limit: Max items to return
            scan_forward: True for ascending, False for descending
        """
        key_condition = Key("PK").eq(pk)
        if sk_prefix:
            key_condition = key_condition & Key("SK").begins_with(sk_prefix)

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_forward,
        }
        if limit:
            kwargs["Limit"] = limit

        response = self.table.query(**kwargs)
        return response.get("Items", [])

    def delete_item(self, pk: str, sk: str) -> None:
        """Delete an item by PK and SK."""
        self.table.delete_item(Key={"PK": pk, "SK": sk})

    def create_table_if_not_exists(self) -> None:
        """Create the table (for DynamoDB Local development)."""
        client = self.table.meta.client
        try:
            self.table.load()
            logger.info(f"Table {self.table_name} already exists")
        except client.exceptions.ResourceNotFoundException:
            client.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {"AttributeName": "PK", "KeyType": "HASH"},
                    {"AttributeName": "SK", "KeyType": "RANGE"},
                ],
                AttributeDefinitions=[
                    {"AttributeName": "PK", "AttributeType": "S"},
                    {"AttributeName": "SK", "AttributeType": "S"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            logger.info(f"Created table {self.table_name}")
