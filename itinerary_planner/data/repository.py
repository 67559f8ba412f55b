"""
DynamoDB repository implementing the ItineraryStore access patterns.

Maps itinerary documents, ownership records and revisions to/from
DynamoDB single-table items:

    ITINERARY#{id}            METADATA          current document
    ITINERARY#{id}            OWNER             ownership record
    USER#{user_id}            ITINERARY#{id}    user -> itinerary index
    ITINERARY#{id}#REVISION   VERSION#{n}       retained revision
"""

from typing import Any

from itinerary_planner.data.dynamodb import ConditionFailed, DynamoDBClient
from itinerary_planner.data.models import NormalizedItinerary
from itinerary_planner.data.store import check_version_step
from itinerary_planner.utils.error_handling import (
    NotFoundError,
    ValidationError,
    VersionConflictError,
)
from itinerary_planner.utils.helpers import utc_now, utc_now_iso
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


class DynamoDBItineraryRepository:
    """ItineraryStore backed by a DynamoDB single table."""

    def __init__(self, db: DynamoDBClient):
        self.db = db

    # --- Helpers ---

    @staticmethod
    def _itinerary_pk(itinerary_id: str) -> str:
        return f"ITINERARY#{itinerary_id}"

    @staticmethod
    def _revision_pk(itinerary_id: str) -> str:
        return f"ITINERARY#{itinerary_id}#REVISION"

    @staticmethod
    def _version_sk(version: int) -> str:
        return f"VERSION#{version:06d}"

    def _to_item(
        self, doc: NormalizedItinerary, pk: str, sk: str, entity_type: str
    ) -> dict[str, Any]:
        """Convert an itinerary to a DynamoDB item."""
        # Stored as a JSON string; DynamoDB rejects Python floats.
        return {
            "PK": pk,
            "SK": sk,
            "EntityType": entity_type,
            "Version": doc.version,
            "Data": doc.model_dump_json(by_alias=True),
            "Metadata": {"updatedAt": utc_now_iso()},
        }

    @staticmethod
    def _from_item(item: dict[str, Any]) -> NormalizedItinerary:
        return NormalizedItinerary.model_validate_json(item["Data"])

    # --- Itineraries ---

    def create_itinerary(self, doc: NormalizedItinerary) -> str:
        doc = doc.model_copy(deep=True)
        doc.created_at = doc.created_at or utc_now()
        doc.updated_at = doc.created_at
        item = self._to_item(
            doc, self._itinerary_pk(doc.itinerary_id), "METADATA", "Itinerary"
        )
        try:
            self.db.put_new_item(item)
        except ConditionFailed as e:
            raise ValidationError(
                f"Itinerary '{doc.itinerary_id}' already exists", e
            ) from e
        logger.debug(f"Created itinerary {doc.itinerary_id} in DynamoDB")
        return doc.itinerary_id

    def get_itinerary(self, itinerary_id: str) -> NormalizedItinerary | None:
        item = self.db.get_item(self._itinerary_pk(itinerary_id), "METADATA")
        if not item:
            return None
        return self._from_item(item)

    def update_itinerary(
        self, doc: NormalizedItinerary, expected_version: int
    ) -> NormalizedItinerary:
        check_version_step(doc, expected_version)
        doc = doc.model_copy(deep=True)
        doc.updated_at = utc_now()
        item = self._to_item(
            doc, self._itinerary_pk(doc.itinerary_id), "METADATA", "Itinerary"
        )
        try:
            self.db.put_if_version(item, expected_version)
        except ConditionFailed as e:
            current = self.get_itinerary(doc.itinerary_id)
            if current is None:
                raise NotFoundError(
                    f"Itinerary '{doc.itinerary_id}' not found", e
                ) from e
            raise VersionConflictError(
                doc.itinerary_id, expected_version, current.version
            ) from e
        return doc

    # --- Ownership ---

    def record_ownership(self, user_id: str, itinerary_id: str) -> None:
        now = utc_now_iso()
        self.db.put_item(
            {
                "PK": self._itinerary_pk(itinerary_id),
                "SK": "OWNER",
                "EntityType": "Ownership",
                "UserId": user_id,
                "Metadata": {"createdAt": now},
            }
        )
        self.db.put_item(
            {
                "PK": f"USER#{user_id}",
                "SK": f"ITINERARY#{itinerary_id}",
                "EntityType": "UserItinerary",
                "ItineraryId": itinerary_id,
                "Metadata": {"createdAt": now},
            }
        )

    def get_owner(self, itinerary_id: str) -> str | None:
        item = self.db.get_item(self._itinerary_pk(itinerary_id), "OWNER")
        if not item:
            return None
        return item.get("UserId")

    def list_user_itineraries(self, user_id: str) -> list[str]:
        items = self.db.query(pk=f"USER#{user_id}", sk_prefix="ITINERARY#")
        return [i["ItineraryId"] for i in items]

    # --- Revisions ---

    def save_revision(self, doc: NormalizedItinerary) -> None:
        self.db.put_item(
            self._to_item(
                doc,
                self._revision_pk(doc.itinerary_id),
                self._version_sk(doc.version),
                "ItineraryRevision",
            )
        )

    def get_revision(
        self, itinerary_id: str, version: int
    ) -> NormalizedItinerary | None:
        item = self.db.get_item(
            self._revision_pk(itinerary_id), self._version_sk(version)
        )
        if not item:
            return None
        return self._from_item(item)

    def list_revisions(self, itinerary_id: str) -> list[int]:
        items = self.db.query(
            pk=self._revision_pk(itinerary_id), sk_prefix="VERSION#"
        )
        return sorted(int(i["Version"]) for i in items)

    def prune_revisions(self, itinerary_id: str, keep: int) -> int:
        versions = self.list_revisions(itinerary_id)
        stale = versions[:-keep] if keep > 0 else versions
        for version in stale:
            self.db.delete_item(
                self._revision_pk(itinerary_id), self._version_sk(version)
            )
        return len(stale)
