"""
Persistence collaborator for itinerary documents.

`ItineraryStore` is the protocol the orchestrator, the edit service and the
chat service depend on. `InMemoryItineraryStore` is the in-process
implementation used for development and tests; the DynamoDB-backed
implementation lives in `itinerary_planner.data.repository`.
"""

import threading
from typing import Protocol, runtime_checkable

from itinerary_planner.data.models import NormalizedItinerary
from itinerary_planner.utils.error_handling import (
    NotFoundError,
    ValidationError,
    VersionConflictError,
)
from itinerary_planner.utils.helpers import utc_now
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ItineraryStore(Protocol):
    """Durable storage for itineraries, ownership records and revisions."""

    def create_itinerary(self, doc: NormalizedItinerary) -> str:
        """Persist a new itinerary and return its id once durable."""
        ...

    def get_itinerary(self, itinerary_id: str) -> NormalizedItinerary | None:
        """Return a snapshot of the itinerary, or None if it does not exist."""
        ...

    def update_itinerary(
        self, doc: NormalizedItinerary, expected_version: int
    ) -> NormalizedItinerary:
        """Replace the itinerary if its stored version equals expected_version."""
        ...

    def record_ownership(self, user_id: str, itinerary_id: str) -> None:
        """Durably record that user_id owns itinerary_id."""
        ...

    def get_owner(self, itinerary_id: str) -> str | None:
        """Return the owning user id, or None if no record exists."""
        ...

    def list_user_itineraries(self, user_id: str) -> list[str]:
        """Return the ids of every itinerary owned by user_id."""
        ...

    def save_revision(self, doc: NormalizedItinerary) -> None:
        """Retain a full snapshot of the itinerary at its current version."""
        ...

    def get_revision(
        self, itinerary_id: str, version: int
    ) -> NormalizedItinerary | None:
        """Return the retained snapshot for a version, if any."""
        ...

    def list_revisions(self, itinerary_id: str) -> list[int]:
        """Return the retained versions in ascending order."""
        ...

    def prune_revisions(self, itinerary_id: str, keep: int) -> int:
        """Drop all but the newest `keep` revisions; return how many were dropped."""
        ...


def check_version_step(doc: NormalizedItinerary, expected_version: int) -> None:
    """Reject writes that do not advance the version by exactly one."""
    if doc.version != expected_version + 1:
        raise ValidationError(
            f"Itinerary '{doc.itinerary_id}' must be written at version "
            f"{expected_version + 1}, got {doc.version}"
        )


class InMemoryItineraryStore:
    """
    Thread-safe in-memory ItineraryStore.

    Every read returns a deep copy so callers can never observe a document
    while another writer is changing it, and version and content are always
    read together.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._itineraries: dict[str, NormalizedItinerary] = {}
        self._owners: dict[str, str] = {}
        self._user_index: dict[str, list[str]] = {}
        self._revisions: dict[str, dict[int, NormalizedItinerary]] = {}

    def create_itinerary(self, doc: NormalizedItinerary) -> str:
        with self._lock:
            if doc.itinerary_id in self._itineraries:
                raise ValidationError(
                    f"Itinerary '{doc.itinerary_id}' already exists"
                )
            stored = doc.model_copy(deep=True)
            stored.created_at = stored.created_at or utc_now()
            stored.updated_at = stored.created_at
            self._itineraries[doc.itinerary_id] = stored
        logger.debug(f"Created itinerary {doc.itinerary_id} at version {doc.version}")
        return doc.itinerary_id

    def get_itinerary(self, itinerary_id: str) -> NormalizedItinerary | None:
        with self._lock:
            doc = self._itineraries.get(itinerary_id)
            return doc.model_copy(deep=True) if doc is not None else None

    def update_itinerary(
        self, doc: NormalizedItinerary, expected_version: int
    ) -> NormalizedItinerary:
        with self._lock:
            current = self._itineraries.get(doc.itinerary_id)
            if current is None:
                raise NotFoundError(f"Itinerary '{doc.itinerary_id}' not found")
            if current.version != expected_version:
                raise VersionConflictError(
                    doc.itinerary_id, expected_version, current.version
                )
            check_version_step(doc, expected_version)
            stored = doc.model_copy(deep=True)
            stored.updated_at = utc_now()
            self._itineraries[doc.itinerary_id] = stored
            return stored.model_copy(deep=True)

    def record_ownership(self, user_id: str, itinerary_id: str) -> None:
        with self._lock:
            self._owners[itinerary_id] = user_id
            owned = self._user_index.setdefault(user_id, [])
            if itinerary_id not in owned:
                owned.append(itinerary_id)

    def get_owner(self, itinerary_id: str) -> str | None:
        with self._lock:
            return self._owners.get(itinerary_id)

    def list_user_itineraries(self, user_id: str) -> list[str]:
        with self._lock:
            return list(self._user_index.get(user_id, []))

    def save_revision(self, doc: NormalizedItinerary) -> None:
        with self._lock:
            revisions = self._revisions.setdefault(doc.itinerary_id, {})
            revisions[doc.version] = doc.model_copy(deep=True)

    def get_revision(
        self, itinerary_id: str, version: int
    ) -> NormalizedItinerary | None:
        with self._lock:
            doc = self._revisions.get(itinerary_id, {}).get(version)
            return doc.model_copy(deep=True) if doc is not None else None

    def list_revisions(self, itinerary_id: str) -> list[int]:
        with self._lock:
            return sorted(self._revisions.get(itinerary_id, {}))

    def prune_revisions(self, itinerary_id: str, keep: int) -> int:
        with self._lock:
            revisions = self._revisions.get(itinerary_id, {})
            stale = sorted(revisions)[:-keep] if keep > 0 else sorted(revisions)
            for version in stale:
                del revisions[version]
            return len(stale)
