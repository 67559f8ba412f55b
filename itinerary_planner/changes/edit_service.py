"""
Itinerary edit service.

Commits ChangeSets and undos against the store. Every commit for an
itinerary runs under the writer lock it shares with the orchestrator, saves
the prior full state as a revision, and relies on the store's optimistic
version check. Proposals never take the lock.
"""

from typing import Any

from itinerary_planner.changes.change_engine import (
    ApplyResult,
    ChangeEngine,
    ProposeResult,
    UndoResult,
)
from itinerary_planner.changes.diff import summarize_diff
from itinerary_planner.config import ChangeConfig, config
from itinerary_planner.data.locks import ItineraryLocks
from itinerary_planner.data.models import ChangeSet, ItineraryDiff, NormalizedItinerary
from itinerary_planner.data.store import ItineraryStore
from itinerary_planner.events.broadcast import EventBroadcast
from itinerary_planner.events.models import EventKind
from itinerary_planner.utils.error_handling import NotFoundError, ValidationError
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


class ItineraryEditService:
    """Loads, changes and commits itineraries one writer at a time."""

    def __init__(
        self,
        store: ItineraryStore,
        broadcast: EventBroadcast | None = None,
        locks: ItineraryLocks | None = None,
        engine: ChangeEngine | None = None,
        settings: ChangeConfig | None = None,
    ):
        self.store = store
        self.broadcast = broadcast
        self.locks = locks if locks is not None else ItineraryLocks()
        self.engine = engine if engine is not None else ChangeEngine()
        self.settings = settings or config.changes

    def _load(self, itinerary_id: str) -> NormalizedItinerary:
        itinerary = self.store.get_itinerary(itinerary_id)
        if itinerary is None:
            raise NotFoundError(f"Itinerary '{itinerary_id}' not found")
        return itinerary

    async def propose(self, itinerary_id: str, change_set: ChangeSet) -> ProposeResult:
        """Preview a ChangeSet against the latest version."""
        return self.engine.propose(self._load(itinerary_id), change_set)

    async def apply(self, itinerary_id: str, change_set: ChangeSet) -> ApplyResult:
        """
        Apply a ChangeSet and commit the new version.

        Raises:
            ValidationError, NotFoundError, LockedNodeError: Before anything
                is committed
            VersionConflictError: If another writer bypassed the lock
        """
        async with self.locks.lock_for(itinerary_id):
            current = self._load(itinerary_id)
            result = self.engine.apply(current, change_set)
            self._commit(current, result.itinerary)

        logger.info(
            f"Itinerary {itinerary_id} v{result.from_version} -> v{result.to_version} "
            f"by {change_set.agent}: {summarize_diff(result.diff)}"
        )
        self._publish(
            itinerary_id,
            result.to_version,
            result.from_version,
            result.diff,
            agent=change_set.agent,
            reason=change_set.reason,
        )
        return result

    async def undo(self, itinerary_id: str, to_version: int) -> UndoResult:
        """
        Restore the content of a retained version as a new version.

        Raises:
            NotFoundError: If the itinerary or the revision is not retained
            ValidationError: If to_version is not earlier than the current one
        """
        async with self.locks.lock_for(itinerary_id):
            current = self._load(itinerary_id)
            if to_version >= current.version:
                raise ValidationError(
                    f"Cannot undo itinerary '{itinerary_id}' to version {to_version}; "
                    f"current version is {current.version}"
                )
            target = self.store.get_revision(itinerary_id, to_version)
            if target is None:
                raise NotFoundError(
                    f"Version {to_version} of itinerary '{itinerary_id}' is not retained"
                )
            result = self.engine.undo(current, target)
            self._commit(current, result.itinerary)

        logger.info(
            f"Itinerary {itinerary_id} restored to v{to_version} "
            f"as v{result.to_version}"
        )
        self._publish(
            itinerary_id,
            result.to_version,
            result.from_version,
            result.diff,
            agent="user",
            reason=f"Undo to version {to_version}",
        )
        return result

    def list_revisions(self, itinerary_id: str) -> list[int]:
        """Versions that can currently be restored."""
        return self.store.list_revisions(itinerary_id)

    def _commit(self, current: NormalizedItinerary, updated: NormalizedItinerary) -> None:
        self.store.save_revision(current)
        self.store.update_itinerary(updated, expected_version=current.version)
        dropped = self.store.prune_revisions(
            current.itinerary_id, self.settings.max_revisions
        )
        if dropped:
            logger.debug(f"Dropped {dropped} old revisions of {current.itinerary_id}")

    def _publish(
        self,
        itinerary_id: str,
        version: int,
        from_version: int,
        diff: ItineraryDiff,
        agent: str,
        reason: str | None,
    ) -> None:
        if self.broadcast is None:
            return
        data: dict[str, Any] = {
            "version": version,
            "fromVersion": from_version,
            "diff": diff.to_wire(),
            "agent": agent,
            "reason": reason,
            "message": summarize_diff(diff),
        }
        self.broadcast.publish(itinerary_id, EventKind.ITINERARY_UPDATED, data)
