"""
Per-itinerary writer locks.

The orchestrator and the edit service share one `ItineraryLocks` instance so
that every commit for a given itinerary id is mutually exclusive. Readers
never take these locks.
"""

import asyncio


class ItineraryLocks:
    """Registry of asyncio locks keyed by itinerary id."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, itinerary_id: str) -> asyncio.Lock:
        """Return the writer lock for an itinerary, creating it on first use."""
        lock = self._locks.get(itinerary_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[itinerary_id] = lock
        return lock

    def is_locked(self, itinerary_id: str) -> bool:
        """Check whether a writer currently holds the itinerary's lock."""
        lock = self._locks.get(itinerary_id)
        return lock is not None and lock.locked()

    def discard(self, itinerary_id: str) -> None:
        """Forget an idle lock."""
        lock = self._locks.get(itinerary_id)
        if lock is not None and not lock.locked():
            del self._locks[itinerary_id]

    def __len__(self) -> int:
        return len(self._locks)
