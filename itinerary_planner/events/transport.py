"""
Push-channel transport collaborator.

`EventBroadcast` talks to client connections only through the `Transport`
protocol. `QueueTransport` is the in-process implementation: each
connection is an asyncio queue the consumer reads payloads from.
"""

import asyncio
import itertools
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from itinerary_planner.utils.error_handling import TransportError
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)

# Called with "close", "error" or "timeout"
LifecycleListener = Callable[[str], None]


@runtime_checkable
class Transport(Protocol):
    """Sends payloads to client connections and reports their lifecycle."""

    async def send(self, connection: Any, payload: dict[str, Any]) -> None:
        """Send one payload, raising TransportError on failure."""
        ...

    def is_open(self, connection: Any) -> bool:
        """Check whether the connection can still receive payloads."""
        ...

    def add_listener(self, connection: Any, listener: LifecycleListener) -> None:
        """Register a callback for the connection's close/error/timeout."""
        ...


class QueueConnection:
    """A client connection backed by an asyncio queue."""

    _ids = itertools.count(1)

    def __init__(self, max_pending: int = 0):
        self.connection_id = f"conn-{next(self._ids)}"
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_pending)
        self.open = True
        self.close_reason: str | None = None
        self._listeners: list[LifecycleListener] = []

    def add_listener(self, listener: LifecycleListener) -> None:
        self._listeners.append(listener)

    def close(self, reason: str = "close") -> None:
        """Close the connection and notify listeners once."""
        if not self.open:
            return
        self.open = False
        self.close_reason = reason
        for listener in list(self._listeners):
            listener(reason)

    async def receive(self, timeout: float | None = None) -> dict[str, Any]:
        """Wait for the next payload delivered to this connection."""
        async with asyncio.timeout(timeout):
            return await self.queue.get()

    def drain(self) -> list[dict[str, Any]]:
        """Return every payload delivered so far without waiting."""
        payloads = []
        while not self.queue.empty():
            payloads.append(self.queue.get_nowait())
        return payloads

    def __repr__(self) -> str:
        return f"QueueConnection({self.connection_id}, open={self.open})"


class QueueTransport:
    """In-process Transport over QueueConnection objects."""

    def __init__(self, max_pending: int = 0):
        """
        Args:
            max_pending: Payloads a connection may hold before sends fail
                (0 for unbounded)
        """
        self.max_pending = max_pending

    def connect(self) -> QueueConnection:
        """Open a new connection."""
        return QueueConnection(self.max_pending)

    async def send(self, connection: QueueConnection, payload: dict[str, Any]) -> None:
        if not connection.open:
            raise TransportError(f"Connection {connection.connection_id} is closed")
        try:
            connection.queue.put_nowait(payload)
        except asyncio.QueueFull as e:
            raise TransportError(
                f"Connection {connection.connection_id} is not keeping up", e
            ) from e

    def is_open(self, connection: QueueConnection) -> bool:
        return connection.open

    def add_listener(
        self, connection: QueueConnection, listener: LifecycleListener
    ) -> None:
        connection.add_listener(listener)
