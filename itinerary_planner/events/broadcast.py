"""
Per-itinerary event broadcast with reconnect replay.

Each itinerary has an ordered, bounded event log. Subscribers are logical:
they are keyed by a subscriber id that survives reconnects, and the
broadcast remembers the last sequence each one received. On subscribe a
client gets a connection confirmation, then every buffered event it has
not seen, then live events.

Publishing never waits on a client. Every subscriber owns a bounded queue
drained by its own sender task, and a shared semaphore caps how many sends
run at once. A subscriber whose queue overflows or whose send fails is
dropped without affecting the others, and a send that blocks past the
configured timeout counts as failed. Closed connections are also removed
through transport lifecycle callbacks and a periodic sweep.
"""

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from itinerary_planner.config import BroadcastConfig, config
from itinerary_planner.events.models import (
    EventKind,
    ItineraryEvent,
    replay,
)
from itinerary_planner.events.transport import Transport
from itinerary_planner.utils.error_handling import TransportError
from itinerary_planner.utils.helpers import generate_id
from itinerary_planner.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Subscription:
    """Handle returned to a subscribing client."""

    subscriber_id: str
    itinerary_id: str
    connection: Any
    replayed: int = 0


@dataclass
class _Subscriber:
    subscriber_id: str
    connection: Any
    queue: asyncio.Queue
    task: asyncio.Task | None = None
    alive: bool = True


@dataclass
class _Channel:
    log: deque
    next_sequence: int = 1
    cursors: dict[str, int] = field(default_factory=dict)
    subscribers: dict[str, _Subscriber] = field(default_factory=dict)
    ready: asyncio.Event = field(default_factory=asyncio.Event)
    expiry: asyncio.TimerHandle | None = None


class EventBroadcast:
    """Multi-subscriber, per-itinerary event channel."""

    def __init__(
        self,
        transport: Transport,
        settings: BroadcastConfig | None = None,
    ):
        """
        Initialize the broadcast.

        Args:
            transport: Push-channel transport used to reach clients
            settings: Broadcast configuration (defaults to the global config)
        """
        self.transport = transport
        self.settings = settings or config.broadcast
        self._channels: dict[str, _Channel] = {}
        self._fanout = asyncio.Semaphore(self.settings.fanout_workers)
        self._sweep_task: asyncio.Task | None = None
        self._published = 0
        self._dropped = 0

    # --- Channels ---

    def _channel(self, itinerary_id: str) -> _Channel:
        channel = self._channels.get(itinerary_id)
        if channel is None:
            channel = _Channel(log=deque(maxlen=self.settings.buffer_size))
            self._channels[itinerary_id] = channel
        return channel

    def buffered_events(self, itinerary_id: str) -> list[ItineraryEvent]:
        """Return the events currently retained for an itinerary."""
        channel = self._channels.get(itinerary_id)
        return list(channel.log) if channel else []

    def last_seen(self, itinerary_id: str, subscriber_id: str) -> int:
        """Return the last sequence delivered to a logical subscriber."""
        channel = self._channels.get(itinerary_id)
        return channel.cursors.get(subscriber_id, 0) if channel else 0

    # --- Subscribing ---

    async def subscribe(
        self,
        itinerary_id: str,
        connection: Any,
        subscriber_id: str | None = None,
    ) -> Subscription:
        """
        Attach a connection to an itinerary's event stream.

        Args:
            itinerary_id: Itinerary to follow
            connection: Transport connection to deliver to
            subscriber_id: Logical subscriber id; pass the previous id to
                resume after a reconnect

        Returns:
            Subscription handle
        """
        subscriber_id = subscriber_id or generate_id("sub")
        channel = self._channel(itinerary_id)

        previous = channel.subscribers.get(subscriber_id)
        if previous is not None:
            logger.debug(f"Subscriber {subscriber_id} reconnected to {itinerary_id}")
            self._stop_subscriber(channel, previous)

        last_seen = channel.cursors.get(subscriber_id, 0)
        missed = replay(channel.log, last_seen)

        subscriber = _Subscriber(
            subscriber_id=subscriber_id,
            connection=connection,
            queue=asyncio.Queue(
                maxsize=self.settings.subscriber_queue_size + len(missed) + 1
            ),
        )
        subscriber.queue.put_nowait(
            ItineraryEvent(
                itinerary_id=itinerary_id,
                sequence=0,
                kind=EventKind.CONNECTION_ESTABLISHED,
                data={
                    "subscriberId": subscriber_id,
                    "lastSequence": last_seen,
                    "replayCount": len(missed),
                    "message": "Connected to itinerary updates",
                },
            )
        )
        for event in missed:
            subscriber.queue.put_nowait(event)

        # Registered in the same step as the replay so no event falls between
        channel.subscribers[subscriber_id] = subscriber
        channel.cursors.setdefault(subscriber_id, last_seen)
        subscriber.task = asyncio.create_task(
            self._deliver(itinerary_id, channel, subscriber),
            name=f"broadcast-{itinerary_id}-{subscriber_id}",
        )
        self.transport.add_listener(
            connection,
            lambda reason: self._on_connection_event(
                itinerary_id, subscriber_id, connection, reason
            ),
        )
        channel.ready.set()

        logger.info(
            f"Subscriber {subscriber_id} joined {itinerary_id} "
            f"(replaying {len(missed)} events after #{last_seen})"
        )
        return Subscription(subscriber_id, itinerary_id, connection, len(missed))

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a subscription; its cursor is kept for a later reconnect."""
        channel = self._channels.get(subscription.itinerary_id)
        if channel is None:
            return
        subscriber = channel.subscribers.get(subscription.subscriber_id)
        if subscriber is not None and subscriber.connection is subscription.connection:
            self._remove(channel, subscriber, "unsubscribed")

    async def wait_for_subscriber(self, itinerary_id: str, timeout: float) -> bool:
        """
        Wait until an itinerary has had at least one subscriber.

        Returns:
            True if a subscriber registered, False if the timeout expired
        """
        channel = self._channel(itinerary_id)
        if channel.ready.is_set():
            return True
        try:
            async with asyncio.timeout(timeout):
                await channel.ready.wait()
            return True
        except TimeoutError:
            logger.debug(f"No subscriber for {itinerary_id} after {timeout}s")
            return False

    # --- Publishing ---

    def publish(
        self,
        itinerary_id: str,
        kind: EventKind,
        data: dict[str, Any] | None = None,
    ) -> ItineraryEvent:
        """
        Append an event to the itinerary's log and hand it to every subscriber.

        Never waits on a client; must be called from the event loop thread.

        Returns:
            The published event with its sequence number
        """
        channel = self._channel(itinerary_id)
        event = ItineraryEvent(
            itinerary_id=itinerary_id,
            sequence=channel.next_sequence,
            kind=EventKind(kind),
            data=data or {},
        )
        channel.next_sequence += 1
        channel.log.append(event)
        self._published += 1

        for subscriber in list(channel.subscribers.values()):
            if not subscriber.alive or not self.transport.is_open(subscriber.connection):
                self._remove(channel, subscriber, "connection closed")
                continue
            try:
                subscriber.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Subscriber {subscriber.subscriber_id} on {itinerary_id} "
                    "fell too far behind"
                )
                self._remove(channel, subscriber, "queue overflow")

        if event.is_terminal:
            self._schedule_expiry(itinerary_id, channel, event.sequence)

        return event

    async def _deliver(
        self, itinerary_id: str, channel: _Channel, subscriber: _Subscriber
    ) -> None:
        """Drain one subscriber's queue in order."""
        while subscriber.alive:
            event = await subscriber.queue.get()
            try:
                async with self._fanout:
                    await self._send(subscriber, event)
            except TransportError as e:
                logger.warning(
                    f"Dropping subscriber {subscriber.subscriber_id} on "
                    f"{itinerary_id}: {e!s}"
                )
                self._remove(channel, subscriber, "send failed")
                return

            if event.sequence > channel.cursors.get(subscriber.subscriber_id, 0):
                channel.cursors[subscriber.subscriber_id] = event.sequence

    async def _send(self, subscriber: _Subscriber, event: ItineraryEvent) -> None:
        """Send one event, treating a send that never returns as a failed one."""
        timeout = self.settings.send_timeout
        try:
            async with asyncio.timeout(timeout):
                await self.transport.send(
                    subscriber.connection,
                    event.to_wire(self.settings.legacy_flat_fields),
                )
        except TimeoutError as e:
            raise TransportError(f"Send timed out after {timeout}s") from e

    # --- Cleanup ---

    def _stop_subscriber(self, channel: _Channel, subscriber: _Subscriber) -> None:
        subscriber.alive = False
        if channel.subscribers.get(subscriber.subscriber_id) is subscriber:
            del channel.subscribers[subscriber.subscriber_id]
        task = subscriber.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _remove(self, channel: _Channel, subscriber: _Subscriber, reason: str) -> None:
        if not subscriber.alive:
            return
        self._stop_subscriber(channel, subscriber)
        self._dropped += 1
        logger.debug(f"Removed subscriber {subscriber.subscriber_id}: {reason}")

    def _on_connection_event(
        self, itinerary_id: str, subscriber_id: str, connection: Any, reason: str
    ) -> None:
        channel = self._channels.get(itinerary_id)
        if channel is None:
            return
        subscriber = channel.subscribers.get(subscriber_id)
        if subscriber is not None and subscriber.connection is connection:
            self._remove(channel, subscriber, f"connection {reason}")

    def sweep(self) -> int:
        """
        Remove subscribers whose connection closed or whose sender stopped.

        Returns:
            Number of subscribers removed
        """
        removed = 0
        for channel in list(self._channels.values()):
            for subscriber in list(channel.subscribers.values()):
                finished = subscriber.task is not None and subscriber.task.done()
                if finished or not self.transport.is_open(subscriber.connection):
                    self._remove(channel, subscriber, "sweep")
                    removed += 1
        if removed:
            logger.info(f"Sweep removed {removed} dead subscribers")
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the periodic dead-subscriber sweep."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(
                self._sweep_loop(), name="broadcast-sweep"
            )

    async def stop(self) -> None:
        """Stop the sweep and every subscriber."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        for itinerary_id in list(self._channels):
            self.close_itinerary(itinerary_id)

    def _schedule_expiry(
        self, itinerary_id: str, channel: _Channel, terminal_sequence: int
    ) -> None:
        if channel.expiry is not None:
            channel.expiry.cancel()
        loop = asyncio.get_running_loop()
        channel.expiry = loop.call_later(
            self.settings.grace_period,
            self._expire,
            itinerary_id,
            terminal_sequence,
        )

    def _expire(self, itinerary_id: str, terminal_sequence: int) -> None:
        channel = self._channels.get(itinerary_id)
        if channel is None:
            return
        channel.expiry = None
        if channel.next_sequence - 1 > terminal_sequence:
            return

        channel.log.clear()
        channel.cursors.clear()
        if not channel.subscribers:
            del self._channels[itinerary_id]
        logger.debug(f"Expired event buffer for {itinerary_id}")

    def close_itinerary(self, itinerary_id: str) -> None:
        """Disconnect every subscriber of an itinerary and forget its log."""
        channel = self._channels.pop(itinerary_id, None)
        if channel is None:
            return
        if channel.expiry is not None:
            channel.expiry.cancel()
        for subscriber in list(channel.subscribers.values()):
            self._remove(channel, subscriber, "itinerary closed")

    # --- Introspection ---

    def connection_count(self, itinerary_id: str) -> int:
        """Number of live subscribers of an itinerary."""
        channel = self._channels.get(itinerary_id)
        if channel is None:
            return 0
        return sum(1 for s in channel.subscribers.values() if s.alive)

    def has_active_connections(self, itinerary_id: str) -> bool:
        """Whether an itinerary has at least one live subscriber."""
        return self.connection_count(itinerary_id) > 0

    def stats(self) -> dict[str, Any]:
        """Summarize broadcast state for diagnostics."""
        return {
            "itineraries": len(self._channels),
            "connections": sum(
                self.connection_count(itinerary_id) for itinerary_id in self._channels
            ),
            "buffered_events": sum(len(c.log) for c in self._channels.values()),
            "published": self._published,
            "dropped": self._dropped,
        }
