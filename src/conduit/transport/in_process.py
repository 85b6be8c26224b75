"""In-process transport - direct event delivery without IPC.

Useful for:
- Testing
- Embedding conduit in an application
- The command-line frontend
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Collection
from dataclasses import dataclass, field

from conduit.core.types import EventType, SessionEvent


@dataclass
class _Subscription:
    queue: asyncio.Queue[SessionEvent]
    session_id: str | None = None
    types: frozenset[EventType] | None = None

    def wants(self, event: SessionEvent) -> bool:
        if self.session_id is not None and event.session_id != self.session_id:
            return False
        return self.types is None or event.type in self.types


@dataclass
class InProcessTransport:
    """In-process transport - an EventSink with queued delivery.

    Every event lands in a main queue (next_event) and is broadcast to
    subscribers (events). Subscriber queues are unbounded so a session's
    stream is never truncated.

    Example:
        >>> transport = InProcessTransport()
        >>> orchestrator = ProcessOrchestrator(event_sink=transport)
        >>> await orchestrator.send_message("chat-1", "Hello")
        >>>
        >>> # Consume events of one session
        >>> async for event in transport.events(session_id="chat-1"):
        ...     print(event.type)
    """

    _event_queue: asyncio.Queue[SessionEvent] = field(default_factory=asyncio.Queue)
    _subscribers: list[_Subscription] = field(default_factory=list)

    async def emit(self, event: SessionEvent) -> None:
        """Receive an event and broadcast it to subscribers."""
        await self._event_queue.put(event)

        for subscription in self._subscribers:
            if subscription.wants(event):
                subscription.queue.put_nowait(event)

    async def events(
        self,
        session_id: str | None = None,
        types: Collection[EventType] | None = None,
    ) -> AsyncIterator[SessionEvent]:
        """Subscribe to events.

        Events emitted before iteration starts are not delivered here; use
        next_event to read from the beginning.

        Args:
            session_id: Only events of this session.
            types: Only events of these types.

        Yields:
            Events as they occur.
        """
        subscription = _Subscription(
            queue=asyncio.Queue(),
            session_id=session_id,
            types=frozenset(types) if types is not None else None,
        )
        self._subscribers.append(subscription)

        try:
            while True:
                yield await subscription.queue.get()
        finally:
            self._subscribers.remove(subscription)

    async def next_event(self, timeout: float | None = None) -> SessionEvent | None:
        """Get the next event.

        Args:
            timeout: Timeout in seconds.

        Returns:
            The next event, or None if timeout.
        """
        try:
            if timeout:
                return await asyncio.wait_for(self._event_queue.get(), timeout=timeout)
            return await self._event_queue.get()
        except TimeoutError:
            return None

    def pending_count(self) -> int:
        """Number of events waiting in the main queue."""
        return self._event_queue.qsize()

    def clear_events(self) -> None:
        """Clear pending events."""
        while not self._event_queue.empty():
            try:
                self._event_queue.get_nowait()
            except asyncio.QueueEmpty:
                break
