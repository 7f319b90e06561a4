"""
Event Bus for Encore.

A small pub/sub event system so other components (web push, audit logging)
can observe setlist changes without the collection manager knowing about them.

Event types:
- setlist.songs.loaded: The song list of a setlist was (re)loaded
- setlist.songs.added: A song was added
- setlist.songs.updated: Song fields changed
- setlist.songs.removed: A song was deleted
- setlist.songs.reordered: A reorder was persisted
- setlist.songs.reverted: A reorder failed and the order was reloaded

Usage:
    bus = EventBus()

    async def on_change(event: SetlistChangedEvent) -> None:
        print(f"{event.setlist_id}: {event.action}")

    await bus.subscribe("setlist.*", on_change)
    manager = OrderedCollectionManager(store, setlist_id, events=bus)

The bus is owned by the composition root (`EncoreServer`) and passed in
explicitly; there is no module-level instance.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class SetlistChangedEvent(Event):
    """Fired after the song list of a setlist changed (or was reloaded)."""

    setlist_id: str = ""
    action: str = ""
    song_ids: tuple[str, ...] = ()
    event_type: str = field(default="", init=False)

    def __post_init__(self) -> None:
        self.event_type = f"setlist.songs.{self.action}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "setlist_id": self.setlist_id,
            "action": self.action,
            "song_ids": list(self.song_ids),
        }


class EventBus:
    """
    Simple async pub/sub event bus.

    Supports:
    - Multiple handlers per event type
    - Wildcard subscriptions (e.g., "setlist.*")
    - Error isolation (one handler failing doesn't affect others)
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event type to subscribe to. Use ".*" suffix for wildcards.
            handler: Async function to call when event is published.
        """
        async with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed to %s: %s", event_type, handler)

    async def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns True if handler was found and removed.
        """
        async with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                return True
            return False

    async def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribed handlers.

        Returns:
            Number of handlers that received the event.
        """
        event_type = event.event_type
        handlers_called = 0

        async with self._lock:
            matching_handlers: list[EventHandler] = list(self._handlers.get(event_type, ()))
            for pattern, handlers in self._handlers.items():
                if pattern.endswith(".*"):
                    # "setlist.*" matches "setlist.songs.added"
                    if event_type.startswith(pattern[:-1]):
                        matching_handlers.extend(handlers)
                elif pattern == "*":
                    matching_handlers.extend(handlers)

        # Call handlers outside of lock
        for handler in matching_handlers:
            try:
                await handler(event)
                handlers_called += 1
            except Exception as e:
                logger.exception("Error in event handler for %s: %s", event_type, e)

        if handlers_called > 0:
            logger.debug("Published %s to %d handlers", event_type, handlers_called)

        return handlers_called

    async def clear(self) -> None:
        """Remove all subscriptions."""
        async with self._lock:
            self._handlers.clear()
