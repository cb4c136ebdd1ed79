"""EventBus and event types for cache consistency."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Mutations that can change what a cached read returns."""

    FILE_CREATED = "file_created"
    FILE_RENAMED = "file_renamed"
    FILE_MOVED = "file_moved"
    FILE_DELETED = "file_deleted"
    FILE_SHARED = "file_shared"
    FILE_UNSHARED = "file_unshared"
    FILE_VISIBILITY_CHANGED = "file_visibility_changed"
    FOLDER_CREATED = "folder_created"
    FOLDER_RENAMED = "folder_renamed"
    FOLDER_MOVED = "folder_moved"
    FOLDER_DELETED = "folder_deleted"
    FOLDER_SHARED = "folder_shared"
    FOLDER_UNSHARED = "folder_unshared"
    FOLDER_VISIBILITY_CHANGED = "folder_visibility_changed"


SHARE_EVENTS = frozenset({
    EventType.FILE_SHARED,
    EventType.FILE_UNSHARED,
    EventType.FOLDER_SHARED,
    EventType.FOLDER_UNSHARED,
})


@dataclass(frozen=True, slots=True)
class DriveEvent:
    """Immutable record of a committed mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        resource_id: Id of the affected file or folder (first one for batches).
        user_id: Acting user, None for anonymous callers.
        owner_id: Owner of the affected resource, when known.
        recipients: Users whose share rows were created, updated, or removed.
    """

    event_type: EventType
    resource_id: str
    user_id: str | None = None
    owner_id: str | None = None
    recipients: tuple[str, ...] = ()


class EventBus:
    """Dispatches drive events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated; a failing handler
    degrades consistency, it does not fail the committed mutation.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: Callable[..., Any]) -> None:
        """Register *handler* for every event type."""
        for event_type in EventType:
            self.register(event_type, handler)

    async def emit(self, event: DriveEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.resource_id,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
