"""In-process fan-out of events to registered observers.

The bus only tracks observers and delivers to them. It has no knowledge
of pending events or storage; replay is the handler's job.
"""

import inspect
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import structlog

from eventrelay.events.base import Event, EventType

logger = structlog.get_logger()

Observer = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


@dataclass(frozen=True)
class ObserverHandle:
    """Token identifying one observer registration."""

    event_type: EventType
    id: UUID = field(default_factory=uuid4)


class EventBus:
    """Synchronous-order event bus for in-process pub/sub.

    Features:
    - Observers keyed by event type, delivered in registration order
    - Sync and async observer support
    - Error isolation (one observer failure doesn't affect others)
    """

    def __init__(self) -> None:
        self._observers: dict[EventType, list[tuple[ObserverHandle, Observer]]] = {}
        self._lock = threading.Lock()

    def add_observer(self, event_type: EventType, observer: Observer) -> ObserverHandle:
        """Register an observer for future posts of an event type.

        Nothing is delivered retroactively.

        Args:
            event_type: The event type key to observe
            observer: Function called with each posted event

        Returns:
            Handle that can later be passed to remove_observer
        """
        handle = ObserverHandle(event_type=event_type)
        with self._lock:
            self._observers.setdefault(event_type, []).append((handle, observer))
        logger.debug("observer added", event_type=event_type.value, observer_id=str(handle.id))
        return handle

    def remove_observer(self, target: ObserverHandle | EventType) -> int:
        """Unregister one observer, or all observers of an event type.

        Args:
            target: Handle of a single observer, or an event type key

        Returns:
            Number of observers removed (0 if nothing matched)
        """
        if isinstance(target, ObserverHandle):
            event_type = target.event_type
            with self._lock:
                entries = self._observers.get(event_type, [])
                kept = [entry for entry in entries if entry[0] != target]
                removed = len(entries) - len(kept)
                if kept:
                    self._observers[event_type] = kept
                else:
                    self._observers.pop(event_type, None)
        else:
            event_type = target
            with self._lock:
                removed = len(self._observers.pop(event_type, []))

        if removed:
            logger.debug("observers removed", event_type=event_type.value, count=removed)
        return removed

    async def post(self, event: Event) -> bool:
        """Deliver an event to every observer of its type.

        Observers run one after another in registration order. Failures are
        logged and do not stop delivery to the remaining observers.

        Args:
            event: The event to deliver

        Returns:
            True if at least one observer was registered for the event type
        """
        event_type = event.type_key
        with self._lock:
            observers = [observer for _, observer in self._observers.get(event_type, [])]

        if not observers:
            logger.debug("no observers for event", event_type=event_type.value)
            return False

        logger.debug(
            "posting event",
            event_type=event_type.value,
            storage_id=str(event.storage_id),
            observers=len(observers),
        )
        for observer in observers:
            await self._deliver(observer, event)
        return True

    async def _deliver(self, observer: Observer, event: Event) -> None:
        """Run one observer, logging instead of raising on failure."""
        try:
            result = observer(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "observer failed",
                event_type=event.event_type,
                storage_id=str(event.storage_id),
                error=str(e),
                exc_info=True,
            )

    def observer_count(self, event_type: EventType) -> int:
        """Get number of observers for an event type."""
        with self._lock:
            return len(self._observers.get(event_type, []))
