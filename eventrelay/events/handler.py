"""Event bus handler with durable replay.

The handler sits between producers, the EventBus, and EventStorage:
- Events posted while nobody observes their type are kept as pending,
  in memory and in storage.
- Registering an observer replays the pending events of its type in the
  order they were posted, forgetting each one once delivered.
- Storage and observer failures are logged and never reach producers.
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from concurrent.futures import Future
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

from eventrelay.events.base import Event, EventType
from eventrelay.events.bus import EventBus, Observer, ObserverHandle
from eventrelay.events.errors import UnknownEventTypeError
from eventrelay.events.registry import all_event_types, resolve_event_type
from eventrelay.events.storage import EventStorage, PendingEvent

logger = structlog.get_logger()

T = TypeVar("T")

# Event types whose lock is held by the current delivery context
_held_types: ContextVar[frozenset[EventType]] = ContextVar(
    "held_types", default=frozenset()
)


@dataclass
class HydrationResult:
    """Outcome of loading pending events from storage."""

    loaded: dict[EventType, int] = field(default_factory=dict)
    failed_types: list[EventType] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """Whether every event type loaded without error."""
        return not self.failed_types

    @property
    def total_loaded(self) -> int:
        """Number of pending events loaded across all types."""
        return sum(self.loaded.values())


class EventBusHandler:
    """Owns the post/observe/replay protocol on top of an EventBus.

    Posting and replay for one event type are serialized by a lock for
    that type, so a replay can never race a post of the same type.
    Operations on different types run independently.

    Observers may call back into the handler. A post or replay requested
    from inside a delivery of the same type is queued and runs before the
    type's lock is released. Observer removal never waits for the lock.

    Every public operation waits for hydration. If start() has not been
    awaited yet, the first operation starts it.
    """

    def __init__(
        self,
        bus: EventBus,
        storage: EventStorage,
        storage_timeout: float = 5.0,
    ):
        """Initialize the handler.

        Args:
            bus: Fan-out primitive used for delivery
            storage: Durable medium for pending events
            storage_timeout: Upper bound in seconds for a single storage call
        """
        self._bus = bus
        self._storage = storage
        self._storage_timeout = storage_timeout
        self._pending: dict[EventType, list[PendingEvent]] = {
            event_type: [] for event_type in all_event_types()
        }
        self._locks: dict[EventType, asyncio.Lock] = {
            event_type: asyncio.Lock() for event_type in all_event_types()
        }
        self._deferred: dict[EventType, deque[Callable[[], Awaitable[None]]]] = {
            event_type: deque() for event_type in all_event_types()
        }
        self._hydration: asyncio.Task[HydrationResult] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    async def start(self) -> HydrationResult:
        """Load pending events and accept traffic.

        Safe to await more than once; hydration only runs the first time.
        """
        self._loop = asyncio.get_running_loop()
        return await self._ensure_hydrated()

    async def hydrate(self) -> HydrationResult:
        """Load pending events of every registered type from storage.

        A type whose load fails keeps its current in-memory records and is
        reported in ``failed_types``. Reloading a type replaces its records
        with what storage returns, followed by any records that only exist
        in memory because their store call failed.
        """
        result = HydrationResult()
        for event_type in all_event_types():
            async with self._locks[event_type]:
                try:
                    stored = await self._call_storage(self._storage.load(event_type))
                except Exception as e:
                    logger.error(
                        "hydration failed",
                        event_type=event_type.value,
                        error=str(e) or type(e).__name__,
                    )
                    result.failed_types.append(event_type)
                    continue

                stored_ids = {record.storage_id for record in stored}
                memory_only = [
                    record
                    for record in self._pending[event_type]
                    if record.storage_id not in stored_ids
                ]
                self._pending[event_type] = list(stored) + memory_only
                result.loaded[event_type] = len(stored)

        logger.info(
            "hydration finished",
            loaded=result.total_loaded,
            failed_types=[t.value for t in result.failed_types],
        )
        return result

    async def post_event(self, event: Event) -> None:
        """Deliver an event, keeping it as pending if nobody observes it.

        An event delivered to at least one observer is considered handled
        and is not stored. Never raises for storage or observer failures.
        When called by an observer of the same type, the event is queued
        and delivered once the current delivery finishes.
        """
        try:
            event_type = resolve_event_type(type(event))
        except UnknownEventTypeError as e:
            logger.error("event dropped", error=str(e))
            return

        await self._ensure_hydrated()
        if self._defer(event_type, lambda: self._post_locked(event_type, event)):
            return
        async with self._type_lock(event_type):
            await self._post_locked(event_type, event)

    def post_event_threadsafe(self, event: Event) -> Future[None]:
        """Schedule post_event on the handler's loop from another thread.

        Raises:
            RuntimeError: If start() has not been awaited
        """
        if self._loop is None:
            msg = "Handler not started. Await start() first."
            raise RuntimeError(msg)
        return asyncio.run_coroutine_threadsafe(self.post_event(event), self._loop)

    async def add_observer(
        self,
        target: EventType | str | type[Event],
        observer: Observer,
    ) -> ObserverHandle:
        """Register an observer and replay pending events of its type.

        Args:
            target: Event type key, its string value, or an Event class
            observer: Function called with each event of that type

        Returns:
            Handle that can later be passed to remove_observer

        Raises:
            UnknownEventTypeError: If target is not a registered event kind
        """
        event_type = resolve_event_type(target)
        await self._ensure_hydrated()
        if self._defer(event_type, lambda: self._replay(event_type)):
            return self._bus.add_observer(event_type, observer)
        async with self._type_lock(event_type):
            handle = self._bus.add_observer(event_type, observer)
            await self._replay(event_type)
        return handle

    async def remove_observer(
        self,
        target: ObserverHandle | EventType | str | type[Event],
    ) -> int:
        """Unregister one observer, or every observer of an event type.

        Pending events are untouched; once a type has no observers its
        events are kept as pending again. Safe to call from an observer,
        including during replay: the bus delivers from a snapshot and a
        replay stops once no observer is left.

        Returns:
            Number of observers removed
        """
        if isinstance(target, ObserverHandle):
            bus_target: ObserverHandle | EventType = target
        else:
            bus_target = resolve_event_type(target)
        await self._ensure_hydrated()
        return self._bus.remove_observer(bus_target)

    def pending_events(self, target: EventType | str | type[Event]) -> list[PendingEvent]:
        """Snapshot of the in-memory pending events of one type, oldest first."""
        return list(self._pending[resolve_event_type(target)])

    @asynccontextmanager
    async def _type_lock(self, event_type: EventType) -> AsyncIterator[None]:
        """Hold the type's lock, then run work queued by observers before release."""
        async with self._locks[event_type]:
            token = _held_types.set(_held_types.get() | {event_type})
            try:
                yield
                queue = self._deferred[event_type]
                while queue:
                    operation = queue.popleft()
                    try:
                        await operation()
                    except Exception as e:
                        logger.error(
                            "queued operation failed",
                            event_type=event_type.value,
                            error=str(e),
                            exc_info=True,
                        )
            finally:
                _held_types.reset(token)

    def _defer(
        self,
        event_type: EventType,
        operation: Callable[[], Awaitable[None]],
    ) -> bool:
        """Queue an operation if this context already holds the type's lock."""
        if event_type in _held_types.get() and self._locks[event_type].locked():
            self._deferred[event_type].append(operation)
            return True
        return False

    async def _post_locked(self, event_type: EventType, event: Event) -> None:
        """Deliver or persist one event. Caller holds the type's lock."""
        if await self._bus.post(event):
            return

        record = PendingEvent(event=event)
        self._pending[event_type].append(record)
        logger.debug(
            "event pending",
            event_type=event_type.value,
            storage_id=str(record.storage_id),
        )
        try:
            await self._call_storage(self._storage.store(record))
        except Exception as e:
            logger.warning(
                "pending event kept in memory only",
                event_type=event_type.value,
                storage_id=str(record.storage_id),
                error=str(e) or type(e).__name__,
            )

    async def _replay(self, event_type: EventType) -> None:
        """Re-deliver pending events of one type. Caller holds the type's lock."""
        snapshot = list(self._pending[event_type])
        if not snapshot:
            return

        replayed = 0
        for record in snapshot:
            if not await self._bus.post(record.event):
                logger.warning(
                    "replay stopped, no observers",
                    event_type=event_type.value,
                    remaining=len(snapshot) - replayed,
                )
                break

            self._pending[event_type].remove(record)
            replayed += 1
            try:
                await self._call_storage(self._storage.remove(record.storage_id))
            except Exception as e:
                logger.warning(
                    "replayed event left in storage",
                    event_type=event_type.value,
                    storage_id=str(record.storage_id),
                    error=str(e) or type(e).__name__,
                )

        logger.info("pending events replayed", event_type=event_type.value, count=replayed)

    async def _ensure_hydrated(self) -> HydrationResult:
        task = self._hydration
        if task is None or (
            task.done() and (task.cancelled() or task.exception() is not None)
        ):
            task = self._hydration = asyncio.create_task(self.hydrate())
        # Cancelling one caller leaves the shared hydration running
        return await asyncio.shield(task)

    async def _call_storage(self, operation: Awaitable[T]) -> T:
        return await asyncio.wait_for(operation, timeout=self._storage_timeout)
