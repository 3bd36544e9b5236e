"""Durable storage for events that were posted with no observers.

Storage has no business logic. It keeps pending events per event type in
the order they were stored and forgets them on request. Caching of pending
events lives in the handler, not here.
"""

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from eventrelay.db.turso import TursoClient
from eventrelay.events.base import EventType
from eventrelay.events.errors import StorageUnavailableError
from eventrelay.events.registry import AnyEvent, event_adapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Exceptions that are retriable (transient failures)
RETRIABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
)


class PendingEvent(BaseModel):
    """An event waiting in storage for its first observer."""

    model_config = ConfigDict(frozen=True)

    event: AnyEvent

    @property
    def storage_id(self) -> UUID:
        return self.event.storage_id

    @property
    def event_type(self) -> EventType:
        return self.event.type_key

    def to_json(self) -> str:
        """Serialize the wrapped event for storage."""
        return self.event.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "PendingEvent":
        """Rebuild a pending event from its stored form.

        Raises:
            ValidationError: If the data is not a known event kind
        """
        return cls(event=event_adapter.validate_json(data))


class EventStorage(ABC):
    """Contract for pending event persistence.

    - load returns records in the order they were first stored
    - store with an existing storage id overwrites in place
    - remove of an absent storage id is a no-op
    """

    @abstractmethod
    async def load(self, event_type: EventType) -> list[PendingEvent]:
        """Load all pending events of one type, oldest first."""

    @abstractmethod
    async def store(self, record: PendingEvent) -> None:
        """Persist a pending event."""

    @abstractmethod
    async def remove(self, storage_id: UUID) -> None:
        """Forget a pending event."""

    @abstractmethod
    async def count(self, event_type: EventType | None = None) -> int:
        """Count pending events, optionally by type."""


def with_storage_retry(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Decorator to retry storage operations with exponential backoff.

    Transient failures are retried up to the storage's ``retry_attempts``.
    Whatever still fails is raised as StorageUnavailableError.
    """

    @functools.wraps(func)
    async def wrapper(self: "SqlEventStorage", *args: Any, **kwargs: Any) -> T:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.05, max=1),
                retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
                before_sleep=before_sleep_log(logger, logging.INFO),
                reraise=True,
            ):
                with attempt:
                    result = await func(self, *args, **kwargs)
        except Exception as e:
            logger.error(f"Storage {func.__name__} failed: {e}")
            raise StorageUnavailableError(func.__name__, str(e)) from e
        return result

    return wrapper


class SqlEventStorage(EventStorage):
    """Pending event storage in a libSQL/SQLite table.

    An autoincrement sequence column keeps FIFO order per event type,
    and upserts keep the original position of an overwritten record.
    """

    def __init__(self, client: TursoClient, retry_attempts: int = 3):
        """Initialize storage.

        Args:
            client: Database client for persistence
            retry_attempts: Attempts for calls failing with transient errors
        """
        self.client = client
        self.retry_attempts = retry_attempts

    async def init_schema(self) -> None:
        """Create the pending_events table if it doesn't exist."""
        await self.client.execute("""
            CREATE TABLE IF NOT EXISTS pending_events (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                storage_id TEXT UNIQUE NOT NULL,
                event_type TEXT NOT NULL,
                event_data TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self.client.execute("""
            CREATE INDEX IF NOT EXISTS idx_pending_events_type
            ON pending_events(event_type, seq)
        """)
        logger.info("Pending event schema initialized")

    @with_storage_retry
    async def load(self, event_type: EventType) -> list[PendingEvent]:
        result = await self.client.execute(
            """SELECT storage_id, event_data
               FROM pending_events
               WHERE event_type = ?
               ORDER BY seq ASC""",
            [event_type.value],
        )
        records: list[PendingEvent] = []
        for row in result.rows:
            try:
                records.append(PendingEvent.from_json(row[1]))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable pending event {row[0]}: {e}")
        logger.debug(f"Loaded {len(records)} pending {event_type.value} event(s)")
        return records

    @with_storage_retry
    async def store(self, record: PendingEvent) -> None:
        await self.client.execute(
            """INSERT INTO pending_events
               (storage_id, event_type, event_data, timestamp)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(storage_id) DO UPDATE SET
                   event_type = excluded.event_type,
                   event_data = excluded.event_data,
                   timestamp = excluded.timestamp""",
            [
                str(record.storage_id),
                record.event_type.value,
                record.to_json(),
                record.event.timestamp.isoformat(),
            ],
        )
        logger.debug(f"Stored pending event {record.event_type.value} ({record.storage_id})")

    @with_storage_retry
    async def remove(self, storage_id: UUID) -> None:
        await self.client.execute(
            "DELETE FROM pending_events WHERE storage_id = ?",
            [str(storage_id)],
        )
        logger.debug(f"Removed pending event {storage_id}")

    @with_storage_retry
    async def count(self, event_type: EventType | None = None) -> int:
        if event_type:
            result = await self.client.execute(
                "SELECT COUNT(*) FROM pending_events WHERE event_type = ?",
                [event_type.value],
            )
        else:
            result = await self.client.execute("SELECT COUNT(*) FROM pending_events")
        return result.rows[0][0]


class MemoryEventStorage(EventStorage):
    """Volatile pending event storage.

    Honors the same contract as SqlEventStorage but loses everything when
    the process exits.
    """

    def __init__(self) -> None:
        self._records: dict[EventType, dict[UUID, PendingEvent]] = {}

    async def load(self, event_type: EventType) -> list[PendingEvent]:
        return list(self._records.get(event_type, {}).values())

    async def store(self, record: PendingEvent) -> None:
        # Overwriting a key keeps its insertion position
        self._records.setdefault(record.event_type, {})[record.storage_id] = record

    async def remove(self, storage_id: UUID) -> None:
        for records in self._records.values():
            if records.pop(storage_id, None) is not None:
                return

    async def count(self, event_type: EventType | None = None) -> int:
        if event_type:
            return len(self._records.get(event_type, {}))
        return sum(len(records) for records in self._records.values())
