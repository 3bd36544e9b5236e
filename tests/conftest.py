"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from eventrelay.db.turso import TursoClient
from eventrelay.events.base import EventType
from eventrelay.events.bus import EventBus, ObserverHandle
from eventrelay.events.errors import StorageUnavailableError
from eventrelay.events.handler import EventBusHandler
from eventrelay.events.storage import MemoryEventStorage, PendingEvent, SqlEventStorage


class SpyEventStorage(MemoryEventStorage):
    """Memory storage that counts calls, with optional failures."""

    def __init__(self) -> None:
        super().__init__()
        self.load_calls: list[EventType] = []
        self.store_calls: list[PendingEvent] = []
        self.remove_calls: list[UUID] = []
        self.fail_load_for: set[EventType] = set()
        self.fail_store = False
        self.fail_remove = False
        self.store_delay = 0.0
        self.load_delay = 0.0
        # Raised instead of StorageUnavailableError when set
        self.failure: Exception | None = None

    @property
    def store_calls_count(self) -> int:
        return len(self.store_calls)

    @property
    def remove_calls_count(self) -> int:
        return len(self.remove_calls)

    async def load(self, event_type: EventType) -> list[PendingEvent]:
        self.load_calls.append(event_type)
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if event_type in self.fail_load_for:
            raise self.failure or StorageUnavailableError("load", "disk unavailable")
        return await super().load(event_type)

    async def store(self, record: PendingEvent) -> None:
        self.store_calls.append(record)
        if self.store_delay:
            await asyncio.sleep(self.store_delay)
        if self.fail_store:
            raise self.failure or StorageUnavailableError("store", "disk full")
        await super().store(record)

    async def remove(self, storage_id: UUID) -> None:
        self.remove_calls.append(storage_id)
        if self.fail_remove:
            raise self.failure or StorageUnavailableError("remove", "disk unavailable")
        await super().remove(storage_id)


@pytest.fixture
def storage() -> SpyEventStorage:
    """Create counting memory storage."""
    return SpyEventStorage()


@pytest.fixture
def mock_bus() -> MagicMock:
    """Create mock EventBus reporting no observers by default."""
    bus = MagicMock(spec=EventBus)
    bus.post = AsyncMock(return_value=False)
    bus.add_observer.side_effect = lambda event_type, observer: ObserverHandle(
        event_type=event_type
    )
    bus.remove_observer.return_value = 1
    return bus


@pytest.fixture
def handler(storage: SpyEventStorage) -> EventBusHandler:
    """Create handler over a real bus and counting storage."""
    return EventBusHandler(bus=EventBus(), storage=storage)


@pytest.fixture
def mocked_handler(mock_bus: MagicMock, storage: SpyEventStorage) -> EventBusHandler:
    """Create handler over a mock bus and counting storage."""
    return EventBusHandler(bus=mock_bus, storage=storage)


@pytest.fixture
async def db_client(tmp_path: Path) -> AsyncIterator[TursoClient]:
    """Create a temp file database client for testing."""
    db_path = tmp_path / "test_pending_events.db"
    client = TursoClient(url=f"file:{db_path}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def sql_storage(db_client: TursoClient) -> SqlEventStorage:
    """Create SQL storage with initialized schema."""
    storage = SqlEventStorage(db_client)
    await storage.init_schema()
    return storage
