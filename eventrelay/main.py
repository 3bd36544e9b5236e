"""Application wiring for the event relay.

The handler is built once per process and passed explicitly to producers
and consumers; there is no global instance.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from eventrelay.config import Settings, get_settings
from eventrelay.db.turso import TursoClient
from eventrelay.events.bus import EventBus
from eventrelay.events.handler import EventBusHandler
from eventrelay.events.storage import EventStorage, MemoryEventStorage, SqlEventStorage

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def build_storage(settings: Settings, db: TursoClient | None) -> EventStorage:
    """Create the pending event storage selected by settings.

    Args:
        settings: Application settings
        db: Connected database client, required for the sql backend

    Raises:
        ValueError: If the sql backend is selected without a database client
    """
    if settings.storage_backend == "memory":
        logger.warning("Using memory storage, pending events will not survive restarts")
        return MemoryEventStorage()

    if db is None:
        msg = "The sql storage backend needs a database client"
        raise ValueError(msg)
    storage = SqlEventStorage(db, retry_attempts=settings.storage_retry_attempts)
    await storage.init_schema()
    return storage


@asynccontextmanager
async def event_relay_lifespan(
    settings: Settings | None = None,
    db: TursoClient | None = None,
) -> AsyncGenerator[EventBusHandler, None]:
    """Application lifespan management.

    Startup:
    - Connect database (sql backend)
    - Initialize pending event storage
    - Build bus and handler, hydrate pending events

    Shutdown:
    - Close database connection

    Args:
        settings: Settings to use. Defaults to the cached settings.
        db: Database client to use. Defaults to one built from settings.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    logger.info(f"Starting {settings.app_name}...")

    if settings.storage_backend == "sql":
        db = db or TursoClient(
            url=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        await db.connect()
    else:
        db = None

    try:
        storage = await build_storage(settings, db)
        handler = EventBusHandler(
            bus=EventBus(),
            storage=storage,
            storage_timeout=settings.storage_timeout_seconds,
        )
        result = await handler.start()
        logger.info(
            f"Event bus handler ready with {result.total_loaded} pending event(s)"
        )
        yield handler
    finally:
        logger.info(f"Shutting down {settings.app_name}...")
        if db is not None:
            await db.close()
