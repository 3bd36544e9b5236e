"""Event Relay: in-process event bus with durable replay."""

from eventrelay.events import (
    Event,
    EventBus,
    EventBusHandler,
    EventType,
    MemoryEventStorage,
    SqlEventStorage,
)
from eventrelay.main import event_relay_lifespan

__all__ = [
    "Event",
    "EventBus",
    "EventBusHandler",
    "EventType",
    "MemoryEventStorage",
    "SqlEventStorage",
    "event_relay_lifespan",
]
