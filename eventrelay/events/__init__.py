"""Event infrastructure for Event Relay.

Provides:
- Event: Base class for all events, EventType: their stable keys
- EventBus: In-process fan-out to observers
- EventStorage: Persistence of events nobody observed yet
- EventBusHandler: Post/observe/replay protocol over bus and storage
"""

from eventrelay.events.base import Event, EventType
from eventrelay.events.bus import EventBus, Observer, ObserverHandle
from eventrelay.events.errors import (
    EventRelayError,
    StorageUnavailableError,
    UnknownEventTypeError,
)
from eventrelay.events.handler import EventBusHandler, HydrationResult
from eventrelay.events.registry import (
    AnyEvent,
    all_event_types,
    event_class_for,
    resolve_event_type,
)
from eventrelay.events.storage import (
    EventStorage,
    MemoryEventStorage,
    PendingEvent,
    SqlEventStorage,
)
from eventrelay.events.types import (
    AnonymousProfileIdentifiedEvent,
    DeleteDeviceTokenEvent,
    NewSubscriptionEvent,
    ProfileIdentifiedEvent,
    RegisterDeviceTokenEvent,
    ResetEvent,
    ScreenViewedEvent,
    TrackInAppMetricEvent,
    TrackMetricEvent,
)

__all__ = [
    # Base
    "Event",
    "EventType",
    # Infrastructure
    "EventBus",
    "Observer",
    "ObserverHandle",
    "EventBusHandler",
    "HydrationResult",
    "EventStorage",
    "SqlEventStorage",
    "MemoryEventStorage",
    "PendingEvent",
    # Registry
    "AnyEvent",
    "all_event_types",
    "event_class_for",
    "resolve_event_type",
    # Errors
    "EventRelayError",
    "StorageUnavailableError",
    "UnknownEventTypeError",
    # Event types
    "ProfileIdentifiedEvent",
    "AnonymousProfileIdentifiedEvent",
    "ScreenViewedEvent",
    "ResetEvent",
    "TrackMetricEvent",
    "TrackInAppMetricEvent",
    "RegisterDeviceTokenEvent",
    "DeleteDeviceTokenEvent",
    "NewSubscriptionEvent",
]
