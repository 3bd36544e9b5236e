"""Catalog of every event kind known to the bus.

The registry is the single place that enumerates event kinds. Hydration
walks ``all_event_types()`` at startup, and persisted events are decoded
through the ``AnyEvent`` discriminated union.
"""

from typing import Annotated, Any

from pydantic import Field, TypeAdapter

from eventrelay.events.base import Event, EventType
from eventrelay.events.errors import UnknownEventTypeError
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

EVENT_CLASSES: tuple[type[Event], ...] = (
    ProfileIdentifiedEvent,
    AnonymousProfileIdentifiedEvent,
    ScreenViewedEvent,
    ResetEvent,
    TrackMetricEvent,
    TrackInAppMetricEvent,
    RegisterDeviceTokenEvent,
    DeleteDeviceTokenEvent,
    NewSubscriptionEvent,
)

AnyEvent = Annotated[
    ProfileIdentifiedEvent
    | AnonymousProfileIdentifiedEvent
    | ScreenViewedEvent
    | ResetEvent
    | TrackMetricEvent
    | TrackInAppMetricEvent
    | RegisterDeviceTokenEvent
    | DeleteDeviceTokenEvent
    | NewSubscriptionEvent,
    Field(discriminator="event_type"),
]

event_adapter: TypeAdapter[Any] = TypeAdapter(AnyEvent)


def _build_registry() -> dict[EventType, type[Event]]:
    registry: dict[EventType, type[Event]] = {}
    for event_class in EVENT_CLASSES:
        key = event_class.key()
        if key in registry:
            msg = (
                f"Event type {key!r} is claimed by both "
                f"{registry[key].__name__} and {event_class.__name__}"
            )
            raise RuntimeError(msg)
        registry[key] = event_class

    missing = set(EventType) - set(registry)
    if missing:
        names = ", ".join(sorted(missing))
        msg = f"Event types without an event class: {names}"
        raise RuntimeError(msg)
    return registry


_REGISTRY = _build_registry()


def all_event_types() -> list[EventType]:
    """Return every registered event type key in declaration order."""
    return list(_REGISTRY)


def event_class_for(event_type: EventType | str) -> type[Event]:
    """Return the event class registered for a type key.

    Raises:
        UnknownEventTypeError: If the key is not registered
    """
    try:
        return _REGISTRY[EventType(event_type)]
    except (KeyError, ValueError):
        raise UnknownEventTypeError(event_type) from None


def resolve_event_type(target: EventType | str | type[Event]) -> EventType:
    """Resolve an observer target to its event type key.

    Args:
        target: An EventType, its string value, or a concrete Event class

    Raises:
        UnknownEventTypeError: If the target is not a registered event kind
    """
    if isinstance(target, type) and issubclass(target, Event):
        try:
            key = target.key()
        except (TypeError, ValueError):
            raise UnknownEventTypeError(target.__name__) from None
        if _REGISTRY.get(key) is not target:
            raise UnknownEventTypeError(target.__name__)
        return key
    return event_class_for(target).key()
