"""Base Event class and the stable event type keys."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Stable keys identifying each event kind.

    Values are persisted alongside pending events, so they must never change.
    """

    PROFILE_IDENTIFIED = "profile_identified"
    ANONYMOUS_PROFILE_IDENTIFIED = "anonymous_profile_identified"
    SCREEN_VIEWED = "screen_viewed"
    RESET = "reset"
    TRACK_METRIC = "track_metric"
    TRACK_INAPP_METRIC = "track_inapp_metric"
    REGISTER_DEVICE_TOKEN = "register_device_token"
    DELETE_DEVICE_TOKEN = "delete_device_token"
    NEW_SUBSCRIPTION = "new_subscription"


class Event(BaseModel):
    """Base class for all events carried by the bus.

    Events are immutable records of things that happened. Concrete kinds
    narrow ``event_type`` to a ``Literal`` of their key, which makes the
    set of kinds a closed, tagged union.

    Attributes:
        event_type: Discriminant key of the event kind
        storage_id: Unique identifier, stable across persist/reload
        timestamp: When the event was created
        params: Free-form string extras attached by the producer
    """

    model_config = ConfigDict(
        frozen=True,  # Events are immutable
        str_strip_whitespace=True,
    )

    event_type: str
    storage_id: UUID = Field(
        default_factory=uuid4,
        description="Identifier used to remove the event from storage",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred",
    )
    params: dict[str, str] = Field(
        default_factory=dict,
        description="Additional event context",
    )

    @classmethod
    def key(cls) -> EventType:
        """Return the type key of this event kind."""
        field = cls.model_fields["event_type"]
        if not isinstance(field.default, str):
            msg = f"{cls.__name__} does not declare an event type key"
            raise TypeError(msg)
        return EventType(field.default)

    @property
    def type_key(self) -> EventType:
        """Return the type key of this event instance."""
        return EventType(self.event_type)
