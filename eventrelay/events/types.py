"""Typed event definitions.

These events represent things that happen in the host application:
- ProfileIdentifiedEvent: A known profile was identified
- AnonymousProfileIdentifiedEvent: An anonymous profile was identified
- ScreenViewedEvent: The user navigated to a screen
- ResetEvent: The current profile was cleared
- TrackMetricEvent: A push delivery metric was recorded
- TrackInAppMetricEvent: An in-app message metric was recorded
- RegisterDeviceTokenEvent: A push device token was registered
- DeleteDeviceTokenEvent: The push device token was deleted
- NewSubscriptionEvent: A module subscribed to the bus under a key
"""

from typing import Literal

from pydantic import Field

from eventrelay.events.base import Event


class ProfileIdentifiedEvent(Event):
    """Emitted when a profile is identified."""

    event_type: Literal["profile_identified"] = "profile_identified"
    identifier: str = Field(description="Profile identifier")


class AnonymousProfileIdentifiedEvent(Event):
    """Emitted when an anonymous profile is identified."""

    event_type: Literal["anonymous_profile_identified"] = (
        "anonymous_profile_identified"
    )
    identifier: str = Field(description="Anonymous profile identifier")


class ScreenViewedEvent(Event):
    """Emitted when a screen is viewed."""

    event_type: Literal["screen_viewed"] = "screen_viewed"
    name: str = Field(description="Screen name, used as the current route")


class ResetEvent(Event):
    """Emitted when the identified profile is cleared."""

    event_type: Literal["reset"] = "reset"


class TrackMetricEvent(Event):
    """Emitted when a push notification metric is tracked."""

    event_type: Literal["track_metric"] = "track_metric"
    delivery_id: str = Field(description="Delivery the metric belongs to")
    event: str = Field(description="Metric name, e.g. opened or delivered")
    device_token: str = Field(description="Device that reported the metric")


class TrackInAppMetricEvent(Event):
    """Emitted when an in-app message metric is tracked."""

    event_type: Literal["track_inapp_metric"] = "track_inapp_metric"
    delivery_id: str = Field(description="Delivery the metric belongs to")
    event: str = Field(description="Metric name, e.g. clicked or opened")


class RegisterDeviceTokenEvent(Event):
    """Emitted when a push device token is registered."""

    event_type: Literal["register_device_token"] = "register_device_token"
    token: str = Field(description="Push device token")


class DeleteDeviceTokenEvent(Event):
    """Emitted when the push device token is deleted."""

    event_type: Literal["delete_device_token"] = "delete_device_token"


class NewSubscriptionEvent(Event):
    """Emitted when a module subscribes to the bus."""

    event_type: Literal["new_subscription"] = "new_subscription"
    subscribed_key: str = Field(description="Key the subscriber registered under")
