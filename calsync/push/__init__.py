"""Best-effort Web Push notifications for registered devices."""

from .dispatcher import (
    TEST_PAYLOAD,
    BroadcastResult,
    DeliveryError,
    NoSubscribersError,
    PushDispatcher,
    PushNotConfiguredError,
    PushPreconditionError,
    PushTransport,
    WebPushTransport,
    create_dispatcher,
)
from .registry import InvalidSubscriptionError, Subscription, SubscriptionRegistry

__all__ = [
    "TEST_PAYLOAD",
    "BroadcastResult",
    "DeliveryError",
    "InvalidSubscriptionError",
    "NoSubscribersError",
    "PushDispatcher",
    "PushNotConfiguredError",
    "PushPreconditionError",
    "PushTransport",
    "Subscription",
    "SubscriptionRegistry",
    "WebPushTransport",
    "create_dispatcher",
]
