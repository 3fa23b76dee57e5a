"""In-memory registry of Web Push subscriptions."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("p256dh", "auth")


class InvalidSubscriptionError(ValueError):
    """Raised when a subscription payload lacks its endpoint or keys."""


@dataclass
class Subscription:
    """A browser push endpoint and the keys used to encrypt payloads."""

    endpoint: str
    keys: dict[str, str]
    user_agent: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_webpush_info(self) -> dict[str, Any]:
        """Subscription info in the shape the push transport expects."""
        return {"endpoint": self.endpoint, "keys": dict(self.keys)}

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "keys": dict(self.keys),
            "userAgent": self.user_agent,
            "createdAt": self.created_at.isoformat(),
        }


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


class SubscriptionRegistry:
    """Process-scoped set of subscriptions, unique by endpoint.

    Starts empty and is never persisted. It changes only through
    ``register`` (append or no-op) and ``prune_and_keep`` (full replace).
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    @property
    def subscriptions(self) -> list[Subscription]:
        """Snapshot of the current subscriptions."""
        return list(self._subscriptions)

    def get(self, endpoint: str) -> Subscription | None:
        for sub in self._subscriptions:
            if sub.endpoint == endpoint:
                return sub
        return None

    def register(self, data: Any, user_agent: str = "") -> bool:
        """Register a subscription sent by a client.

        Args:
            data: Decoded ``PushSubscription`` JSON with ``endpoint`` and
                ``keys.p256dh``/``keys.auth``.
            user_agent: Client descriptor captured from the request.

        Returns:
            True if a new subscription was added, False if the endpoint
            was already registered.

        Raises:
            InvalidSubscriptionError: If the endpoint or a key is missing.
        """
        if not isinstance(data, dict) or not _non_empty_str(data.get("endpoint")):
            raise InvalidSubscriptionError("Subscription endpoint is missing")

        keys = data.get("keys")
        if not isinstance(keys, dict) or not all(
            _non_empty_str(keys.get(k)) for k in REQUIRED_KEYS
        ):
            raise InvalidSubscriptionError("Subscription keys p256dh and auth are required")

        endpoint = data["endpoint"]
        if self.get(endpoint) is not None:
            return False

        self._subscriptions.append(
            Subscription(
                endpoint=endpoint,
                keys={k: keys[k] for k in REQUIRED_KEYS},
                user_agent=user_agent or "",
            )
        )
        logger.info(f"Registered push subscription ({len(self)} total)")
        return True

    def prune_and_keep(self, predicate: Callable[[Subscription], bool]) -> None:
        """Keep only the subscriptions ``predicate`` accepts."""
        before = len(self._subscriptions)
        self._subscriptions = [s for s in self._subscriptions if predicate(s)]

        removed = before - len(self._subscriptions)
        if removed:
            logger.info(f"Pruned {removed} push subscriptions ({len(self)} remaining)")
