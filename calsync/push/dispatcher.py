"""Fan-out of push notifications to every registered subscription.

Handles per-endpoint failures without aborting the round, and prunes
endpoints the push service reports as permanently gone.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pywebpush import WebPushException, webpush

from ..config import PushConfig
from .registry import Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)

# Push service responses meaning the endpoint will never accept deliveries again
GONE_STATUS_CODES = frozenset({404, 410})

TEST_PAYLOAD = {"title": "Test RDV Taxi", "body": "Ça marche !"}


class PushPreconditionError(Exception):
    """Raised when a broadcast cannot be attempted at all."""


class PushNotConfiguredError(PushPreconditionError):
    """Raised when no VAPID credentials are configured."""


class NoSubscribersError(PushPreconditionError):
    """Raised when there is nobody to deliver to."""


class DeliveryError(Exception):
    """A single delivery attempt failed."""

    def __init__(self, status_code: int | None, reason: str = ""):
        super().__init__(reason or f"Push delivery failed (HTTP {status_code})")
        self.status_code = status_code
        self.reason = reason

    @property
    def gone(self) -> bool:
        """Whether the endpoint no longer exists."""
        return self.status_code in GONE_STATUS_CODES


@dataclass
class BroadcastResult:
    """Outcome of one broadcast round."""

    sent: int = 0
    failed: int = 0
    pruned: int = 0
    remaining: int = 0


class PushTransport(ABC):
    """Delivers an encoded payload to one subscription."""

    @abstractmethod
    async def send(self, subscription: Subscription, payload: str) -> None:
        """Deliver ``payload``.

        Raises:
            DeliveryError: If the push service rejected the message.
        """


class WebPushTransport(PushTransport):
    """Web Push delivery signed with VAPID credentials, via pywebpush."""

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        ttl: int = 60,
        timeout: float = 10.0,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout

    def _send_blocking(self, subscription: Subscription, payload: str) -> None:
        try:
            webpush(
                subscription_info=subscription.to_webpush_info(),
                data=payload,
                vapid_private_key=self.vapid_private_key,
                # pywebpush adds aud/exp to the claims dict, so pass a fresh one
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            raise DeliveryError(status, str(e)) from e

    async def send(self, subscription: Subscription, payload: str) -> None:
        await asyncio.to_thread(self._send_blocking, subscription, payload)


class PushDispatcher:
    """Broadcasts notifications to the subscriptions in a registry."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        transport: PushTransport | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            registry: Registry to read and prune.
            transport: Delivery mechanism. None means push is not configured.
        """
        self.registry = registry
        self.transport = transport

    @property
    def configured(self) -> bool:
        return self.transport is not None

    async def _deliver(self, subscription: Subscription, payload: str) -> bool | None:
        """Attempt one delivery.

        Returns:
            True on success, False on a transient failure, None if the
            endpoint is gone.
        """
        try:
            await self.transport.send(subscription, payload)
            return True
        except DeliveryError as e:
            if e.gone:
                logger.info(f"Push endpoint gone (HTTP {e.status_code}): {subscription.endpoint}")
                return None
            logger.warning(f"Push delivery failed for {subscription.endpoint}: {e}")
            return False
        except Exception as e:
            logger.warning(f"Push delivery error for {subscription.endpoint}: {e}")
            return False

    async def broadcast(self, payload: dict[str, Any] | str) -> BroadcastResult:
        """Send ``payload`` to every current subscription.

        Args:
            payload: Notification body. Dicts are JSON-encoded.

        Returns:
            BroadcastResult with sent/failed/pruned/remaining counts.

        Raises:
            PushNotConfiguredError: If no transport is configured.
            NoSubscribersError: If the registry is empty.
        """
        if not self.configured:
            raise PushNotConfiguredError("Push credentials are not configured")

        targets = self.registry.subscriptions
        if not targets:
            raise NoSubscribersError("No push subscriptions registered yet")

        body = payload if isinstance(payload, str) else json.dumps(payload)

        outcomes = await asyncio.gather(
            *(self._deliver(sub, body) for sub in targets)
        )

        gone = {sub.endpoint for sub, ok in zip(targets, outcomes) if ok is None}
        self.registry.prune_and_keep(lambda s: s.endpoint not in gone)

        result = BroadcastResult(
            sent=sum(1 for ok in outcomes if ok),
            failed=sum(1 for ok in outcomes if not ok),
            pruned=len(gone),
            remaining=len(self.registry),
        )
        logger.info(
            f"Broadcast: sent={result.sent}, failed={result.failed}, "
            f"pruned={result.pruned}, remaining={result.remaining}"
        )
        return result


def create_dispatcher(
    registry: SubscriptionRegistry, push_config: PushConfig
) -> PushDispatcher:
    """Build a dispatcher, with a WebPushTransport only if VAPID keys are set."""
    transport = None
    if push_config.configured:
        transport = WebPushTransport(
            vapid_private_key=push_config.vapid_private_key,
            vapid_subject=push_config.vapid_subject,
            ttl=push_config.ttl_seconds,
        )
    return PushDispatcher(registry, transport)
