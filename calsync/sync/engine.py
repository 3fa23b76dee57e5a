"""Last-write-wins synchronization over the durable event store.

Each event id behaves as an LWW register keyed on ``updatedAt``. A write
is accepted when its timestamp is greater than or equal to the stored one,
so among equal timestamps the write processed last wins. Deletes leave a
tombstone behind so devices pulling later learn about them.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Iterable

from .event_store import EventStore, StoreWriteError
from .models import Event
from .serializer import WriteSerializer

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class SyncEngine:
    """Upsert, tombstone-delete and incremental pull over an EventStore.

    Mutations are funneled through a WriteSerializer. Pulls read the last
    persisted state directly.
    """

    def __init__(
        self,
        store: EventStore,
        serializer: WriteSerializer | None = None,
        now_ms: Callable[[], int] = wall_clock_ms,
    ):
        """Initialize the engine.

        Args:
            store: Durable store owning the event file.
            serializer: Lane for mutations. A private one is created if None.
            now_ms: Clock used to stamp writes that carry no timestamp.
        """
        self.store = store
        self.serializer = serializer or WriteSerializer()
        self._now_ms = now_ms

    def now_ms(self) -> int:
        """Current time according to the engine's clock."""
        return self._now_ms()

    async def _load(self) -> dict[str, Event]:
        return await asyncio.to_thread(self.store.load)

    async def _save(self, events: dict[str, Event], operation: str) -> None:
        try:
            await asyncio.to_thread(self.store.save, events)
        except StoreWriteError as e:
            # Count is still reported; the file keeps its previous content
            logger.error(f"{operation}: changes not persisted: {e}")

    async def list_since(self, since: int | None = 0) -> list[Event]:
        """Get events changed after a watermark.

        Args:
            since: Exclusive ``updatedAt`` threshold in milliseconds. 0 or
                None returns every event.

        Returns:
            Events including tombstones, oldest ``updatedAt`` first.
        """
        events = await self._load()

        if since:
            selected = [e for e in events.values() if e.updated_at > since]
        else:
            selected = list(events.values())

        selected.sort(key=lambda e: e.updated_at)
        return selected

    async def apply_upserts(self, candidates: Iterable[Any]) -> int:
        """Apply a batch of client-submitted events.

        Malformed candidates (not a mapping, or no id) are skipped. A
        candidate without a numeric ``updatedAt`` is stamped with the
        current time.

        Args:
            candidates: Decoded JSON values, one per event.

        Returns:
            Number of candidates that replaced the stored record.
        """
        batch = list(candidates)

        async def apply() -> int:
            events = await self._load()
            accepted = 0

            for raw in batch:
                candidate = Event.from_dict(raw, default_updated_at=self.now_ms())
                if candidate is None:
                    continue

                current = events.get(candidate.id)
                current_ts = current.updated_at if current else 0
                if candidate.updated_at >= current_ts:
                    events[candidate.id] = candidate
                    accepted += 1

            if accepted:
                await self._save(events, "upsert")

            logger.debug(f"Upsert accepted {accepted}/{len(batch)} events")
            return accepted

        return await self.serializer.run(apply, name="upsert")

    async def apply_deletes(
        self, ids: Iterable[Any], mark_timestamp: int | None = None
    ) -> int:
        """Tombstone a batch of event ids.

        Args:
            ids: Event ids. Anything that is not a non-empty string is skipped.
            mark_timestamp: ``updatedAt`` given to the tombstones. Defaults to
                the current time.

        Returns:
            Number of ids tombstoned, including ids never seen before.
        """
        batch = list(ids)
        if mark_timestamp is None:
            mark_timestamp = self.now_ms()

        async def apply() -> int:
            events = await self._load()
            affected = 0

            for event_id in batch:
                if not isinstance(event_id, str) or not event_id:
                    continue

                current = events.get(event_id)
                if current is not None and mark_timestamp < current.updated_at:
                    continue

                events[event_id] = Event.tombstone(event_id, mark_timestamp)
                affected += 1

            if affected:
                await self._save(events, "delete")

            logger.debug(f"Delete affected {affected}/{len(batch)} events")
            return affected

        return await self.serializer.run(apply, name="delete")

    async def get_stats(self) -> dict[str, Any]:
        """Get store statistics.

        Returns:
            Dictionary with event counts and the newest timestamp.
        """
        events = await self._load()
        active = sum(1 for e in events.values() if e.is_active)

        return {
            "total_events": len(events),
            "active_events": active,
            "deleted_events": len(events) - active,
            "latest_updated_at": max(
                (e.updated_at for e in events.values()), default=0
            ),
            "pending_writes": self.serializer.pending,
        }
