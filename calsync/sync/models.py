"""Event records exchanged between devices and persisted by the store."""

import math
from dataclasses import dataclass
from typing import Any


def _coerce_timestamp(value: Any) -> int | None:
    """Return value as integer milliseconds, or None if it is not numeric."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


@dataclass
class Event:
    """A single calendar event, or the tombstone left behind by a delete.

    ``updated_at`` is the last-write-wins key: the stored record for an id
    is always the one with the greatest ``updated_at`` seen so far.
    """

    id: str
    title: str = ""
    start: str = ""
    all_day: bool = False
    reminder_minutes: int | None = None
    updated_at: int = 0
    deleted: bool = False

    @property
    def is_active(self) -> bool:
        return not self.deleted

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase mapping used on the wire and on disk."""
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start,
            "allDay": self.all_day,
            "reminderMinutes": self.reminder_minutes,
            "updatedAt": self.updated_at,
            "deleted": self.deleted,
        }

    @classmethod
    def from_dict(cls, data: Any, default_updated_at: int = 0) -> "Event | None":
        """Rebuild an Event from an untyped mapping.

        Args:
            data: Decoded JSON value, usually a dict sent by a client.
            default_updated_at: Timestamp used when ``updatedAt`` is
                missing or not a number.

        Returns:
            The Event, or None if ``data`` is not a mapping with a
            non-empty string ``id``.
        """
        if not isinstance(data, dict):
            return None

        event_id = data.get("id")
        if not isinstance(event_id, str) or not event_id:
            return None

        title = data.get("title")
        start = data.get("start")
        reminder = data.get("reminderMinutes")
        if isinstance(reminder, bool) or not isinstance(reminder, int):
            reminder = None

        updated_at = _coerce_timestamp(data.get("updatedAt"))

        return cls(
            id=event_id,
            title=title if isinstance(title, str) else "",
            start=start if isinstance(start, str) else "",
            all_day=bool(data.get("allDay", False)),
            reminder_minutes=reminder,
            updated_at=default_updated_at if updated_at is None else updated_at,
            deleted=bool(data.get("deleted", False)),
        )

    @classmethod
    def tombstone(cls, event_id: str, updated_at: int) -> "Event":
        """Create a deletion marker for event_id."""
        return cls(id=event_id, updated_at=updated_at, deleted=True)
