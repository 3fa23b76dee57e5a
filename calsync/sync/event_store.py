"""JSON file persistence for the event map.

The whole map is loaded and saved as one document. Saves go through a
temporary file and ``os.replace`` so readers never observe a partial write.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .models import Event

logger = logging.getLogger(__name__)

# Top-level key holding the id -> event map
EVENTS_KEY = "events"


class StoreWriteError(OSError):
    """Raised when the event file could not be replaced."""


class EventStore:
    """Single-file durable store for the event map."""

    def __init__(self, path: str | Path):
        """Initialize the store.

        Args:
            path: Path to the JSON document backing the store.
        """
        self.path = Path(path).expanduser()
        self._loaded_once = False

    def ensure_directory(self) -> None:
        """Create the containing directory if it does not exist yet."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read_document(self) -> Any:
        with open(self.path, encoding="utf-8") as f:
            return json.load(f)

    def load(self) -> dict[str, Event]:
        """Load the event map from disk.

        A missing, unreadable or structurally invalid file yields an empty
        map instead of an error.

        Returns:
            Mapping of event id to Event.
        """
        try:
            self.ensure_directory()
            if not self.path.exists():
                return {}
            document = self._read_document()
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable event file {self.path}: {e}")
            return {}

        if not isinstance(document, dict) or not isinstance(
            document.get(EVENTS_KEY), dict
        ):
            logger.warning(f"Ignoring malformed event file {self.path}")
            return {}

        events: dict[str, Event] = {}
        for event_id, raw in document[EVENTS_KEY].items():
            if isinstance(raw, dict):
                raw = {**raw, "id": event_id}
            event = Event.from_dict(raw)
            if event is None:
                logger.warning(f"Dropping malformed stored event {event_id!r}")
                continue
            events[event_id] = event

        if not self._loaded_once:
            logger.info(f"EventStore loaded {len(events)} events from {self.path}")
            self._loaded_once = True

        return events

    def save(self, events: dict[str, Event]) -> None:
        """Atomically replace the event file with ``events``.

        Args:
            events: Complete mapping of event id to Event.

        Raises:
            StoreWriteError: If writing or replacing the file failed. The
                previous file content is left in place.
        """
        document = {
            EVENTS_KEY: {event_id: e.to_dict() for event_id, e in events.items()}
        }

        tmp_path: str | None = None
        try:
            self.ensure_directory()
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = f.name
                json.dump(document, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError as cleanup_error:
                    logger.debug(f"Could not remove temp file {tmp_path}: {cleanup_error}")
            raise StoreWriteError(f"Failed to save {self.path}: {e}") from e

        logger.debug(f"Saved {len(events)} events to {self.path}")
