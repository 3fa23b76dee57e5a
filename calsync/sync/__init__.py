"""Event synchronization for devices sharing one calendar.

Provides a last-write-wins event store with tombstone deletes, atomic
single-file persistence and an incremental pull query.
"""

from .engine import SyncEngine
from .event_store import EventStore, StoreWriteError
from .models import Event
from .serializer import WriteSerializer

__all__ = ["Event", "EventStore", "StoreWriteError", "SyncEngine", "WriteSerializer"]
