"""FastAPI application exposing event sync and push endpoints."""

import logging
import math
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Config
from ..push import (
    TEST_PAYLOAD,
    InvalidSubscriptionError,
    NoSubscribersError,
    PushDispatcher,
    PushNotConfiguredError,
    SubscriptionRegistry,
    create_dispatcher,
)
from ..sync import EventStore, SyncEngine

logger = logging.getLogger(__name__)


def _parse_since(value: str | None) -> int:
    """Read the pull watermark, treating anything unparseable as 0 (pull all)."""
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return 0
    return int(number) if math.isfinite(number) else 0


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_json(request: Request) -> tuple[Any, JSONResponse | None]:
    """Decode the request body, returning (body, error_response)."""
    try:
        return await request.json(), None
    except ValueError:
        return None, _error(400, "Request body must be valid JSON")


def create_app(
    config: Config,
    engine: SyncEngine | None = None,
    registry: SubscriptionRegistry | None = None,
    dispatcher: PushDispatcher | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration.
        engine: SyncEngine for events. Built from config.store if None.
        registry: Subscription registry. A fresh empty one if None.
        dispatcher: Push dispatcher. Built from config.push if None.

    Returns:
        Configured FastAPI application.
    """
    if engine is None:
        engine = SyncEngine(EventStore(config.store.events_path))
    if registry is None:
        registry = dispatcher.registry if dispatcher else SubscriptionRegistry()
    if dispatcher is None:
        dispatcher = create_dispatcher(registry, config.push)

    app = FastAPI(
        title="calsync",
        description="Shared calendar event sync with push notifications",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store references for route handlers
    app.state.config = config
    app.state.engine = engine
    app.state.registry = registry
    app.state.dispatcher = dispatcher

    # ==================== Status ====================

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with subscriber and event counts."""
        stats = await engine.get_stats()
        return {
            "ok": True,
            "timestamp": datetime.now().isoformat(),
            "subs": len(registry),
            "push_configured": dispatcher.configured,
            "total_events": stats["total_events"],
            "active_events": stats["active_events"],
        }

    # ==================== Push ====================

    @app.post("/subscribe")
    async def subscribe(request: Request):
        """Register a browser push subscription."""
        body, error = await _read_json(request)
        if error:
            return error

        try:
            registry.register(body, user_agent=request.headers.get("user-agent", ""))
        except InvalidSubscriptionError as e:
            return _error(400, str(e))

        return {"ok": True, "subs": len(registry)}

    @app.post("/test-push")
    async def test_push():
        """Broadcast the demo notification to every subscriber."""
        try:
            result = await dispatcher.broadcast(TEST_PAYLOAD)
        except PushNotConfiguredError as e:
            return _error(500, str(e))
        except NoSubscribersError as e:
            return _error(400, str(e))

        return {
            "ok": True,
            "sent": result.sent,
            "failed": result.failed,
            "subs": result.remaining,
        }

    # ==================== Events ====================

    @app.get("/events")
    async def list_events(since: str | None = None) -> dict[str, Any]:
        """Pull events changed after ``since`` (milliseconds), tombstones included."""
        events = await engine.list_since(_parse_since(since))
        return {
            "events": [e.to_dict() for e in events],
            "count": len(events),
            "server_time": engine.now_ms(),
        }

    @app.post("/events")
    async def upsert_events(request: Request):
        """Apply a batch of event upserts."""
        body, error = await _read_json(request)
        if error:
            return error

        candidates = body.get("events") if isinstance(body, dict) else body
        if not isinstance(candidates, list) or not candidates:
            return _error(400, "Expected a non-empty list of events")

        accepted = await engine.apply_upserts(candidates)
        return {"ok": True, "accepted": accepted}

    @app.post("/events/delete")
    async def delete_events(request: Request):
        """Tombstone a batch of event ids."""
        body, error = await _read_json(request)
        if error:
            return error

        ids = body.get("ids") if isinstance(body, dict) else body
        if not isinstance(ids, list) or not ids:
            return _error(400, "Expected a non-empty list of ids")

        mark = body.get("updatedAt") if isinstance(body, dict) else None
        if isinstance(mark, bool) or not isinstance(mark, int):
            mark = None

        affected = await engine.apply_deletes(ids, mark_timestamp=mark)
        return {"ok": True, "affected": affected}

    return app
