"""CLI entry point for calsync."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import load_config
from .sync import EventStore, SyncEngine


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        # Safe JSON serialization
        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            # Fallback for non-serializable objects
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    # Configure handler with appropriate formatter
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


async def cmd_serve(args: argparse.Namespace) -> int:
    """Run the sync and push server."""
    config = load_config(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    import uvicorn

    from .server import create_app

    print("Starting calsync server")
    print(f"Events file: {Path(config.store.events_path).expanduser()}")
    print(f"Push: {'configured' if config.push.configured else 'not configured (VAPID keys missing)'}")
    print(f"URL: http://{config.server.host}:{config.server.port}")

    app = create_app(config)

    verbose = getattr(args, "verbose", False)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level="info" if verbose else "warning",
        )
    )

    try:
        await server.serve()
    except KeyboardInterrupt:
        print("\nShutting down...")

    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Report store contents and server reachability."""
    import httpx

    config = load_config(args.config)

    engine = SyncEngine(EventStore(config.store.events_path))
    store_stats = await engine.get_stats()

    url = args.url or f"http://localhost:{config.server.port}"
    server_status = {"url": url, "reachable": False}
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(f"{url.rstrip('/')}/health")
            server_status["reachable"] = resp.status_code == 200
            if resp.status_code == 200:
                server_status["health"] = resp.json()
            else:
                server_status["error"] = f"HTTP {resp.status_code}"
    except httpx.HTTPError as e:
        server_status["error"] = str(e)

    status_data = {
        "timestamp": datetime.now().isoformat(),
        "store": {"path": str(engine.store.path), **store_stats},
        "push": {
            "configured": config.push.configured,
            "vapid_subject": config.push.vapid_subject,
        },
        "server": server_status,
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print("calsync Status Check")
    print("====================")
    print()

    print(f"Store ({status_data['store']['path']}):")
    print(f"  Total events: {store_stats['total_events']}")
    print(f"  Active events: {store_stats['active_events']}")
    print(f"  Tombstones: {store_stats['deleted_events']}")
    print(f"  Latest updatedAt: {store_stats['latest_updated_at']}")
    print()

    print("Push:")
    print(f"  Configured: {'Yes' if config.push.configured else 'No'}")
    print(f"  VAPID subject: {config.push.vapid_subject}")
    print()

    print(f"Server ({url}):")
    if server_status["reachable"]:
        health = server_status["health"]
        print("  Status: Reachable")
        print(f"  Subscribers: {health.get('subs', 0)}")
    else:
        print(f"  Status: Not reachable ({server_status.get('error', 'unknown error')})")

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="calsync",
        description="Shared calendar event sync and push notification server",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the server")
    serve_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to listen on (default: from config, 3000)",
    )
    serve_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: from config, 0.0.0.0)",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show store and server status")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Base URL of a running server (default: localhost on the configured port)",
    )
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
