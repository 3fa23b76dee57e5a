"""Configuration loading for calsync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class StoreConfig:
    """Configuration for the durable event store."""

    events_path: str = "~/.calsync/events.json"


@dataclass
class PushConfig:
    """Configuration for Web Push delivery.

    Push is only available when both VAPID keys are set.
    """

    vapid_public_key: str | None = None
    vapid_private_key: str | None = None
    vapid_subject: str = "mailto:admin@example.com"
    ttl_seconds: int = 60

    @property
    def configured(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    push: PushConfig = field(default_factory=PushConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with CALSYNC_ prefix."""
    return os.environ.get(f"CALSYNC_{key}", default)


def _parse_origins(value: Any) -> list[str]:
    """Accept either a YAML list or a comma-separated string."""
    if isinstance(value, str):
        return [o.strip() for o in value.split(",") if o.strip()]
    return [str(o) for o in value or []]


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Server overrides
    if host := _get_env("HOST"):
        config.server.host = host
    if port := _get_env("PORT"):
        config.server.port = int(port)
    if origins := _get_env("CORS_ORIGINS"):
        config.server.cors_origins = _parse_origins(origins)

    # Store overrides
    if events_path := _get_env("EVENTS_PATH"):
        config.store.events_path = events_path

    # Push overrides
    if public_key := _get_env("VAPID_PUBLIC_KEY"):
        config.push.vapid_public_key = public_key
    if private_key := _get_env("VAPID_PRIVATE_KEY"):
        config.push.vapid_private_key = private_key
    if subject := _get_env("VAPID_SUBJECT"):
        config.push.vapid_subject = subject
    if ttl := _get_env("PUSH_TTL"):
        config.push.ttl_seconds = int(ttl)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse server config
            if "server" in data:
                server_data = data["server"]
                config.server = ServerConfig(
                    host=server_data.get("host", config.server.host),
                    port=server_data.get("port", config.server.port),
                    cors_origins=_parse_origins(
                        server_data.get("cors_origins", config.server.cors_origins)
                    ),
                )

            # Parse store config
            if "store" in data:
                config.store = StoreConfig(
                    events_path=data["store"].get(
                        "events_path", config.store.events_path
                    )
                )

            # Parse push config
            if "push" in data:
                push_data = data["push"]
                config.push = PushConfig(
                    vapid_public_key=push_data.get("vapid_public_key"),
                    vapid_private_key=push_data.get("vapid_private_key"),
                    vapid_subject=push_data.get(
                        "vapid_subject", config.push.vapid_subject
                    ),
                    ttl_seconds=push_data.get("ttl_seconds", config.push.ttl_seconds),
                )

    # Apply environment variable overrides
    return _apply_env_overrides(config)
