"""Tests for configuration loading."""

import pytest

from calsync.config import Config, PushConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove CALSYNC_ variables that would leak into tests."""
    for key in (
        "HOST",
        "PORT",
        "CORS_ORIGINS",
        "EVENTS_PATH",
        "VAPID_PUBLIC_KEY",
        "VAPID_PRIVATE_KEY",
        "VAPID_SUBJECT",
        "PUSH_TTL",
    ):
        monkeypatch.delenv(f"CALSYNC_{key}", raising=False)


class TestLoadConfig:
    """Tests for YAML loading and env overrides."""

    def test_defaults(self):
        """Test the default configuration."""
        config = load_config()

        assert config.server.port == 3000
        assert config.server.cors_origins == ["*"]
        assert config.store.events_path == "~/.calsync/events.json"
        assert config.push.vapid_subject == "mailto:admin@example.com"
        assert config.push.configured is False

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test that a nonexistent config path is ignored."""
        config = load_config(tmp_path / "missing.yaml")

        assert config == Config()

    def test_yaml_file(self, tmp_path):
        """Test loading every section from YAML."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "server:\n"
            "  port: 8081\n"
            "  cors_origins: https://a.example, https://b.example\n"
            "store:\n"
            "  events_path: /tmp/cal/events.json\n"
            "push:\n"
            "  vapid_public_key: pub\n"
            "  vapid_private_key: priv\n"
            "  ttl_seconds: 120\n"
        )

        config = load_config(path)

        assert config.server.port == 8081
        assert config.server.host == "0.0.0.0"
        assert config.server.cors_origins == ["https://a.example", "https://b.example"]
        assert config.store.events_path == "/tmp/cal/events.json"
        assert config.push.configured is True
        assert config.push.ttl_seconds == 120

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Test that CALSYNC_ variables override the file."""
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  port: 8081\n")
        monkeypatch.setenv("CALSYNC_PORT", "9000")
        monkeypatch.setenv("CALSYNC_EVENTS_PATH", "/data/events.json")
        monkeypatch.setenv("CALSYNC_VAPID_PUBLIC_KEY", "pub")
        monkeypatch.setenv("CALSYNC_VAPID_PRIVATE_KEY", "priv")
        monkeypatch.setenv("CALSYNC_CORS_ORIGINS", "https://app.example")

        config = load_config(path)

        assert config.server.port == 9000
        assert config.store.events_path == "/data/events.json"
        assert config.push.configured is True
        assert config.server.cors_origins == ["https://app.example"]

    def test_push_configured_needs_both_keys(self):
        """Test that one VAPID key alone is not enough."""
        assert PushConfig(vapid_public_key="pub").configured is False
        assert PushConfig(vapid_private_key="priv").configured is False
