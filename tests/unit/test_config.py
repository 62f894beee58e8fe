"""
Unit tests for server configuration.
"""

import pytest

from minihttp.config import ServerConfig


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_defaults(self):
        """Test the documented defaults."""
        config = ServerConfig()

        assert config.port == 9999
        assert config.max_workers == 64
        assert config.grace_period == 5.0
        assert config.static_root == "public"
        assert config.template_paths == ("/classic.html",)
        assert config.shutdown_command == "\\exit"
        config.validate()

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 70000},
        {"max_workers": 0},
        {"queue_size": 0},
        {"buffer_size": 100},
        {"grace_period": -1},
        {"accept_timeout": 0},
        {"request_timeout": 0},
        {"shutdown_command": "  "},
    ])
    def test_invalid_values(self, overrides: dict):
        """Test that validate() rejects out-of-range settings."""
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_port_zero_allowed(self):
        """Test that an OS-assigned port is valid."""
        ServerConfig(port=0).validate()

    def test_from_env(self, monkeypatch):
        """Test reading settings from environment variables."""
        monkeypatch.setenv("HTTP_HOST", "0.0.0.0")
        monkeypatch.setenv("HTTP_PORT", "8080")
        monkeypatch.setenv("HTTP_WORKERS", "8")
        monkeypatch.setenv("HTTP_STATIC_ROOT", "/srv/www")
        monkeypatch.setenv("HTTP_GRACE_PERIOD", "1.5")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.max_workers == 8
        assert config.static_root == "/srv/www"
        assert config.grace_period == 1.5
        assert config.log_level == "DEBUG"

    def test_from_env_defaults(self, monkeypatch):
        """Test that unset variables fall back to defaults."""
        for name in ("HTTP_HOST", "HTTP_PORT", "HTTP_WORKERS",
                     "HTTP_STATIC_ROOT", "HTTP_GRACE_PERIOD", "HTTP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        assert ServerConfig.from_env() == ServerConfig()

    def test_from_env_bad_number(self, monkeypatch):
        """Test that a non-numeric port is a ValueError."""
        monkeypatch.setenv("HTTP_PORT", "not-a-port")

        with pytest.raises(ValueError):
            ServerConfig.from_env()
