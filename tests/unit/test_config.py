"""
Unit tests for server configuration.
"""

import logging

import pytest

from simplewebserver.config import (
    ServerConfig,
    DEFAULT_STATIC_CACHE_CONTROL,
    max_age_directive,
    parse_address,
)


class TestServerConfig:
    """Tests for ServerConfig defaults and validation."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.static_dir is None
        assert config.static_cache_control == "max-age=604800"
        assert config.static_cache_control == DEFAULT_STATIC_CACHE_CONTROL

    def test_defaults_are_valid(self):
        ServerConfig().validate()

    def test_port_zero_allowed(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"queue_size": 0},
        {"buffer_size": 10},
        {"timeout": 0},
        {"log_level": "LOUD"},
    ])
    def test_invalid_values(self, overrides: dict):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_log_level_value(self):
        assert ServerConfig(log_level="debug").log_level_value == logging.DEBUG


class TestFromEnv:
    """Tests for environment-based configuration."""

    def test_from_env_defaults(self, monkeypatch):
        for name in ("HTTP_HOST", "HTTP_PORT", "HTTP_WORKERS", "HTTP_TIMEOUT",
                     "HTTP_STATIC_DIR", "HTTP_STATIC_MAX_AGE", "HTTP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.port == 8080
        assert config.static_dir is None
        assert config.static_cache_control == DEFAULT_STATIC_CACHE_CONTROL

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("HTTP_HOST", "0.0.0.0")
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("HTTP_WORKERS", "32")
        monkeypatch.setenv("HTTP_STATIC_DIR", "/srv/static")
        monkeypatch.setenv("HTTP_STATIC_MAX_AGE", "86400")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.max_workers == 32
        assert config.static_dir == "/srv/static"
        assert config.static_cache_control == "max-age=86400"
        assert config.log_level == "DEBUG"


class TestHelpers:
    """Tests for max_age_directive() and parse_address()."""

    def test_max_age_directive(self):
        assert max_age_directive(86400) == "max-age=86400"
        assert max_age_directive(0) == "max-age=0"

    def test_negative_max_age_accepted(self):
        assert max_age_directive(-1) == "max-age=-1"

    @pytest.mark.parametrize("address, expected", [
        ("127.0.0.1:8080", ("127.0.0.1", 8080)),
        (":8080", ("0.0.0.0", 8080)),
        ("localhost:0", ("localhost", 0)),
        ("[::1]:9000", ("::1", 9000)),
    ])
    def test_parse_address(self, address: str, expected: tuple):
        assert parse_address(address) == expected

    @pytest.mark.parametrize("address", [
        "8080", "host:", "host:http", "host:70000", "host:65536", "host:-1",
    ])
    def test_parse_address_invalid(self, address: str):
        with pytest.raises(ValueError):
            parse_address(address)
