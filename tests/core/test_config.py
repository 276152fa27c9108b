"""Tests for onionnet.core.config - OnionSettings and singleton access."""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from onionnet.core.config import OnionSettings, clear_settings_cache, get_settings


class TestOnionSettingsDefaults:
    """Defaults match the demo deployment."""

    def test_addressing_defaults(self):
        settings = OnionSettings()

        assert settings.host == "localhost"
        assert settings.bind_host == "0.0.0.0"
        assert settings.registry_port == 8080
        assert settings.base_onion_router_port == 4000
        assert settings.base_user_port == 3000

    def test_protocol_defaults(self):
        settings = OnionSettings()

        assert settings.path_length == 3
        assert settings.request_timeout is None

    def test_logging_defaults(self):
        settings = OnionSettings()

        assert settings.log_level == "INFO"
        assert settings.log_format == ""
        assert settings.log_file is None


class TestOnionSettingsEnv:
    """Environment variables override defaults."""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ONIONNET_REGISTRY_PORT", "9090")
        monkeypatch.setenv("ONIONNET_PATH_LENGTH", "5")
        monkeypatch.setenv("ONIONNET_REQUEST_TIMEOUT", "2.5")

        settings = OnionSettings()

        assert settings.registry_port == 9090
        assert settings.path_length == 5
        assert settings.request_timeout == 2.5

    def test_path_length_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("ONIONNET_PATH_LENGTH", "0")

        with pytest.raises(PydanticValidationError):
            OnionSettings()


class TestAddresses:
    """Derived address helpers."""

    def test_registry_url(self):
        assert OnionSettings().registry_url == "http://localhost:8080"

    def test_router_addresses(self):
        settings = OnionSettings()

        assert settings.router_port(7) == 4007
        assert settings.router_url(7) == "http://localhost:4007"
        assert settings.router_receive_url(7) == "http://localhost:4007/receive"

    def test_user_addresses(self):
        settings = OnionSettings(host="example.test", base_user_port=5000)

        assert settings.user_port(2) == 5002
        assert settings.user_url(2) == "http://example.test:5002"
        assert settings.user_deliver_url(2) == "http://example.test:5002/receiveMessage"


class TestSingleton:
    """get_settings / clear_settings_cache."""

    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("ONIONNET_HOST", "relayhost")
        clear_settings_cache()

        second = get_settings()

        assert second is not first
        assert second.host == "relayhost"
