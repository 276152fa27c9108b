"""Core configuration - centralized settings for the onionnet package.

All environment-based configuration flows through this module so that the
registry, the onion routers and the users agree on where everyone lives.

Usage:
    from onionnet.core.config import get_settings
    settings = get_settings()

    entry = settings.router_receive_url(1)
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OnionSettings(BaseSettings):
    """Configuration settings for an onionnet deployment.

    Settings can be configured via environment variables with the
    ONIONNET_ prefix (e.g. ``ONIONNET_PATH_LENGTH=4``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="ONIONNET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # ADDRESSING
    # ==========================================================================

    host: str = Field(default="localhost", description="Host used to build node addresses")
    bind_host: str = Field(default="0.0.0.0", description="Address services listen on")  # nosec B104
    registry_port: int = Field(default=8080, description="Port of the node registry")
    base_onion_router_port: int = Field(
        default=4000,
        description="Router N listens on base_onion_router_port + N",
    )
    base_user_port: int = Field(
        default=3000,
        description="User N listens on base_user_port + N",
    )

    # ==========================================================================
    # PROTOCOL
    # ==========================================================================

    path_length: int = Field(default=3, description="Relays per message path")
    request_timeout: float | None = Field(
        default=None,
        description="Total timeout for outbound HTTP calls in seconds (None = wait forever)",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
    )
    log_file: str | None = Field(default=None, description="Log file path (optional)")

    @field_validator("path_length")
    @classmethod
    def _check_path_length(cls, value: int) -> int:
        if value < 1:
            raise ValueError("path_length must be at least 1")
        return value

    # ==========================================================================
    # COMPUTED ADDRESSES
    # ==========================================================================

    @property
    def registry_url(self) -> str:
        """Base URL of the node registry."""
        return f"http://{self.host}:{self.registry_port}"

    def router_port(self, node_id: int) -> int:
        return self.base_onion_router_port + node_id

    def user_port(self, user_id: int) -> int:
        return self.base_user_port + user_id

    def router_url(self, node_id: int) -> str:
        return f"http://{self.host}:{self.router_port(node_id)}"

    def router_receive_url(self, node_id: int) -> str:
        """Receive endpoint of onion router ``node_id``."""
        return f"{self.router_url(node_id)}/receive"

    def user_url(self, user_id: int) -> str:
        return f"http://{self.host}:{self.user_port(user_id)}"

    def user_deliver_url(self, user_id: int) -> str:
        """Deliver endpoint of user ``user_id``."""
        return f"{self.user_url(user_id)}/receiveMessage"


# ==========================================================================
# SINGLETON ACCESS
# ==========================================================================

_settings: OnionSettings | None = None


def get_settings() -> OnionSettings:
    """Get the global settings instance.

    Returns:
        The singleton OnionSettings instance.
    """
    global _settings
    if _settings is None:
        _settings = OnionSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
