"""Core services shared by every onionnet component: config, errors, logging."""

from onionnet.core.config import OnionSettings, clear_settings_cache, get_settings
from onionnet.core.exceptions import (
    CryptoError,
    DeliveryError,
    InsufficientRelaysError,
    OnionError,
    ProtocolError,
    ValidationError,
    error_body,
    http_status_for,
)

__all__ = [
    "OnionSettings",
    "get_settings",
    "clear_settings_cache",
    "OnionError",
    "ValidationError",
    "CryptoError",
    "ProtocolError",
    "InsufficientRelaysError",
    "DeliveryError",
    "error_body",
    "http_status_for",
]
