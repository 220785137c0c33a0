"""Core module.

Shared components used across the worker:
- Configuration management
- Settings accessor
"""

from hubnotify.core.config import (
    DEFAULT_PAYLOAD_CONTENT_TYPE,
    CacheSettings,
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    Settings,
    SMTPSettings,
    WebhookSettings,
    WorkerSettings,
)
from hubnotify.core.settings import clear_settings_cache, get_settings

__all__ = [
    "DEFAULT_PAYLOAD_CONTENT_TYPE",
    "CacheSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "SMTPSettings",
    "Settings",
    "WebhookSettings",
    "WorkerSettings",
    "clear_settings_cache",
    "get_settings",
]
