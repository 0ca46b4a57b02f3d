"""Core application: config, logging."""

from dermassist.core.config import Settings, get_settings
from dermassist.core.logging import DevFormatter, JsonFormatter, configure_logging

__all__ = [
    "DevFormatter",
    "JsonFormatter",
    "Settings",
    "configure_logging",
    "get_settings",
]
