"""Configuration module for homebills."""

from homebills.config.logging import configure_logging
from homebills.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]
