"""Configuration module for tasksync."""

from tasksync.config.base import Settings
from tasksync.config.loader import get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
