"""Configuration adapters."""

from activity_roster.adapters.config.app_config import AppConfig

__all__ = ["AppConfig"]
