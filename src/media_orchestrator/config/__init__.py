"""Configuration."""

from media_orchestrator.config.settings import ServiceConfig, Settings, get_settings

__all__ = ["ServiceConfig", "Settings", "get_settings"]
