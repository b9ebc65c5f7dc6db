"""Core module for configuration and utilities."""

from tubely.core.config import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
