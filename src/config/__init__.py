"""
Configuration module for the outfit ranking core.

Usage:
    from config import get_settings

    settings = get_settings()
    rate = settings.exploration_rate
"""

from config.settings import Settings, get_settings, get_settings_for_testing

__all__ = ["Settings", "get_settings", "get_settings_for_testing"]
