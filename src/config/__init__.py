"""
Configuration module for the ThriftShopper search service.

Usage:
    from config import get_settings

    settings = get_settings()
    limit = settings.search_default_limit
"""

from config.settings import Settings, get_settings, get_settings_for_testing

__all__ = ["Settings", "get_settings", "get_settings_for_testing"]
