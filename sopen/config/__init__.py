"""
Configuration package for the Sopen service.
============================================

Usage:
    from sopen.config import SopenSettings, get_settings

    settings = get_settings()
    port = settings.port

    # Or create a fresh instance (tests, tooling)
    my_settings = SopenSettings()
"""

from sopen.config.settings import (
    SopenSettings,
    get_settings,
    reset_settings,
)


__all__ = [
    "SopenSettings",
    "get_settings",
    "reset_settings",
]
