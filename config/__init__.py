"""
Configuration Management Module
"""
from .settings import (
    Settings,
    MediaSettings,
    HttpSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "MediaSettings",
    "HttpSettings",
    "get_settings",
]
