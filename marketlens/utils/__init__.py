"""Utility modules for MarketLens."""

from .config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
