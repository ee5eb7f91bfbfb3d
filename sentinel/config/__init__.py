# sentinel/config/__init__.py
"""Configuration package for Sentinel."""

from .settings import settings, Settings
from .watchlist import load_watchlist

__all__ = ["settings", "Settings", "load_watchlist"]
