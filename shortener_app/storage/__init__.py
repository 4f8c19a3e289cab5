"""
Storage module for short URLs and their clicks.

This module implements the Strategy Pattern for pluggable persistence:
a durable SQL store and a volatile in-memory fallback.
"""

from .strategies import URLStorageStrategy, SQLURLStorage, InMemoryURLStorage
from .factory import StorageFactory, StorageBackend
from .models import ShortUrl, Click, ClickContext, Geolocation, Coordinates

__all__ = [
    "URLStorageStrategy",
    "SQLURLStorage",
    "InMemoryURLStorage",
    "StorageFactory",
    "StorageBackend",
    "ShortUrl",
    "Click",
    "ClickContext",
    "Geolocation",
    "Coordinates",
]
