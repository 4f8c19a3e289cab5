"""
Factory for creating geolocation instances.
"""

from enum import Enum
from .strategies import GeoLocationStrategy, HTTPGeoLocator, NullGeoLocator
from shortener_app.config import settings


class GeoLocationBackend(Enum):
    """Available geolocation backends"""
    HTTP = "http"
    NULL = "null"


class GeoLocationFactory:
    """Creates the configured geolocation strategy once and reuses it."""

    _instance: GeoLocationStrategy = None

    @classmethod
    def create(cls, backend: GeoLocationBackend) -> GeoLocationStrategy:
        if cls._instance is not None:
            return cls._instance

        if backend == GeoLocationBackend.HTTP:
            cls._instance = HTTPGeoLocator(
                url_template=settings.geolocation_url,
                timeout=settings.geolocation_timeout,
            )
        elif backend == GeoLocationBackend.NULL:
            cls._instance = NullGeoLocator()
        else:
            raise ValueError(f"Unknown geolocation backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
