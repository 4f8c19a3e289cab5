"""
Geolocation module for click tracking.
Implements Strategy Pattern for flexible IP lookup providers.
"""

from .strategies import GeoLocationStrategy, GeoLookup, HTTPGeoLocator, NullGeoLocator
from .factory import GeoLocationFactory, GeoLocationBackend

__all__ = [
    "GeoLocationStrategy",
    "GeoLookup",
    "HTTPGeoLocator",
    "NullGeoLocator",
    "GeoLocationFactory",
    "GeoLocationBackend",
]
