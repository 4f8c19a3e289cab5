"""
Geolocation strategies using Strategy Pattern.

Allows switching between IP lookup providers:
- HTTP: JSON lookup service (ip-api.com compatible)
- Null: no lookups (tests, offline development)
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

import requests
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class GeoLookup(BaseModel):
    """Raw lookup result. Any field may be missing."""

    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class GeoLocationStrategy(ABC):
    """
    Abstract base class for geolocation lookups.

    Lookups are synchronous and best-effort: implementations return None
    instead of raising when the provider has no answer.
    """

    @abstractmethod
    def lookup(self, ip: str) -> Optional[GeoLookup]:
        """
        Look up where an IP address is located.

        Args:
            ip: Public IPv4/IPv6 address

        Returns:
            GeoLookup or None if unknown
        """
        pass


class HTTPGeoLocator(GeoLocationStrategy):
    """
    Lookup through an HTTP JSON API.

    Expects the ip-api.com response shape:
    {"status": "success", "countryCode": "US", "region": "CA",
     "city": "Mountain View", "lat": 37.4, "lon": -122.1}
    """

    def __init__(
        self,
        url_template: str = "http://ip-api.com/json/{ip}",
        timeout: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, ip: str) -> Optional[GeoLookup]:
        try:
            response = self.session.get(self.url_template.format(ip=ip), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Geolocation lookup failed for %s: %s", ip, e)
            return None

        if data.get("status", "success") != "success":
            return None

        return GeoLookup(
            country=data.get("countryCode") or data.get("country"),
            region=data.get("region") or data.get("regionName"),
            city=data.get("city"),
            lat=data.get("lat"),
            lon=data.get("lon"),
        )


class NullGeoLocator(GeoLocationStrategy):
    """Never knows anything. Every click ends up with Unknown geolocation."""

    def lookup(self, ip: str) -> Optional[GeoLookup]:
        return None
