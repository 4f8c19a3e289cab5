"""
Helpers that turn raw request metadata into click fields.
"""

import ipaddress
from typing import Mapping, Optional
from urllib.parse import urlsplit

from shortener_app.geolocation.strategies import GeoLookup
from shortener_app.storage.models import Coordinates, Geolocation, UNKNOWN

DEFAULT_IP = "127.0.0.1"
DIRECT_REFERRER = "direct"


def is_public_ip(ip: Optional[str]) -> bool:
    """
    False for missing, malformed, loopback, private, link-local and other
    non-routable addresses (IPv4-mapped IPv6 is unwrapped first).
    """
    if not ip:
        return False
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped
    return address.is_global


def extract_referrer(referrer: Optional[str]) -> str:
    """Hostname of the Referer header, or 'direct'"""
    if not referrer:
        return DIRECT_REFERRER
    try:
        hostname = urlsplit(referrer.strip()).hostname
    except ValueError:
        return DIRECT_REFERRER
    return hostname or DIRECT_REFERRER


def get_client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """
    Client IP as seen through proxies.

    Order: first X-Forwarded-For entry, X-Real-IP, socket peer, loopback.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return peer or DEFAULT_IP


def to_geolocation(lookup: Optional[GeoLookup]) -> Geolocation:
    """Fill every missing field independently with Unknown / 0"""
    if lookup is None:
        return Geolocation()

    return Geolocation(
        country=lookup.country or UNKNOWN,
        region=lookup.region or UNKNOWN,
        city=lookup.city or UNKNOWN,
        coordinates=Coordinates(
            lat=lookup.lat if lookup.lat is not None else 0,
            lon=lookup.lon if lookup.lon is not None else 0,
        ),
    )
