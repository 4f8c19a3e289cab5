"""
Structural validation for submitted URLs and custom shortcodes.
"""

import ipaddress
import re
from typing import Optional
from urllib.parse import urlsplit

MAX_SHORTCODE_LENGTH = 20

_SHORTCODE_RE = re.compile(r"[A-Za-z0-9_-]+")
_DISALLOWED_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")
# ASCII (or IDNA-encoded) dotted host name, optional trailing dot
_HOSTNAME_RE = re.compile(r"[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*\.?")


def is_valid_hostname(hostname: str) -> bool:
    """IP literal, or a DNS name whose labels survive IDNA encoding"""
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        pass

    try:
        encoded = hostname.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    return bool(_HOSTNAME_RE.fullmatch(encoded))


def is_valid_url(value) -> bool:
    """True if value is an absolute URL with a scheme and a well-formed host"""
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value.strip())
        # Accessing hostname/port validates IPv6 brackets and port numbers
        hostname = parts.hostname
        parts.port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(hostname) and is_valid_hostname(hostname)


def is_valid_shortcode(value) -> bool:
    if not isinstance(value, str) or not value:
        return False
    return len(value) <= MAX_SHORTCODE_LENGTH and bool(_SHORTCODE_RE.fullmatch(value))


def sanitize_shortcode(value: Optional[str]) -> str:
    """Trim whitespace and drop characters outside [A-Za-z0-9_-]"""
    if not value:
        return ""
    return _DISALLOWED_CHARS_RE.sub("", value.strip())
