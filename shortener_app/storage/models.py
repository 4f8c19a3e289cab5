"""
Domain records handed out by storage strategies.

Both backends return these models, so the service never sees ORM rows
or raw dicts.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

UNKNOWN = "Unknown"


class Coordinates(BaseModel):
    lat: float = 0
    lon: float = 0


class Geolocation(BaseModel):
    """Where a click came from. Every field falls back to Unknown / 0,0."""

    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    coordinates: Coordinates = Field(default_factory=Coordinates)


class Click(BaseModel):
    """One recorded access to a short URL."""

    timestamp: datetime = Field(..., description="Server time of the access")
    source_ip: str = Field("127.0.0.1", description="Client IP address")
    referrer: str = Field("direct", description="Referrer hostname or 'direct'")
    user_agent: str = Field(UNKNOWN, description="User agent string")
    geolocation: Geolocation = Field(default_factory=Geolocation)


class ShortUrl(BaseModel):
    """A shortcode mapping with its append-only click history."""

    original_url: str
    shortcode: str
    created_at: datetime
    expires_at: datetime
    validity_minutes: int = 30
    is_active: bool = True
    clicks: List[Click] = Field(default_factory=list)

    @computed_field
    @property
    def click_count(self) -> int:
        return len(self.clicks)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class ClickContext(BaseModel):
    """Request metadata captured at redirect time."""

    ip: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ip": "203.0.113.7",
                "referrer": "https://twitter.com/some/post",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
            }
        }
    )
