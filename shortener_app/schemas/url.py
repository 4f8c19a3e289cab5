from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class URLCreate(BaseModel):
    url: str = Field(..., description="The original URL to be shortened")
    validity: Optional[int] = Field(None, description="Lifetime in minutes (default 30)")
    shortcode: Optional[str] = Field(None, description="Custom shortcode (1-20 chars)")


class URLCreated(BaseModel):
    shortlink: str
    expiry: str


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeolocationStats(CamelModel):
    country: str
    region: str
    city: str


class ClickStats(CamelModel):
    timestamp: datetime
    referrer: str
    geolocation: GeolocationStats


class URLStats(CamelModel):
    """Statistics view of a short URL. Click coordinates are left out."""

    shortcode: str
    original_url: str
    created_at: datetime
    expires_at: datetime
    validity_minutes: int
    is_expired: bool
    click_count: int
    clicks: List[ClickStats]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float
    storage: str


class ErrorResponse(BaseModel):
    error: str
    message: str
