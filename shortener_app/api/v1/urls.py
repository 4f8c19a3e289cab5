from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from shortener_app.config import settings
from shortener_app.schemas.url import URLCreate, URLCreated, URLStats
from shortener_app.services.url_service import URLService
from shortener_app.dependencies import get_url_service

router = APIRouter(prefix="/shorturls", tags=["shorturls"])


def to_iso_z(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix"""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_short_link(request: Request, shortcode: str) -> str:
    base = settings.base_url or str(request.base_url)
    return f"{base.rstrip('/')}/{shortcode}"


@router.post("", response_model=URLCreated, status_code=status.HTTP_201_CREATED)
async def create_short_url(
    url_data: URLCreate,
    request: Request,
    url_service: URLService = Depends(get_url_service)
):
    """Create a new short URL"""
    created = await url_service.create_short_url(
        url_data.url,
        validity_minutes=url_data.validity,
        custom_shortcode=url_data.shortcode,
    )
    return URLCreated(
        shortlink=build_short_link(request, created.shortcode),
        expiry=to_iso_z(created.expires_at),
    )


@router.get("/{shortcode}", response_model=URLStats)
async def get_url_stats(
    shortcode: str,
    url_service: URLService = Depends(get_url_service)
):
    """Get statistics for a short URL (expired links included)"""
    return await url_service.get_statistics(shortcode)
