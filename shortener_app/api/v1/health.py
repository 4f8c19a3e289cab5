from datetime import datetime, timezone
import time

from fastapi import APIRouter, Depends, Request
from shortener_app.api.v1.urls import to_iso_z
from shortener_app.schemas.url import HealthResponse
from shortener_app.services.url_service import URLService
from shortener_app.dependencies import get_url_service

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    request: Request,
    url_service: URLService = Depends(get_url_service)
):
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=to_iso_z(datetime.now(timezone.utc)),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        storage=url_service.active_backend_name(),
    )
