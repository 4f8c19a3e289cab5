from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from shortener_app.services.click_metadata import get_client_ip
from shortener_app.services.url_service import URLService
from shortener_app.storage.models import ClickContext
from shortener_app.dependencies import get_url_service

router = APIRouter(tags=["redirect"])


@router.get("/{shortcode}")
async def redirect_to_original_url(
    shortcode: str,
    request: Request,
    url_service: URLService = Depends(get_url_service)
):
    """
    Redirect to the original URL.

    Flow:
    1. Look up the short URL (404 if missing, 410 if expired)
    2. Record the click with IP, referrer, user agent and geolocation
    3. Redirect permanently

    Click recording is awaited, but a tracking failure never blocks the
    redirect.
    """
    context = ClickContext(
        ip=get_client_ip(request.headers, request.client.host if request.client else None),
        referrer=request.headers.get("referer") or request.headers.get("referrer"),
        user_agent=request.headers.get("user-agent"),
    )

    original_url = await url_service.resolve_and_track(shortcode, context)

    return RedirectResponse(url=original_url, status_code=status.HTTP_301_MOVED_PERMANENTLY)
