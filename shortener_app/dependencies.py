"""
FastAPI dependencies and service wiring.

The URLService is built once (build_url_service) and attached to
app.state by create_app. Routes receive it through get_url_service.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (create_app(service=...) with an in-memory store)
- Flexible (swap implementations via config)
"""

from fastapi import Request

from shortener_app.config import settings
from shortener_app.geolocation.factory import GeoLocationFactory, GeoLocationBackend
from shortener_app.services.url_service import URLService
from shortener_app.storage.factory import StorageFactory, StorageBackend
from shortener_app.telemetry.sink import EventSink


def build_url_service() -> URLService:
    """
    Build the URLService from settings.

    Factories get config from settings internally.
    """
    storage = StorageFactory.create(StorageBackend(settings.storage_backend))
    geolocator = GeoLocationFactory.create(GeoLocationBackend(settings.geolocation_backend))
    event_sink = EventSink(url=settings.remote_log_url, timeout=settings.remote_log_timeout)
    return URLService(storage=storage, geolocator=geolocator, event_sink=event_sink)


def get_url_service(request: Request) -> URLService:
    """The process-wide URLService created at startup"""
    return request.app.state.url_service
