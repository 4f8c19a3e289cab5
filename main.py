from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from shortener_app.config import settings
from shortener_app.api.errors import register_exception_handlers
from shortener_app.api.middleware import RequestLoggingMiddleware
from shortener_app.api.v1 import health, redirect, urls
from shortener_app.dependencies import build_url_service
from shortener_app.logging_config import setup_logging
from shortener_app.services.sweeper import sweep_expired_periodically
from shortener_app.services.url_service import URLService

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[URLService] = None,
    sweep_interval_seconds: Optional[int] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: URLService to serve (built from settings when None)
        sweep_interval_seconds: Expired URL sweep period (settings when None, 0 disables)
    """
    url_service = service or build_url_service()
    interval = (
        settings.sweep_interval_seconds if sweep_interval_seconds is None else sweep_interval_seconds
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup logic
        await url_service.startup()
        logger.info(
            "URL Shortener service started (environment=%s, storage=%s)",
            settings.environment, url_service.active_backend_name(),
        )
        task = None
        if interval > 0:
            task = asyncio.create_task(sweep_expired_periodically(url_service, interval))
        yield
        # Shutdown logic
        if task is not None:
            task.cancel()
        url_service.shutdown()
        logger.info("URL Shortener service stopped")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="A URL shortener service with click tracking built with FastAPI",
        debug=settings.debug,
        lifespan=lifespan,
        # Kept under /api so every top-level path is free for shortcodes
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Store the service in app state for access in routes
    app.state.url_service = url_service
    app.state.started_at = time.monotonic()

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/")
    def read_root():
        """Root endpoint with API information"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/api/docs",
            "redoc": "/api/redoc"
        }

    ######## Include routers
    app.include_router(urls.router, prefix="/api")
    app.include_router(health.router, prefix="/api")
    app.include_router(redirect.router)

    return app


setup_logging(settings.log_level, settings.log_dir)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
