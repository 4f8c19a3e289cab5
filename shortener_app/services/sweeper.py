import asyncio
import logging

from shortener_app.services.url_service import URLService

logger = logging.getLogger(__name__)


async def sweep_expired_periodically(service: URLService, interval_seconds: int):
    """Delete expired short URLs every interval_seconds until cancelled"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            logger.info("Running expired URL sweep...")
            await service.sweep_expired()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in expired URL sweep: {e}")
