from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import asyncio
import logging
import threading

from shortener_app.exceptions import (
    DuplicateShortcodeError,
    GenerationExhaustedError,
    InvalidShortcodeError,
    InvalidURLError,
    InvalidValidityError,
    ShortcodeTakenError,
    ShortUrlExpiredError,
    ShortUrlNotFoundError,
)
from shortener_app.geolocation.strategies import GeoLocationStrategy, NullGeoLocator
from shortener_app.schemas.url import ClickStats, GeolocationStats, URLStats
from shortener_app.services.click_metadata import (
    DEFAULT_IP,
    extract_referrer,
    is_public_ip,
    to_geolocation,
)
from shortener_app.services.short_code_strategies import (
    SecureRandomShortCodeStrategy,
    ShortCodeStrategy,
)
from shortener_app.services.validators import (
    is_valid_shortcode,
    is_valid_url,
    sanitize_shortcode,
)
from shortener_app.storage.models import UNKNOWN, Click, ClickContext, Geolocation, ShortUrl
from shortener_app.storage.strategies import InMemoryURLStorage, URLStorageStrategy
from shortener_app.telemetry.sink import EventSink

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_MINUTES = 30
MIN_VALIDITY_MINUTES = 1
MAX_VALIDITY_MINUTES = 525600  # one year
INITIAL_SHORTCODE_LENGTH = 6
MAX_GENERATION_ATTEMPTS = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class URLService:
    """
    URL Service with dependency injection for storage and click enrichment.

    The service is built once at startup and shared by all requests:
    - Storage strategy is injected (durable SQL or in-memory)
    - If the injected storage is not ready, an in-memory store is created
      on first use and pinned for the rest of the process lifetime
    - Geolocation, short code generation, event sink and clock are
      injectable so tests can control them
    """

    def __init__(
        self,
        storage: Optional[URLStorageStrategy] = None,
        geolocator: Optional[GeoLocationStrategy] = None,
        short_code_strategy: Optional[ShortCodeStrategy] = None,
        event_sink: Optional[EventSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize URL service with dependencies.

        Args:
            storage: Primary storage strategy (None means in-memory only)
            geolocator: IP lookup strategy (default: no lookups)
            short_code_strategy: Short code generator
            event_sink: Remote event recorder (default: disabled)
            clock: Returns the current UTC time
        """
        self.storage = storage
        self.geolocator = geolocator or NullGeoLocator()
        self.short_code_strategy = short_code_strategy or SecureRandomShortCodeStrategy()
        self.events = event_sink or EventSink()
        self.clock = clock or utc_now
        self._fallback: Optional[InMemoryURLStorage] = None
        self._fallback_lock = threading.Lock()

    async def startup(self) -> None:
        if self.storage is not None:
            await self.storage.initialize()

    def shutdown(self) -> None:
        if self.storage is not None:
            self.storage.close()
        self.events.close()

    def _active_storage(self) -> URLStorageStrategy:
        """
        Pick the storage for this call.

        Once the fallback exists it is always used: there is no switching
        back to the primary without a restart.
        """
        if self._fallback is not None:
            return self._fallback

        if self.storage is not None and self.storage.is_ready():
            return self.storage

        with self._fallback_lock:
            if self._fallback is None:
                self._fallback = InMemoryURLStorage()
                logger.warning("Primary storage unavailable, using in-memory store")
                self.events.record(
                    "backend", "warn", "repository",
                    "Initialized in-memory store as database fallback",
                )
        return self._fallback

    def active_backend_name(self) -> str:
        return self._active_storage().name

    def _new_record(
        self,
        original_url: str,
        shortcode: str,
        validity_minutes: int,
        created_at: datetime,
    ) -> ShortUrl:
        return ShortUrl(
            original_url=original_url,
            shortcode=shortcode,
            created_at=created_at,
            expires_at=created_at + timedelta(minutes=validity_minutes),
            validity_minutes=validity_minutes,
        )

    async def create_short_url(
        self,
        original_url: str,
        validity_minutes: Optional[int] = DEFAULT_VALIDITY_MINUTES,
        custom_shortcode: Optional[str] = None,
    ) -> ShortUrl:
        """
        Create a new short URL.

        Process:
        1. Validate URL and validity window
        2. Custom code: sanitize, validate, check it is free
           Otherwise: generate codes until one is free
        3. Persist with a single atomic insert

        Raises:
            InvalidURLError, InvalidValidityError, InvalidShortcodeError,
            ShortcodeTakenError, GenerationExhaustedError
        """
        if not is_valid_url(original_url):
            logger.warning("Invalid URL provided: %r", original_url)
            raise InvalidURLError()
        original_url = original_url.strip()

        if validity_minutes is None:
            validity_minutes = DEFAULT_VALIDITY_MINUTES
        if (
            isinstance(validity_minutes, bool)
            or not isinstance(validity_minutes, int)
            or not MIN_VALIDITY_MINUTES <= validity_minutes <= MAX_VALIDITY_MINUTES
        ):
            logger.warning("Invalid validity period: %r", validity_minutes)
            raise InvalidValidityError()

        storage = self._active_storage()
        created_at = self.clock()

        if custom_shortcode:
            record = await self._save_custom(
                storage, original_url, custom_shortcode, validity_minutes, created_at
            )
        else:
            record = await self._save_generated(
                storage, original_url, validity_minutes, created_at
            )

        logger.info(
            "Short URL created: %s -> %s (expires %s)",
            record.shortcode, record.original_url, record.expires_at.isoformat(),
        )
        self.events.record(
            "backend", "info", "service", f"Short URL created: {record.shortcode}"
        )
        return record

    async def _save_custom(
        self,
        storage: URLStorageStrategy,
        original_url: str,
        custom_shortcode: str,
        validity_minutes: int,
        created_at: datetime,
    ) -> ShortUrl:
        shortcode = sanitize_shortcode(custom_shortcode)
        if not is_valid_shortcode(shortcode):
            logger.warning("Invalid custom shortcode: %r", custom_shortcode)
            raise InvalidShortcodeError()

        if await storage.find_by_shortcode(shortcode) is not None:
            logger.warning("Shortcode already exists: %s", shortcode)
            raise ShortcodeTakenError()

        record = self._new_record(original_url, shortcode, validity_minutes, created_at)
        try:
            return await storage.save(record)
        except DuplicateShortcodeError:
            # Lost the race between lookup and insert
            logger.warning("Shortcode taken concurrently: %s", shortcode)
            raise ShortcodeTakenError()

    async def _save_generated(
        self,
        storage: URLStorageStrategy,
        original_url: str,
        validity_minutes: int,
        created_at: datetime,
    ) -> ShortUrl:
        """Generate and insert, growing the code by one char per collision"""
        for attempt in range(MAX_GENERATION_ATTEMPTS):
            shortcode = self.short_code_strategy.generate(INITIAL_SHORTCODE_LENGTH + attempt)

            if await storage.find_by_shortcode(shortcode) is not None:
                logger.debug("Generated shortcode collision: %s", shortcode)
                continue

            record = self._new_record(original_url, shortcode, validity_minutes, created_at)
            try:
                return await storage.save(record)
            except DuplicateShortcodeError:
                logger.debug("Generated shortcode taken concurrently: %s", shortcode)

        logger.error(
            "Could not generate unique shortcode after %d attempts", MAX_GENERATION_ATTEMPTS
        )
        self.events.record("backend", "error", "service", "Unable to generate unique shortcode")
        raise GenerationExhaustedError()

    async def resolve_and_track(
        self,
        shortcode: str,
        context: Optional[ClickContext] = None,
    ) -> str:
        """
        Get the original URL for a redirect and record the click.

        Expired links are not deleted here; the sweep does that.
        A failure while recording the click is logged and does not stop
        the redirect.

        Raises:
            ShortUrlNotFoundError, ShortUrlExpiredError
        """
        storage = self._active_storage()
        url = await storage.find_by_shortcode(shortcode)

        if url is None:
            logger.warning("Shortcode not found: %s", shortcode)
            raise ShortUrlNotFoundError()

        now = self.clock()
        if url.is_expired(now):
            logger.warning("Shortcode expired: %s (at %s)", shortcode, url.expires_at.isoformat())
            raise ShortUrlExpiredError()

        try:
            click = await self._build_click(context or ClickContext(), now)
            updated = await storage.append_click(shortcode, click)
            if updated is None:
                logger.warning("Short URL vanished before click was tracked: %s", shortcode)
            else:
                logger.info("Click tracked: %s (total %d)", shortcode, updated.click_count)
        except Exception:
            logger.exception("Click tracking failed for %s", shortcode)

        return url.original_url

    async def _build_click(self, context: ClickContext, now: datetime) -> Click:
        return Click(
            timestamp=now,
            source_ip=context.ip or DEFAULT_IP,
            referrer=extract_referrer(context.referrer),
            user_agent=context.user_agent or UNKNOWN,
            geolocation=await self._resolve_geolocation(context.ip),
        )

    async def _resolve_geolocation(self, ip: Optional[str]) -> Geolocation:
        if not is_public_ip(ip):
            return Geolocation()

        try:
            # Lookup providers do blocking I/O
            lookup = await asyncio.to_thread(self.geolocator.lookup, ip.strip())
        except Exception as e:
            logger.warning("Geolocation lookup error for %s: %s", ip, e)
            return Geolocation()

        return to_geolocation(lookup)

    async def get_statistics(self, shortcode: str) -> URLStats:
        """
        Get statistics for a short URL (expired ones included).

        Raises:
            ShortUrlNotFoundError
        """
        url = await self._active_storage().find_by_shortcode(shortcode)

        if url is None:
            logger.warning("Shortcode not found for statistics: %s", shortcode)
            raise ShortUrlNotFoundError()

        return URLStats(
            shortcode=url.shortcode,
            original_url=url.original_url,
            created_at=url.created_at,
            expires_at=url.expires_at,
            validity_minutes=url.validity_minutes,
            is_expired=url.is_expired(self.clock()),
            click_count=url.click_count,
            clicks=[
                ClickStats(
                    timestamp=click.timestamp,
                    referrer=click.referrer,
                    geolocation=GeolocationStats(
                        country=click.geolocation.country,
                        region=click.geolocation.region,
                        city=click.geolocation.city,
                    ),
                )
                for click in url.clicks
            ],
        )

    async def sweep_expired(self) -> int:
        """Delete every expired short URL from the active storage"""
        deleted = await self._active_storage().delete_expired(self.clock())
        logger.info("Expired URLs cleaned up: %d", deleted)
        return deleted
