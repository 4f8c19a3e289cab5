"""
URL storage strategies using Strategy Pattern.

Two interchangeable backends:
- SQL: durable (SQLite for development, PostgreSQL/MySQL in production)
- In-memory: volatile fallback when the database is unreachable
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional
import logging
import threading

from sqlalchemy import delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from shortener_app.database.connection import Base, build_engine, build_session_factory
from shortener_app.exceptions import DuplicateShortcodeError
from shortener_app.models.url import ShortUrlRecord, ClickRecord
from .models import Click, Coordinates, Geolocation, ShortUrl

logger = logging.getLogger(__name__)


class URLStorageStrategy(ABC):
    """
    Abstract base class for URL storage strategies.

    This interface defines how short URLs and their clicks are persisted.
    The service only talks to this interface, so a deployment without a
    reachable database keeps working on the in-memory variant.

    Pattern: Strategy Pattern
    Similar to: Django's cache backends, Celery's brokers
    """

    name: str = "abstract"

    async def initialize(self) -> None:
        """Prepare the backend (create schema, check connectivity)"""

    def is_ready(self) -> bool:
        """Whether the backend can currently serve requests"""
        return True

    def close(self) -> None:
        """Release backend resources"""

    @abstractmethod
    async def save(self, record: ShortUrl) -> ShortUrl:
        """
        Insert a new short URL.

        Check and insert are a single atomic step per shortcode.

        Args:
            record: Fully built ShortUrl (no clicks yet)

        Returns:
            The stored record

        Raises:
            DuplicateShortcodeError: if the shortcode is already stored
        """
        pass

    @abstractmethod
    async def find_by_shortcode(self, shortcode: str) -> Optional[ShortUrl]:
        """Get a short URL with its clicks, or None"""
        pass

    @abstractmethod
    async def append_click(self, shortcode: str, click: Click) -> Optional[ShortUrl]:
        """
        Append a click to a short URL.

        Returns:
            The updated record, or None if the shortcode does not exist
        """
        pass

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """
        Delete every short URL with expires_at < now.

        Returns:
            Number of deleted short URLs
        """
        pass


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SQLURLStorage(URLStorageStrategy):
    """
    SQLAlchemy implementation (durable).

    - UNIQUE constraint on shortcode enforces uniqueness at the storage layer
    - Index on expires_at keeps the sweep cheap
    - Clicks are rows in their own table, ordered by id

    Sessions are short-lived: one per operation.
    An OperationalError (lost connection) marks the store as not ready,
    after which the service pins the in-memory fallback.
    """

    name = "sql"

    def __init__(
        self,
        database_url: str = "sqlite:///./url_shortener.db",
        engine: Optional[Engine] = None,
        connect_timeout: int = 5,
    ):
        """
        Initialize SQL storage.

        Args:
            database_url: SQLAlchemy database URL
            engine: Pre-built engine (tests pass an in-memory SQLite engine)
            connect_timeout: Seconds to wait for the server on connect
        """
        self.database_url = database_url
        self.engine = engine or build_engine(database_url, connect_timeout)
        self.session_factory = build_session_factory(self.engine)
        self._ready = False

    async def initialize(self) -> None:
        """Create tables and ping the database"""
        try:
            Base.metadata.create_all(bind=self.engine)
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            self._ready = True
            logger.info("SQL storage initialized (%s)", self.engine.url.render_as_string())
        except SQLAlchemyError as e:
            self._ready = False
            logger.warning("SQL storage unavailable: %s", e)

    def is_ready(self) -> bool:
        return self._ready

    def close(self) -> None:
        self.engine.dispose()

    def _mark_unavailable(self, error: Exception) -> None:
        if self._ready:
            logger.error("Lost connection to SQL storage: %s", error)
        self._ready = False

    def _load(self, session, shortcode: str) -> Optional[ShortUrlRecord]:
        stmt = (
            select(ShortUrlRecord)
            .options(selectinload(ShortUrlRecord.clicks))
            .where(ShortUrlRecord.shortcode == shortcode)
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_domain(row: ShortUrlRecord) -> ShortUrl:
        return ShortUrl(
            original_url=row.original_url,
            shortcode=row.shortcode,
            created_at=_as_utc(row.created_at),
            expires_at=_as_utc(row.expires_at),
            validity_minutes=row.validity_minutes,
            is_active=row.is_active,
            clicks=[
                Click(
                    timestamp=_as_utc(click.timestamp),
                    source_ip=click.source_ip,
                    referrer=click.referrer,
                    user_agent=click.user_agent,
                    geolocation=Geolocation(
                        country=click.country,
                        region=click.region,
                        city=click.city,
                        coordinates=Coordinates(lat=click.latitude, lon=click.longitude),
                    ),
                )
                for click in row.clicks
            ],
        )

    async def save(self, record: ShortUrl) -> ShortUrl:
        row = ShortUrlRecord(
            original_url=record.original_url,
            shortcode=record.shortcode,
            created_at=record.created_at,
            expires_at=record.expires_at,
            validity_minutes=record.validity_minutes,
            is_active=record.is_active,
        )
        with self.session_factory() as session:
            try:
                session.add(row)
                session.commit()
            except IntegrityError:
                session.rollback()
                raise DuplicateShortcodeError(record.shortcode)
            except OperationalError as e:
                session.rollback()
                self._mark_unavailable(e)
                raise

            logger.debug("URL saved to SQL storage: %s", record.shortcode)
            return self._to_domain(self._load(session, record.shortcode))

    async def find_by_shortcode(self, shortcode: str) -> Optional[ShortUrl]:
        with self.session_factory() as session:
            try:
                row = self._load(session, shortcode)
            except OperationalError as e:
                self._mark_unavailable(e)
                raise
            return self._to_domain(row) if row else None

    async def append_click(self, shortcode: str, click: Click) -> Optional[ShortUrl]:
        with self.session_factory() as session:
            try:
                row = self._load(session, shortcode)
                if row is None:
                    return None

                session.add(ClickRecord(
                    short_url_id=row.id,
                    timestamp=click.timestamp,
                    source_ip=click.source_ip,
                    referrer=click.referrer,
                    user_agent=click.user_agent,
                    country=click.geolocation.country,
                    region=click.geolocation.region,
                    city=click.geolocation.city,
                    latitude=click.geolocation.coordinates.lat,
                    longitude=click.geolocation.coordinates.lon,
                ))
                session.commit()
            except OperationalError as e:
                session.rollback()
                self._mark_unavailable(e)
                raise

            session.expire_all()
            return self._to_domain(self._load(session, shortcode))

    async def delete_expired(self, now: datetime) -> int:
        expired_ids = select(ShortUrlRecord.id).where(ShortUrlRecord.expires_at < now)

        with self.session_factory() as session:
            try:
                # Clicks first: SQLite does not enforce ON DELETE CASCADE by default
                session.execute(
                    delete(ClickRecord).where(ClickRecord.short_url_id.in_(expired_ids))
                )
                result = session.execute(
                    delete(ShortUrlRecord).where(ShortUrlRecord.expires_at < now)
                )
                session.commit()
            except OperationalError as e:
                session.rollback()
                self._mark_unavailable(e)
                raise

        deleted = result.rowcount or 0
        if deleted:
            logger.info("Deleted %d expired URLs from SQL storage", deleted)
        return deleted


class InMemoryURLStorage(URLStorageStrategy):
    """
    In-memory implementation (volatile).

    Good for:
    - Development without a database
    - Fallback when the database is unreachable

    Limitations:
    - Lost on restart
    - Not shared between processes

    Each shortcode has its own lock, so check-then-insert and click appends
    on one key never interleave while unrelated keys proceed in parallel.
    Records are copied in and out; callers never hold the stored object.
    """

    name = "memory"

    def __init__(self):
        self._urls: Dict[str, ShortUrl] = {}
        self._locks: Dict[str, threading.Lock] = {}
        logger.info("In-memory URL storage initialized")

    @contextmanager
    def _locked(self, shortcode: str) -> Iterator[None]:
        """
        Hold the lock of one shortcode.

        A sweep retires the lock of a deleted code. Anyone who was waiting on
        the retired lock sees it is no longer registered and takes the
        current one instead, so a code is never guarded by two locks at once.
        """
        while True:
            # setdefault is atomic, so two callers always end up with the same lock
            lock = self._locks.setdefault(shortcode, threading.Lock())
            with lock:
                if self._locks.get(shortcode) is lock:
                    yield
                    return

    async def save(self, record: ShortUrl) -> ShortUrl:
        with self._locked(record.shortcode):
            if record.shortcode in self._urls:
                raise DuplicateShortcodeError(record.shortcode)
            stored = record.model_copy(deep=True)
            self._urls[record.shortcode] = stored
            logger.debug("URL saved to memory store: %s", record.shortcode)
            return stored.model_copy(deep=True)

    async def find_by_shortcode(self, shortcode: str) -> Optional[ShortUrl]:
        if shortcode not in self._urls:
            return None
        with self._locked(shortcode):
            url = self._urls.get(shortcode)
            return url.model_copy(deep=True) if url else None

    async def append_click(self, shortcode: str, click: Click) -> Optional[ShortUrl]:
        if shortcode not in self._urls:
            return None
        with self._locked(shortcode):
            url = self._urls.get(shortcode)
            if url is None:
                return None
            url.clicks.append(click.model_copy(deep=True))
            logger.debug(
                "Click added to memory store: %s (total %d)", shortcode, url.click_count
            )
            return url.model_copy(deep=True)

    async def delete_expired(self, now: datetime) -> int:
        deleted = 0
        for shortcode in list(self._urls.keys()):
            with self._locked(shortcode):
                url = self._urls.get(shortcode)
                if url is not None and url.expires_at < now:
                    del self._urls[shortcode]
                    del self._locks[shortcode]
                    deleted += 1

        # Locks of codes that vanished while a lookup was taking their lock
        for shortcode in list(self._locks.keys()):
            if shortcode not in self._urls:
                with self._locked(shortcode):
                    if shortcode not in self._urls:
                        del self._locks[shortcode]

        if deleted:
            logger.info("Deleted %d expired URLs from memory store", deleted)
        return deleted

    def __len__(self) -> int:
        return len(self._urls)
