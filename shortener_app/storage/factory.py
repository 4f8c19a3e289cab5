"""
Factory for creating URL storage instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
import logging
from .strategies import URLStorageStrategy, SQLURLStorage, InMemoryURLStorage
from shortener_app.config import settings

logger = logging.getLogger(__name__)


class StorageBackend(Enum):
    """Available URL storage backends"""
    SQL = "sql"
    MEMORY = "memory"


class StorageFactory:
    """
    Simple factory for creating URL storage instances.

    Gets configuration from settings (not passed as parameters).
    Connectivity is checked later by initialize(); an unreachable database
    is handled by the service falling back to memory.
    """

    _instance: URLStorageStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: StorageBackend) -> URLStorageStrategy:
        """
        Create or return cached storage instance.

        Args:
            backend: Type of storage backend (from enum)

        Returns:
            Singleton storage instance
        """
        # Return cached instance if exists
        if cls._instance is not None:
            return cls._instance

        if backend == StorageBackend.SQL:
            cls._instance = SQLURLStorage(
                database_url=settings.database_url,
                connect_timeout=settings.database_connect_timeout,
            )
            logger.info("SQL storage created")

        elif backend == StorageBackend.MEMORY:
            cls._instance = InMemoryURLStorage()

        else:
            raise ValueError(f"Unknown storage backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
