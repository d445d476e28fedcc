"""
Store Factory - Strategy Pattern wiring for storage backends and the data store.

Picks the durable storage backend and the optional remote store from
configuration, so callers never construct them by hand.
"""

import logging
from typing import Dict, Optional, Type

from .config import Config
from .services.data_store import DataStore
from .services.remote import RemoteStore, SupabaseRestStore
from .services.storage import BaseStorage, JsonFileStorage, MemoryStorage, SQLiteStorage

logger = logging.getLogger(__name__)


class StorageFactory:
    """
    Factory for durable local storage backends.

    Supports registration of custom backends for extensibility.

    Usage:
        # Register a backend
        @StorageFactory.register("redis")
        class RedisStorage(BaseStorage):
            ...

        # Create a backend
        storage = StorageFactory.create("sqlite", db_path="study.db")
    """

    _registry: Dict[str, Type[BaseStorage]] = {
        "memory": MemoryStorage,
        "json": JsonFileStorage,
        "sqlite": SQLiteStorage,
    }

    @classmethod
    def register(cls, name: str):
        """
        Decorator to register a storage class.

        Args:
            name: Backend name used in ``LINGUAFLOW_STORAGE``

        Returns:
            Decorator function
        """
        def decorator(storage_cls: Type[BaseStorage]) -> Type[BaseStorage]:
            cls._registry[name] = storage_cls
            return storage_cls
        return decorator

    @classmethod
    def create(cls, name: str, **kwargs) -> BaseStorage:
        """
        Create a storage instance.

        Raises:
            ValueError: If the backend is not registered
        """
        if name not in cls._registry:
            raise ValueError(
                f"Unknown storage backend: {name}. "
                f"Available: {cls.get_available_backends()}"
            )
        return cls._registry[name](**kwargs)

    @classmethod
    def get_available_backends(cls) -> list:
        return list(cls._registry.keys())


def create_storage(backend: Optional[str] = None, **kwargs) -> BaseStorage:
    """Create the configured durable storage backend."""
    return StorageFactory.create((backend or Config.STORAGE_BACKEND).lower(), **kwargs)


def create_remote_store(storage: Optional[BaseStorage] = None) -> Optional[RemoteStore]:
    """Create the remote store, or None when it is not configured."""
    remote = SupabaseRestStore.from_config(storage)
    if remote is None:
        logger.info("Remote store not configured, running local-only")
    return remote


async def create_data_store(
    storage: Optional[BaseStorage] = None,
    remote: Optional[RemoteStore] = None,
    use_remote: bool = True,
) -> DataStore:
    """
    Build and initialize a data store from configuration.

    Args:
        storage: Storage backend (configured backend if None)
        remote: Remote store (configured remote if None and ``use_remote``)
        use_remote: Set False to force local-only operation

    Returns:
        Initialized data store
    """
    storage = storage or create_storage()
    if remote is None and use_remote:
        remote = create_remote_store(storage)
    store = DataStore(storage, remote=remote)
    return await store.init()
