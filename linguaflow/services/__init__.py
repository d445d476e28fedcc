"""Services layer: storage, remote sync, data store and content generation."""

from .data_store import DataStore
from .generation_service import GenerationConfig, GenerationService, GeminiProvider
from .migration import MigrationReport, migrate_local_to_remote, needs_migration
from .remote import RemoteStore, SupabaseRestStore
from .storage import BaseStorage, JsonFileStorage, MemoryStorage, SQLiteStorage

__all__ = [
    "BaseStorage",
    "DataStore",
    "GeminiProvider",
    "GenerationConfig",
    "GenerationService",
    "JsonFileStorage",
    "MemoryStorage",
    "migrate_local_to_remote",
    "MigrationReport",
    "needs_migration",
    "RemoteStore",
    "SQLiteStorage",
    "SupabaseRestStore",
]
