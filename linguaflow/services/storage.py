"""
Durable local storage - string key/value persistence behind the local cache.

Enables switching between a JSON file, SQLite and an in-memory backend
without changing the data store. Write failures raise ``StorageError``:
they are the one failure class that must reach the caller.
"""

import json
import logging
import os
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Dict, Generator, Optional

from ..config import Config
from ..exceptions import StorageError

logger = logging.getLogger(__name__)

# Keys of the write-through cache
KEY_USER = "linguaflow_user"
KEY_COLLECTIONS = "linguaflow_collections"
KEY_CARDS = "linguaflow_cards"
KEY_DIALOGUES = "linguaflow_dialogues"
KEY_ONBOARDED = "linguaflow_onboarded"
KEY_INITIALIZED = "linguaflow_initialized"
KEY_ANON_USER_ID = "linguaflow_anon_user_id"


class BaseStorage(ABC):
    """
    Abstract base class for durable key/value storage.

    Values are strings; callers serialize JSON themselves.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Get value for key, or None if absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store value under key. Raises StorageError on failure."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key if present. Raises StorageError on failure."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all keys."""
        pass

    def set_many(self, items: Dict[str, str]) -> None:
        """Store several keys; backends may override to write once."""
        for key, value in items.items():
            self.set_item(key, value)


class MemoryStorage(BaseStorage):
    """Process-local storage. Used by tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileStorage(BaseStorage):
    """
    All keys in one JSON document on disk.

    Every write rewrites the document atomically (temp file + rename), so a
    crash never leaves a half-written cache behind.
    """

    DEFAULT_FILE = "linguaflow_storage.json"

    def __init__(self, file_path: Optional[str] = None):
        """
        Initialize JSON file storage.

        Args:
            file_path: Path to JSON file (defaults to <DATA_DIR>/linguaflow_storage.json)
        """
        if file_path is None:
            file_path = os.path.join(Config.DATA_DIR, self.DEFAULT_FILE)

        self.file_path = Path(file_path)
        self._lock = Lock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        """Load document from file."""
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise StorageError(f"Could not read {self.file_path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected storage layout in {self.file_path}")
        return {str(k): str(v) for k, v in data.items()}

    def _save_internal(self) -> None:
        """Write document atomically (caller must hold lock)."""
        temp_file = self.file_path.with_name(f"{self.file_path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
            os.replace(temp_file, self.file_path)
        except OSError as e:
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    logger.warning("Could not remove temp file %s", temp_file)
            raise StorageError(f"Could not write {self.file_path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Dict[str, str]) -> None:
        with self._lock:
            previous = dict(self._data)
            self._data.update(items)
            try:
                self._save_internal()
            except StorageError:
                self._data = previous
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            previous = dict(self._data)
            del self._data[key]
            try:
                self._save_internal()
            except StorageError:
                self._data = previous
                raise

    def clear(self) -> None:
        with self._lock:
            self._data = {}
            self._save_internal()


class SQLiteStorage(BaseStorage):
    """
    Key/value table in a SQLite database.

    Provides transactional writes without full-file rewrites.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize SQLite storage.

        Args:
            db_path: Path to SQLite database file
        """
        if db_path is None:
            db_path = str(Path(Config.DATA_DIR) / "linguaflow.db")

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get database connection with context manager."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(f"Could not open {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"SQLite storage error: {e}") from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
            conn.commit()

    def get_item(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Dict[str, str]) -> None:
        with self._get_connection() as conn:
            conn.executemany(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                list(items.items()),
            )
            conn.commit()

    def remove_item(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def clear(self) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store")
            conn.commit()
