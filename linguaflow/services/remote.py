"""
Remote Store - optional cloud persistence mirrored by the data store.

``RemoteStore`` is the strategy interface; ``SupabaseRestStore`` talks to a
Supabase project through its PostgREST HTTP API with aiohttp. Every failure
surfaces as ``RemoteStoreError`` so the data store can degrade to local-only
operation.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import aiohttp

from ..config import Config
from ..exceptions import RemoteStoreError
from ..models import Card, Collection, Dialogue, UserProfile, to_plain
from ..utils import mapping
from ..utils.helpers import format_timestamp, utc_now

if TYPE_CHECKING:
    from .storage import BaseStorage

logger = logging.getLogger(__name__)


class RemoteStore(ABC):
    """
    Abstract authenticated CRUD over the four remote tables.

    Partial updates are attribute-keyed dicts; implementations translate
    them through the field mapping tables.
    """

    @property
    @abstractmethod
    def user_id(self) -> Optional[str]:
        """Opaque id of the user owning every row."""
        pass

    def is_authenticated(self) -> bool:
        """True when requests can be scoped to a user."""
        return bool(self.user_id)

    # Profile

    @abstractmethod
    async def get_profile(self) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def update_profile(self, updates: Dict[str, Any]) -> Optional[UserProfile]:
        pass

    # Collections

    @abstractmethod
    async def get_collections(self) -> List[Collection]:
        pass

    @abstractmethod
    async def add_collection(self, collection: Collection) -> Collection:
        """Create a collection and return it with its canonical id."""
        pass

    @abstractmethod
    async def update_collection(self, collection_id: str, updates: Dict[str, Any]) -> Optional[Collection]:
        pass

    @abstractmethod
    async def delete_collection(self, collection_id: str) -> bool:
        """Delete a collection together with its cards."""
        pass

    # Cards

    @abstractmethod
    async def get_cards(self, collection_id: Optional[str] = None) -> List[Card]:
        pass

    @abstractmethod
    async def add_card(self, card: Card) -> Card:
        """Create a card and return it with its canonical id."""
        pass

    @abstractmethod
    async def update_card(self, card_id: str, updates: Dict[str, Any]) -> Optional[Card]:
        pass

    @abstractmethod
    async def delete_card(self, card_id: str) -> bool:
        pass

    # Dialogues

    @abstractmethod
    async def get_dialogues(self) -> List[Dialogue]:
        pass

    @abstractmethod
    async def add_dialogue(self, dialogue: Dialogue) -> Dialogue:
        pass

    async def close(self) -> None:
        """Close any open resources (sessions, connections, etc.)."""
        pass

    async def __aenter__(self) -> "RemoteStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _insert_payload(fields: mapping.FieldTable, record: Dict[str, Any]) -> Dict[str, Any]:
    """Remote row for an insert: the database assigns id and updated_at."""
    row = mapping.to_remote(fields, record)
    row.pop("id", None)
    row.pop("updated_at", None)
    if row.get("created_at") is None:
        row.pop("created_at", None)
    return row


class SupabaseRestStore(RemoteStore):
    """
    Supabase (PostgREST) implementation over aiohttp.

    Usage:
        async with SupabaseRestStore(url, anon_key, user_id) as remote:
            collections = await remote.get_collections()
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        url: str,
        anon_key: str,
        user_id: Optional[str],
        access_token: Optional[str] = None,
        timeout: int = Config.REMOTE_TIMEOUT,
    ):
        """
        Initialize the REST store.

        Args:
            url: Supabase project URL
            anon_key: Project anon (public) key
            user_id: Id of the user owning the rows
            access_token: JWT of a signed-in user; anon key is used otherwise
            timeout: Total timeout per request in seconds
        """
        self.base_url = url.rstrip("/") + self.REST_PATH
        self.anon_key = anon_key
        self.access_token = access_token
        self.timeout = timeout
        self._user_id = user_id
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, storage: Optional["BaseStorage"] = None) -> Optional["SupabaseRestStore"]:
        """
        Build a store from ``Config``, or None when the remote is not configured.

        Without an explicit user id, an anonymous id is created once and kept
        in local storage so the same rows are found after a restart.
        """
        if not Config.remote_configured():
            return None

        user_id = Config.USER_ID or None
        if not user_id and Config.ALLOW_ANON_REMOTE and storage is not None:
            from .storage import KEY_ANON_USER_ID
            user_id = storage.get_item(KEY_ANON_USER_ID)
            if not user_id:
                user_id = str(uuid.uuid4())
                storage.set_item(KEY_ANON_USER_ID, user_id)

        return cls(
            Config.SUPABASE_URL,
            Config.SUPABASE_ANON_KEY,
            user_id,
            access_token=Config.SUPABASE_ACCESS_TOKEN or None,
            timeout=Config.REMOTE_TIMEOUT,
        )

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {
                "apikey": self.anon_key,
                "Authorization": f"Bearer {self.access_token or self.anon_key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            }
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Perform one REST call.

        Returns:
            Decoded rows (empty list when the response has no body)

        Raises:
            RemoteStoreError: On transport errors, timeouts and HTTP >= 400
        """
        if not self.is_authenticated():
            raise RemoteStoreError("Remote store has no authenticated user")

        session = await self._get_session()
        url = f"{self.base_url}/{table}"

        try:
            async with session.request(method, url, params=params, json=payload, headers=headers) as response:
                if response.status >= 400:
                    error = await response.text()
                    raise RemoteStoreError(
                        f"{method} {table} failed with {response.status}: {error[:200]}",
                        status=response.status,
                    )
                if response.status == 204:
                    return []
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise RemoteStoreError(f"{method} {table} timed out") from e
        except aiohttp.ClientError as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e

        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    def _scope(self, **filters: str) -> Dict[str, str]:
        params = {"user_id": f"eq.{self.user_id}"}
        params.update({k: f"eq.{v}" for k, v in filters.items()})
        return params

    @staticmethod
    def _update_payload(fields: mapping.FieldTable, updates: Dict[str, Any]) -> Dict[str, Any]:
        row = mapping.to_remote(fields, {k: to_plain(v) for k, v in updates.items()})
        row.pop("id", None)
        row["updated_at"] = format_timestamp(utc_now())
        return row

    # ==================== Profile ====================

    async def get_profile(self) -> Optional[UserProfile]:
        rows = await self._request(
            "GET", "profiles", params={"id": f"eq.{self.user_id}", "select": "*"}
        )
        return UserProfile.from_remote(rows[0]) if rows else None

    async def update_profile(self, updates: Dict[str, Any]) -> Optional[UserProfile]:
        """Upsert the profile row so first-time users get one created."""
        row = self._update_payload(mapping.PROFILE_FIELDS, updates)
        row["id"] = self.user_id
        rows = await self._request(
            "POST",
            "profiles",
            params={"on_conflict": "id"},
            payload=row,
            headers={"Prefer": "return=representation,resolution=merge-duplicates"},
        )
        return UserProfile.from_remote(rows[0]) if rows else None

    # ==================== Collections ====================

    async def get_collections(self) -> List[Collection]:
        params = self._scope()
        params.update({"select": "*", "order": "created_at.desc"})
        rows = await self._request("GET", "collections", params=params)
        return [Collection.from_remote(r) for r in rows]

    async def add_collection(self, collection: Collection) -> Collection:
        row = _insert_payload(mapping.COLLECTION_FIELDS, collection.to_dict())
        row["user_id"] = self.user_id
        rows = await self._request("POST", "collections", payload=row)
        if not rows:
            raise RemoteStoreError("Insert into collections returned no row")
        return Collection.from_remote(rows[0])

    async def update_collection(self, collection_id: str, updates: Dict[str, Any]) -> Optional[Collection]:
        rows = await self._request(
            "PATCH",
            "collections",
            params=self._scope(id=collection_id),
            payload=self._update_payload(mapping.COLLECTION_FIELDS, updates),
        )
        return Collection.from_remote(rows[0]) if rows else None

    async def delete_collection(self, collection_id: str) -> bool:
        await self._request("DELETE", "cards", params=self._scope(collection_id=collection_id))
        await self._request("DELETE", "collections", params=self._scope(id=collection_id))
        return True

    # ==================== Cards ====================

    async def get_cards(self, collection_id: Optional[str] = None) -> List[Card]:
        params = self._scope(collection_id=collection_id) if collection_id else self._scope()
        params.update({"select": "*", "order": "created_at.desc"})
        rows = await self._request("GET", "cards", params=params)
        return [Card.from_remote(r) for r in rows]

    async def add_card(self, card: Card) -> Card:
        row = _insert_payload(mapping.CARD_FIELDS, card.to_dict())
        row["user_id"] = self.user_id
        rows = await self._request("POST", "cards", payload=row)
        if not rows:
            raise RemoteStoreError("Insert into cards returned no row")
        created = Card.from_remote(rows[0])
        # Columns the remote table lacks stay as they were locally
        created.example_reading = created.example_reading or card.example_reading
        return created

    async def update_card(self, card_id: str, updates: Dict[str, Any]) -> Optional[Card]:
        rows = await self._request(
            "PATCH",
            "cards",
            params=self._scope(id=card_id),
            payload=self._update_payload(mapping.CARD_FIELDS, updates),
        )
        return Card.from_remote(rows[0]) if rows else None

    async def delete_card(self, card_id: str) -> bool:
        await self._request("DELETE", "cards", params=self._scope(id=card_id))
        return True

    # ==================== Dialogues ====================

    async def get_dialogues(self) -> List[Dialogue]:
        params = self._scope()
        params.update({"select": "*", "order": "created_at.desc"})
        rows = await self._request("GET", "dialogues", params=params)
        return [Dialogue.from_remote(r) for r in rows]

    async def add_dialogue(self, dialogue: Dialogue) -> Dialogue:
        row = _insert_payload(mapping.DIALOGUE_FIELDS, dialogue.to_dict())
        row["user_id"] = self.user_id
        rows = await self._request("POST", "dialogues", payload=row)
        if not rows:
            raise RemoteStoreError("Insert into dialogues returned no row")
        return Dialogue.from_remote(rows[0])
