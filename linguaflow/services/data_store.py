"""
Data Store - the persistence facade for profile, collections, cards and dialogues.

Local-first: the in-memory cache is authoritative for reads and is written
through to durable local storage on every mutation. When a remote store is
configured and authenticated, every mutation is mirrored to it best-effort;
remote failures are logged and never roll back the local cache.

Usage:
    store = DataStore(JsonFileStorage(), remote=SupabaseRestStore.from_config(storage))
    await store.init()
    card = await store.add_card({"collection_id": col.id, "front": "你好", "back": "Hello"})
    await store.review_card(card.id, Quality.GOOD)
"""

import asyncio
import copy
import json
import logging
import weakref
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from ..exceptions import RemoteStoreError, StorageError
from ..models import (
    Card,
    Collection,
    Dialogue,
    SCHEDULING_FIELDS,
    UserProfile,
    to_plain,
)
from ..scheduling import due
from ..scheduling.scheduler import SchedulingState, coerce_quality, review
from ..utils.helpers import generate_local_id, utc_now
from ..utils.parsing import TextParser
from .migration import MigrationReport, migrate_local_to_remote, needs_migration
from .remote import RemoteStore
from .storage import (
    BaseStorage,
    KEY_CARDS,
    KEY_COLLECTIONS,
    KEY_DIALOGUES,
    KEY_INITIALIZED,
    KEY_ONBOARDED,
    KEY_USER,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATE_KEYS = {
    "user": KEY_USER,
    "collections": KEY_COLLECTIONS,
    "cards": KEY_CARDS,
    "dialogues": KEY_DIALOGUES,
    "onboarded": KEY_ONBOARDED,
    "initialized": KEY_INITIALIZED,
}


class DataStore:
    """
    Single point of truth for reading and writing the four entities.

    Reads never touch the remote store. Writes go to durable local storage
    first (a ``StorageError`` aborts the operation and leaves the cache as it
    was), then to the cache, then to the remote store if one is in use.
    """

    def __init__(
        self,
        storage: BaseStorage,
        remote: Optional[RemoteStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the data store.

        Args:
            storage: Durable local key/value storage
            remote: Optional remote store to mirror writes to
            clock: Source of the current time
        """
        self.storage = storage
        self.remote = remote
        self.clock = clock
        self.use_remote = False
        self.last_migration: Optional[MigrationReport] = None

        self._user: Optional[UserProfile] = None
        self._collections: List[Collection] = []
        self._cards: List[Card] = []
        self._dialogues: List[Dialogue] = []
        self._onboarded = False
        self._initialized = False

        # Locks live only while an operation on the entity holds or awaits them
        self._entity_locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._change_callbacks: List[Callable[[], None]] = []

    # ==================== Lifecycle ====================

    async def init(self) -> "DataStore":
        """
        Populate the cache.

        With an authenticated remote, load from it (migrating local-only data
        first when the remote holds no cards). Any remote failure falls back
        to local storage for the rest of the session.
        """
        logger.info("Initializing data store")
        self.use_remote = self.remote is not None and self.remote.is_authenticated()

        if self.use_remote:
            try:
                await self._load_from_remote()
            except RemoteStoreError as e:
                logger.warning("Remote store unavailable, continuing with local data: %s", e)
                self.use_remote = False

        if not self.use_remote:
            if self.storage.get_item(KEY_INITIALIZED) != "true":
                self.reset()
            else:
                self._load_from_local()
                self._initialized = True

        logger.info(
            "Data store ready (%s): %d collections, %d cards",
            "remote" if self.use_remote else "local",
            len(self._collections),
            len(self._cards),
        )
        return self

    async def close(self) -> None:
        """Release remote resources."""
        if self.remote is not None:
            await self.remote.close()

    async def __aenter__(self) -> "DataStore":
        return await self.init()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def is_cloud_enabled(self) -> bool:
        return self.use_remote

    def on_change(self, callback: Callable[[], None]) -> None:
        """
        Register a callback for data changes.

        Args:
            callback: Function to call after every successful mutation
        """
        self._change_callbacks.append(callback)

    def _notify_change(self) -> None:
        for callback in self._change_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Change callback %r failed", callback)

    # ==================== Loading ====================

    async def _load_from_remote(self) -> None:
        remote = self.remote
        profile = await remote.get_profile()
        collections = await remote.get_collections()
        cards = await remote.get_cards()

        local_collections = self._read_entities(KEY_COLLECTIONS, Collection)
        local_cards = self._read_entities(KEY_CARDS, Card)

        if needs_migration(cards, local_cards):
            logger.info("Remote store is empty, migrating %d local cards", len(local_cards))
            self.last_migration = await migrate_local_to_remote(
                remote, local_collections, local_cards, collections
            )
            collections = await remote.get_collections()
            cards = await remote.get_cards()

        dialogues = await remote.get_dialogues()

        created_profile = profile is None
        if created_profile:
            profile = self._read_user() or UserProfile(created_at=self.clock())
            onboarded = self._read_onboarded()
        else:
            onboarded = profile.onboarded

        self._persist(
            user=profile,
            collections=collections,
            cards=cards,
            dialogues=dialogues,
            onboarded=onboarded,
            initialized=True,
        )

        if created_profile:
            fields = {k: v for k, v in profile.to_dict().items() if k not in ("id", "updated_at")}
            fields["onboarded"] = onboarded
            await self._mirror("profile", "me", "create", lambda: remote.update_profile(fields))

    def _load_from_local(self) -> None:
        self._user = self._read_user()
        self._collections = self._read_entities(KEY_COLLECTIONS, Collection)
        self._cards = self._read_entities(KEY_CARDS, Card)
        self._dialogues = self._read_entities(KEY_DIALOGUES, Dialogue)
        self._onboarded = self._read_onboarded()

    def _read_json(self, key: str) -> Any:
        raw = self.storage.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt local data under {key}: {e}") from e

    def _read_entities(self, key: str, record_cls: Any) -> List[Any]:
        records = self._read_json(key) or []
        try:
            return [record_cls.from_local(r) for r in records]
        except (TypeError, ValueError, AttributeError) as e:
            raise StorageError(f"Invalid local data under {key}: {e}") from e

    def _read_user(self) -> Optional[UserProfile]:
        data = self._read_json(KEY_USER)
        return UserProfile.from_local(data) if data else None

    def _read_onboarded(self) -> bool:
        return self.storage.get_item(KEY_ONBOARDED) == "true"

    # ==================== Persistence ====================

    def _persist(self, **changes: Any) -> None:
        """
        Write changed parts of the cache to durable storage, then swap them in.

        Raises:
            StorageError: If the write fails; the cache is left untouched
        """
        items: Dict[str, str] = {}
        for name, value in changes.items():
            key = _STATE_KEYS[name]
            if name in ("onboarded", "initialized"):
                items[key] = "true" if value else "false"
            elif name == "user":
                if value is not None:
                    items[key] = json.dumps(value.to_local(), ensure_ascii=False)
            else:
                items[key] = json.dumps([e.to_local() for e in value], ensure_ascii=False)

        try:
            self.storage.set_many(items)
        except StorageError:
            logger.error("Local storage write failed for %s", ", ".join(sorted(items)))
            raise

        for name, value in changes.items():
            setattr(self, f"_{name}", value)
        self._notify_change()

    def _entity_lock(self, kind: str, entity_id: str) -> asyncio.Lock:
        key = (kind, entity_id)
        lock = self._entity_locks.get(key)
        if lock is None:
            lock = self._entity_locks[key] = asyncio.Lock()
        return lock

    async def _mirror(
        self,
        kind: str,
        entity_id: str,
        operation: str,
        call: Callable[[], Awaitable[T]],
    ) -> Optional[T]:
        """
        Run one remote operation for an entity, in issue order per entity.

        Remote failures are logged and swallowed.
        """
        if not self.use_remote:
            return None
        async with self._entity_lock(kind, entity_id):
            try:
                return await call()
            except RemoteStoreError as e:
                logger.warning("Remote %s of %s %s failed: %s", operation, kind, entity_id, e)
                return None

    @staticmethod
    def _find(items: Sequence[Any], entity_id: str) -> int:
        for index, item in enumerate(items):
            if item.id == entity_id:
                return index
        return -1

    @staticmethod
    def _merge(record: Any, updates: Dict[str, Any], now: datetime) -> Any:
        data = record.to_dict()
        data.update(to_plain({k: v for k, v in updates.items() if k != "id"}))
        data["updated_at"] = now
        return type(record).from_dict(data)

    # ==================== User ====================

    def get_user(self) -> UserProfile:
        """Current profile, or a default profile when none exists yet."""
        if self._user is None:
            return UserProfile()
        return copy.deepcopy(self._user)

    async def update_user(self, updates: Dict[str, Any]) -> UserProfile:
        """
        Merge a partial update into the profile.

        A ``settings`` dict is merged into the current settings record
        instead of replacing it.
        """
        now = self.clock()
        data = self.get_user().to_dict()
        for key, value in to_plain(updates).items():
            if key == "settings" and isinstance(value, dict):
                data["settings"] = {**data["settings"], **value}
            elif key != "id":
                data[key] = value
        data["updated_at"] = now
        if data.get("created_at") is None:
            data["created_at"] = now
        user = UserProfile.from_dict(data)

        self._persist(user=user)

        remote_updates = dict(updates)
        if "settings" in remote_updates:
            remote_updates["settings"] = user.settings
        await self._mirror("profile", "me", "update", lambda: self.remote.update_profile(remote_updates))
        return copy.deepcopy(user)

    def is_onboarded(self) -> bool:
        return self._onboarded

    async def set_onboarded(self, value: bool = True) -> None:
        changes: Dict[str, Any] = {"onboarded": value}
        if self._user is not None:
            changes["user"] = self._merge(self._user, {"onboarded": value}, self.clock())
        self._persist(**changes)
        await self._mirror("profile", "me", "update", lambda: self.remote.update_profile({"onboarded": value}))

    async def toggle_collection_exclusion(self, collection_id: str) -> bool:
        """
        Include or exclude a collection from the global review queue.

        Returns:
            True if the collection is excluded afterwards
        """
        excluded = list(self.get_user().settings.excluded_collection_ids)
        if collection_id in excluded:
            excluded.remove(collection_id)
            now_excluded = False
        else:
            excluded.append(collection_id)
            now_excluded = True
        await self.update_user({"settings": {"excluded_collection_ids": excluded}})
        return now_excluded

    def reset(self) -> None:
        """Full local data reset: default profile, no collections, cards or dialogues."""
        self._persist(
            user=UserProfile(created_at=self.clock()),
            collections=[],
            cards=[],
            dialogues=[],
            onboarded=False,
            initialized=True,
        )

    # ==================== Collections ====================

    def get_collections(self) -> List[Collection]:
        return copy.deepcopy(self._collections)

    def get_collection(self, collection_id: str) -> Optional[Collection]:
        index = self._find(self._collections, collection_id)
        return copy.deepcopy(self._collections[index]) if index >= 0 else None

    async def add_collection(self, draft: Dict[str, Any]) -> Collection:
        """
        Create a collection.

        The remote store is asked first for a canonical id; if that fails
        a local id is generated instead.
        """
        collection = Collection.new(
            generate_local_id("col"), TextParser.normalize_fields(draft), self.clock()
        )

        if self.use_remote:
            try:
                collection = await self.remote.add_collection(collection)
            except RemoteStoreError as e:
                logger.warning("Remote add of collection %r failed, keeping local id: %s", collection.name, e)

        self._persist(collections=self._collections + [collection])
        return copy.deepcopy(collection)

    async def update_collection(self, collection_id: str, updates: Dict[str, Any]) -> Optional[Collection]:
        index = self._find(self._collections, collection_id)
        if index < 0:
            return None

        updated = self._merge(self._collections[index], updates, self.clock())
        collections = list(self._collections)
        collections[index] = updated
        self._persist(collections=collections)

        await self._mirror(
            "collection", collection_id, "update",
            lambda: self.remote.update_collection(collection_id, updates),
        )
        return copy.deepcopy(updated)

    async def delete_collection(self, collection_id: str) -> bool:
        """Delete a collection and every card it owns."""
        if self._find(self._collections, collection_id) < 0:
            return False

        self._persist(
            collections=[c for c in self._collections if c.id != collection_id],
            cards=[c for c in self._cards if c.collection_id != collection_id],
        )

        await self._mirror(
            "collection", collection_id, "delete",
            lambda: self.remote.delete_collection(collection_id),
        )
        return True

    async def update_collection_stats(
        self,
        collection_id: Optional[str],
        studied_at: Optional[datetime] = None,
    ) -> Optional[Collection]:
        """
        Recompute a collection's counters from its cards.

        Args:
            collection_id: Collection to refresh
            studied_at: Also record this as the collection's last study time

        Returns:
            Updated collection, or None if it does not exist
        """
        if not collection_id:
            return None
        stats = due.compute_collection_stats(self.get_cards(collection_id), self.clock())
        updates: Dict[str, Any] = stats.to_updates()
        if studied_at is not None:
            updates["last_studied"] = studied_at
        return await self.update_collection(collection_id, updates)

    # ==================== Cards ====================

    def get_cards(
        self,
        collection_id: Optional[str] = None,
        excluded_collection_ids: Optional[Sequence[str]] = None,
    ) -> List[Card]:
        return copy.deepcopy(due.filter_cards(self._cards, collection_id, excluded_collection_ids))

    def get_card(self, card_id: str) -> Optional[Card]:
        index = self._find(self._cards, card_id)
        return copy.deepcopy(self._cards[index]) if index >= 0 else None

    def get_due_cards(
        self,
        collection_id: Optional[str] = None,
        excluded_collection_ids: Optional[Sequence[str]] = None,
    ) -> List[Card]:
        return copy.deepcopy(
            due.get_due_cards(self._cards, collection_id, excluded_collection_ids, self.clock())
        )

    async def add_card(self, draft: Dict[str, Any]) -> Card:
        """
        Create a card with fresh scheduling state.

        Same id policy as ``add_collection``. The owning collection's
        counters are refreshed afterwards.
        """
        card = Card.new(generate_local_id("card"), TextParser.normalize_fields(draft), self.clock())

        if self.use_remote:
            try:
                card = await self.remote.add_card(card)
            except RemoteStoreError as e:
                logger.warning("Remote add of card %r failed, keeping local id: %s", card.front, e)

        self._persist(cards=self._cards + [card])
        await self.update_collection_stats(card.collection_id)
        return copy.deepcopy(card)

    async def update_card(self, card_id: str, updates: Dict[str, Any]) -> Optional[Card]:
        """
        Apply a partial update to a card.

        Changing scheduling fields or moving the card refreshes the counters
        of every affected collection.
        """
        return await self._update_card(card_id, updates)

    async def _update_card(
        self,
        card_id: str,
        updates: Dict[str, Any],
        studied_at: Optional[datetime] = None,
    ) -> Optional[Card]:
        index = self._find(self._cards, card_id)
        if index < 0:
            return None

        updates = TextParser.normalize_fields(updates)
        previous = self._cards[index]
        updated = self._merge(previous, updates, self.clock())
        cards = list(self._cards)
        cards[index] = updated
        self._persist(cards=cards)

        await self._mirror("card", card_id, "update", lambda: self.remote.update_card(card_id, updates))

        affected = []
        if SCHEDULING_FIELDS.intersection(updates) or "collection_id" in updates:
            affected = [previous.collection_id]
            if updated.collection_id != previous.collection_id:
                affected.append(updated.collection_id)
        for collection_id in affected:
            await self.update_collection_stats(collection_id, studied_at=studied_at)

        return copy.deepcopy(updated)

    async def delete_card(self, card_id: str) -> bool:
        index = self._find(self._cards, card_id)
        if index < 0:
            return False

        card = self._cards[index]
        self._persist(cards=[c for c in self._cards if c.id != card_id])

        await self._mirror("card", card_id, "delete", lambda: self.remote.delete_card(card_id))
        await self.update_collection_stats(card.collection_id)
        return True

    async def review_card(self, card_id: str, quality: Any) -> Optional[Card]:
        """
        Grade a card and reschedule it.

        Args:
            card_id: Card to review
            quality: 0=again, 1=hard, 2=good, 3=easy

        Returns:
            Updated card, or None if it does not exist

        Raises:
            InvalidQualityError: For an out-of-range grade (nothing changes)
        """
        grade = coerce_quality(quality)
        card = self.get_card(card_id)
        if card is None:
            return None

        now = self.clock()
        state = review(SchedulingState.of(card), grade, now)
        return await self._update_card(card_id, state.to_updates(), studied_at=now)

    # ==================== Dialogues ====================

    def get_dialogues(self) -> List[Dialogue]:
        return copy.deepcopy(self._dialogues)

    def get_dialogue(self, dialogue_id: str) -> Optional[Dialogue]:
        index = self._find(self._dialogues, dialogue_id)
        return copy.deepcopy(self._dialogues[index]) if index >= 0 else None

    async def add_dialogue(self, draft: Dict[str, Any]) -> Dialogue:
        """Append a generated dialogue to the history. Dialogues are never edited."""
        data = dict(draft)
        data["id"] = generate_local_id("dlg")
        data["created_at"] = self.clock()
        dialogue = Dialogue.from_dict(data)

        if self.use_remote:
            try:
                dialogue = await self.remote.add_dialogue(dialogue)
            except RemoteStoreError as e:
                logger.warning("Remote add of dialogue %r failed, keeping local id: %s", dialogue.title, e)

        self._persist(dialogues=self._dialogues + [dialogue])
        return copy.deepcopy(dialogue)

    # ==================== Statistics ====================

    def get_total_due_cards(self) -> int:
        excluded = self.get_user().settings.excluded_collection_ids
        return len(due.get_due_cards(self._cards, excluded_collection_ids=excluded, now=self.clock()))

    def get_stats(self) -> due.StudyStats:
        return due.get_stats(self.get_user(), self._collections, self._cards, self.clock())
