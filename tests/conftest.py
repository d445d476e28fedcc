"""Shared fixtures: in-memory storage, a fake remote store and a fixed clock."""

import asyncio
import dataclasses
import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from linguaflow.exceptions import RemoteStoreError
from linguaflow.models import Card, Collection, Dialogue, UserProfile
from linguaflow.services.data_store import DataStore
from linguaflow.services.remote import RemoteStore
from linguaflow.services.storage import MemoryStorage

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeRemoteStore(RemoteStore):
    """
    In-memory RemoteStore.

    Assigns ``remote-<n>`` ids, records every call in ``calls`` and raises
    ``RemoteStoreError`` from every method while ``failing`` is set (or only
    from the methods listed in ``failing_methods``).
    """

    def __init__(self, user_id: Optional[str] = "user-1"):
        self._user_id = user_id
        self.profile: Optional[UserProfile] = None
        self.collections: Dict[str, Collection] = {}
        self.cards: Dict[str, Card] = {}
        self.dialogues: Dict[str, Dialogue] = {}
        self.calls: List[tuple] = []
        self.failing = False
        self.failing_methods: set = set()
        self.closed = False
        self._ids = itertools.count(1)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method,) + args)
        if self.failing or method in self.failing_methods:
            raise RemoteStoreError(f"{method} unavailable", status=503)

    def _next_id(self) -> str:
        return f"remote-{next(self._ids)}"

    def called(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    async def get_profile(self):
        self._record("get_profile")
        return self.profile

    async def update_profile(self, updates):
        self._record("update_profile", updates)
        base = self.profile.to_dict() if self.profile else {"id": self.user_id}
        base.update({k: v.to_dict() if hasattr(v, "to_dict") else v for k, v in updates.items()})
        self.profile = UserProfile.from_dict(base)
        return self.profile

    async def get_collections(self):
        self._record("get_collections")
        return list(self.collections.values())

    async def add_collection(self, collection):
        self._record("add_collection", collection)
        created = dataclasses.replace(collection, id=self._next_id())
        self.collections[created.id] = created
        return created

    async def update_collection(self, collection_id, updates):
        self._record("update_collection", collection_id, updates)
        if collection_id not in self.collections:
            return None
        data = self.collections[collection_id].to_dict()
        data.update(updates)
        self.collections[collection_id] = Collection.from_dict(data)
        return self.collections[collection_id]

    async def delete_collection(self, collection_id):
        self._record("delete_collection", collection_id)
        self.collections.pop(collection_id, None)
        self.cards = {k: c for k, c in self.cards.items() if c.collection_id != collection_id}
        return True

    async def get_cards(self, collection_id=None):
        self._record("get_cards", collection_id)
        return [c for c in self.cards.values() if collection_id is None or c.collection_id == collection_id]

    async def add_card(self, card):
        self._record("add_card", card)
        created = dataclasses.replace(card, id=self._next_id())
        self.cards[created.id] = created
        return created

    async def update_card(self, card_id, updates):
        self._record("update_card", card_id, updates)
        if card_id not in self.cards:
            return None
        data = self.cards[card_id].to_dict()
        data.update(updates)
        self.cards[card_id] = Card.from_dict(data)
        return self.cards[card_id]

    async def delete_card(self, card_id):
        self._record("delete_card", card_id)
        self.cards.pop(card_id, None)
        return True

    async def get_dialogues(self):
        self._record("get_dialogues")
        return list(self.dialogues.values())

    async def add_dialogue(self, dialogue):
        self._record("add_dialogue", dialogue)
        created = dataclasses.replace(dialogue, id=self._next_id())
        self.dialogues[created.id] = created
        return created

    async def close(self):
        self.closed = True


class FixedClock:
    """Settable clock injected into DataStore."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def make_card():
    def _make(card_id="card-1", collection_id="col-1", **overrides):
        data = {
            "id": card_id,
            "collection_id": collection_id,
            "front": "hola",
            "back": "hello",
            "interval": 1,
            "ease_factor": 2.5,
            "review_count": 0,
            "next_review": None,
        }
        data.update(overrides)
        return Card.from_dict(data)
    return _make


@pytest.fixture
def local_store(storage, clock):
    """Initialized local-only DataStore."""
    store = DataStore(storage, clock=clock)
    asyncio.run(store.init())
    return store
