"""Tests for SupabaseRestStore request building and row translation."""

import asyncio
from datetime import datetime, timezone

import pytest

from linguaflow.config import Config
from linguaflow.exceptions import RemoteStoreError
from linguaflow.models import Card, Collection
from linguaflow.services.remote import SupabaseRestStore
from linguaflow.services.storage import KEY_ANON_USER_ID, MemoryStorage

run = asyncio.run


class RecordingRequest:
    """Stand-in for ``_request`` returning queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, method, table, params=None, payload=None, headers=None):
        self.calls.append({
            "method": method,
            "table": table,
            "params": params or {},
            "payload": payload,
            "headers": headers,
        })
        return self.responses.pop(0) if self.responses else []


@pytest.fixture
def rest():
    return SupabaseRestStore("https://demo.supabase.co/", "anon-key", "user-1")


class TestReads:
    def test_get_cards_scoped_and_parsed(self, rest, monkeypatch):
        request = RecordingRequest([{
            "id": "c1",
            "user_id": "user-1",
            "collection_id": "col-1",
            "front": "hola",
            "back": "hello",
            "ease_factor": "2.36",
            "review_count": 3,
            "next_review": "2024-03-10T12:00:00Z",
        }])
        monkeypatch.setattr(rest, "_request", request)

        cards = run(rest.get_cards("col-1"))

        call = request.calls[0]
        assert (call["method"], call["table"]) == ("GET", "cards")
        assert call["params"]["user_id"] == "eq.user-1"
        assert call["params"]["collection_id"] == "eq.col-1"
        assert call["params"]["order"] == "created_at.desc"
        assert cards[0].ease_factor == pytest.approx(2.36)
        assert cards[0].next_review == datetime(2024, 3, 10, 12, tzinfo=timezone.utc)

    def test_missing_profile_is_none(self, rest, monkeypatch):
        monkeypatch.setattr(rest, "_request", RecordingRequest([]))
        assert run(rest.get_profile()) is None


class TestWrites:
    def test_add_card_payload(self, rest, monkeypatch):
        request = RecordingRequest([{"id": "uuid-9", "collection_id": "col-1", "front": "你好", "back": "hello"}])
        monkeypatch.setattr(rest, "_request", request)
        card = Card.from_dict({
            "id": "card_1_abc",
            "collection_id": "col-1",
            "front": "你好",
            "back": "hello",
            "example_reading": "nǐ hǎo",
            "created_at": "2024-03-10T12:00:00+00:00",
        })

        created = run(rest.add_card(card))

        payload = request.calls[0]["payload"]
        assert "id" not in payload
        assert "updated_at" not in payload
        assert "example_reading" not in payload
        assert payload["user_id"] == "user-1"
        assert payload["collection_id"] == "col-1"
        assert created.id == "uuid-9"
        assert created.example_reading == "nǐ hǎo"

    def test_add_without_returned_row_raises(self, rest, monkeypatch):
        monkeypatch.setattr(rest, "_request", RecordingRequest([]))
        with pytest.raises(RemoteStoreError):
            run(rest.add_collection(Collection(id="col_1", name="Food")))

    def test_update_payload_uses_columns(self, rest, monkeypatch):
        request = RecordingRequest([])
        monkeypatch.setattr(rest, "_request", request)
        when = datetime(2024, 3, 11, tzinfo=timezone.utc)

        run(rest.update_card("c1", {"ease_factor": 2.6, "next_review": when}))

        call = request.calls[0]
        assert call["method"] == "PATCH"
        assert call["params"]["id"] == "eq.c1"
        assert call["payload"]["ease_factor"] == 2.6
        assert call["payload"]["next_review"] == when.isoformat()
        assert "updated_at" in call["payload"]

    def test_delete_collection_removes_cards_first(self, rest, monkeypatch):
        request = RecordingRequest()
        monkeypatch.setattr(rest, "_request", request)

        run(rest.delete_collection("col-1"))

        assert [(c["method"], c["table"]) for c in request.calls] == [
            ("DELETE", "cards"), ("DELETE", "collections"),
        ]
        assert request.calls[0]["params"]["collection_id"] == "eq.col-1"

    def test_update_profile_is_an_upsert(self, rest, monkeypatch):
        request = RecordingRequest([{"id": "user-1", "target_language": "Chinese", "settings": {"darkMode": False}}])
        monkeypatch.setattr(rest, "_request", request)

        profile = run(rest.update_profile({"target_language": "Chinese"}))

        call = request.calls[0]
        assert call["method"] == "POST"
        assert call["params"] == {"on_conflict": "id"}
        assert call["payload"]["id"] == "user-1"
        assert "merge-duplicates" in call["headers"]["Prefer"]
        assert profile.target_language == "Chinese"
        assert profile.settings.dark_mode is False


class TestAuthAndConfig:
    def test_unauthenticated_requests_fail_fast(self):
        store = SupabaseRestStore("https://demo.supabase.co", "anon-key", None)

        assert not store.is_authenticated()
        with pytest.raises(RemoteStoreError):
            run(store.get_collections())

    def test_from_config_requires_url_and_key(self, monkeypatch):
        monkeypatch.setattr(Config, "SUPABASE_URL", "")
        monkeypatch.setattr(Config, "SUPABASE_ANON_KEY", "anon")

        assert SupabaseRestStore.from_config(MemoryStorage()) is None

    def test_anonymous_user_id_is_persisted(self, monkeypatch):
        monkeypatch.setattr(Config, "SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setattr(Config, "SUPABASE_ANON_KEY", "anon")
        monkeypatch.setattr(Config, "USER_ID", "")
        monkeypatch.setattr(Config, "ALLOW_ANON_REMOTE", True)
        storage = MemoryStorage()

        first = SupabaseRestStore.from_config(storage)
        second = SupabaseRestStore.from_config(storage)

        assert first.user_id
        assert first.user_id == second.user_id == storage.get_item(KEY_ANON_USER_ID)
        assert first.base_url == "https://demo.supabase.co/rest/v1"

    def test_configured_user_id_wins(self, monkeypatch):
        monkeypatch.setattr(Config, "SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setattr(Config, "SUPABASE_ANON_KEY", "anon")
        monkeypatch.setattr(Config, "USER_ID", "fixed-user")

        assert SupabaseRestStore.from_config(MemoryStorage()).user_id == "fixed-user"
