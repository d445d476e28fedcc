"""Tests for the study session queue."""

import asyncio

import pytest

from linguaflow.exceptions import InvalidQualityError
from linguaflow.scheduling import Quality, StudySession

run = asyncio.run


@pytest.fixture
def deck(local_store):
    """Two collections with two cards each."""
    ids = {}
    for name in ("Food", "Travel"):
        collection = run(local_store.add_collection({"name": name}))
        ids[name] = collection.id
        for word in ("uno", "dos"):
            run(local_store.add_card({"collection_id": collection.id, "front": f"{name}-{word}", "back": word}))
    return ids


class TestQueue:
    def test_queue_holds_due_cards(self, local_store, deck):
        session = StudySession(local_store)

        assert session.total == 4
        assert not session.practice_mode
        assert session.current.front == "Food-uno"

    def test_excluded_collections_left_out(self, local_store, deck):
        run(local_store.toggle_collection_exclusion(deck["Travel"]))
        session = StudySession(local_store)

        assert {c.collection_id for c in session.cards} == {deck["Food"]}

    def test_collection_scope_falls_back_to_practice(self, local_store, deck):
        for card in local_store.get_cards(deck["Food"]):
            run(local_store.review_card(card.id, Quality.EASY))

        session = StudySession(local_store, collection_id=deck["Food"])

        assert session.practice_mode
        assert session.total == 2

    def test_global_scope_without_study_all_is_empty(self, local_store, deck):
        for card in local_store.get_cards():
            run(local_store.review_card(card.id, Quality.GOOD))

        assert StudySession(local_store).total == 0
        assert StudySession(local_store, study_all=True).total == 4


class TestAnswer:
    def test_answers_are_tallied(self, local_store, deck):
        session = StudySession(local_store, collection_id=deck["Food"])

        first = run(session.answer(Quality.AGAIN))
        run(session.answer(3))

        assert first.review_count == 1
        assert session.is_finished
        assert session.current is None
        assert session.tally.to_dict() == {
            "reviewed": 2, "again": 1, "hard": 0, "good": 0, "easy": 1, "accuracy": 50,
        }
        assert run(session.answer(Quality.GOOD)) is None

    def test_invalid_grade_does_not_advance(self, local_store, deck):
        session = StudySession(local_store)

        with pytest.raises(InvalidQualityError):
            run(session.answer(9))
        assert session.position == 0
        assert session.tally.reviewed == 0

    def test_skip_and_restart(self, local_store, deck):
        session = StudySession(local_store)
        session.skip()
        assert session.remaining == 3

        session.restart()
        assert session.position == 0
        assert session.progress == 0.0
