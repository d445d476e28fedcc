"""Tests for the three record layouts and the field mapping tables."""

from datetime import datetime, timezone

import pytest

from linguaflow.models import Card, Dialogue, UserProfile
from linguaflow.utils import mapping
from linguaflow.utils.helpers import generate_local_id, parse_timestamp, round_half_up


class TestCardLayouts:
    def test_local_layout_is_camel_case(self, make_card):
        record = make_card(example_translation="Hi there").to_local()

        assert record["collectionId"] == "col-1"
        assert record["easeFactor"] == 2.5
        assert record["exampleTranslation"] == "Hi there"
        assert "ease_factor" not in record

    def test_remote_layout_is_snake_case_without_local_only_columns(self, make_card):
        row = make_card(example_reading="ōlá").to_remote()

        assert row["collection_id"] == "col-1"
        assert row["ease_factor"] == 2.5
        assert "example_reading" not in row

    def test_remote_numeric_strings_are_parsed(self):
        card = Card.from_remote({
            "id": "c1",
            "collection_id": "col",
            "front": "a",
            "back": "b",
            "ease_factor": "2.35",
            "interval": "6",
            "next_review": "2024-03-10T12:00:00.123456789+00:00",
        })

        assert card.ease_factor == pytest.approx(2.35)
        assert card.interval == 6
        assert card.next_review == datetime(2024, 3, 10, 12, 0, 0, 123456, tzinfo=timezone.utc)

    def test_missing_scheduling_fields_get_defaults(self):
        card = Card.from_local({"id": "c1", "collectionId": "col", "front": "a", "back": "b"})

        assert (card.interval, card.ease_factor, card.review_count, card.difficulty) == (1, 2.5, 0, 2)


class TestNestedRecords:
    def test_settings_keep_camel_case_remotely(self):
        profile = UserProfile(id="u1")
        profile.settings.excluded_collection_ids.append("col-1")
        row = profile.to_remote()

        assert row["target_language"] == "Spanish"
        assert row["settings"]["excludedCollectionIds"] == ["col-1"]
        assert row["settings"]["darkMode"] is True

    def test_settings_missing_keys_filled(self):
        profile = UserProfile.from_local({"name": "Ana", "settings": {"darkMode": False}})

        assert profile.settings.dark_mode is False
        assert profile.settings.reminder_time == "20:00"
        assert profile.settings.excluded_collection_ids == []

    def test_dialogue_lines_round_trip_through_local_layout(self):
        dialogue = Dialogue.from_local({
            "id": "d1",
            "title": "Café",
            "lines": [{"speaker": "b", "text": "¿Qué desea?", "highlightedWords": ["desea"]}],
        })

        assert dialogue.lines[0].speaker == "B"
        assert dialogue.lines[0].highlighted_words == ["desea"]
        assert dialogue.to_local()["lines"][0]["highlightedWords"] == ["desea"]

    def test_unknown_speaker_rejected(self):
        with pytest.raises(ValueError):
            Dialogue.from_dict({"id": "d1", "title": "x", "lines": [{"speaker": "C", "text": "?"}]})


class TestTables:
    def test_every_table_maps_id(self):
        for table, fields in mapping.TABLE_FIELDS.items():
            assert fields["id"] == ("id", "id"), table

    def test_unknown_keys_dropped(self):
        assert mapping.from_local(mapping.COLLECTION_FIELDS, {"name": "x", "bogus": 1}) == {"name": "x"}


class TestHelpers:
    def test_local_id_format(self):
        prefix, millis, suffix = generate_local_id("card").split("_")

        assert prefix == "card"
        assert millis.isdigit()
        assert len(suffix) == 9

    def test_local_ids_do_not_collide(self):
        assert len({generate_local_id("col") for _ in range(200)}) == 200

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (14.49, 14), (-0.5, -1)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_parse_timestamp(self):
        assert parse_timestamp("2024-03-10T12:00:00Z") == datetime(2024, 3, 10, 12, tzinfo=timezone.utc)
        assert parse_timestamp("2024-03-10T12:00:00").tzinfo is not None
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
