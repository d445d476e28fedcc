"""
Field mapping tables between the three record layouts.

- attribute names: snake_case dataclass fields used inside the library
- local keys: camelCase JSON written to durable local storage
- remote columns: snake_case columns of the remote tables

Nested JSON values (profile settings, dialogue lines) keep camelCase keys
both locally and remotely.
"""

from typing import Any, Dict, Optional, Tuple

FieldTable = Dict[str, Tuple[str, Optional[str]]]

# attribute: (local key, remote column); None column = not stored remotely
PROFILE_FIELDS: FieldTable = {
    "id": ("id", "id"),
    "name": ("name", "name"),
    "level": ("level", "level"),
    "target_language": ("targetLanguage", "target_language"),
    "native_language": ("nativeLanguage", "native_language"),
    "streak": ("streak", "streak"),
    "total_cards_learned": ("totalCardsLearned", "total_cards_learned"),
    "daily_goal": ("dailyGoal", "daily_goal"),
    "settings": ("settings", "settings"),
    "onboarded": ("onboarded", "onboarded"),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}

COLLECTION_FIELDS: FieldTable = {
    "id": ("id", "id"),
    "name": ("name", "name"),
    "emoji": ("emoji", "emoji"),
    "image": ("image", "image"),
    "card_count": ("cardCount", "card_count"),
    "mastered": ("mastered", "mastered"),
    "due_cards": ("dueCards", "due_cards"),
    "last_studied": ("lastStudied", "last_studied"),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}

CARD_FIELDS: FieldTable = {
    "id": ("id", "id"),
    "collection_id": ("collectionId", "collection_id"),
    "front": ("front", "front"),
    "back": ("back", "back"),
    "reading": ("reading", "reading"),
    "example": ("example", "example"),
    "example_translation": ("exampleTranslation", "example_translation"),
    "example_reading": ("exampleReading", None),
    "image": ("image", "image"),
    "audio": ("audio", "audio"),
    "questions": ("questions", "questions"),
    "difficulty": ("difficulty", "difficulty"),
    "interval": ("interval", "interval"),
    "ease_factor": ("easeFactor", "ease_factor"),
    "review_count": ("reviewCount", "review_count"),
    "next_review": ("nextReview", "next_review"),
    "last_review": ("lastReview", "last_review"),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
}

DIALOGUE_FIELDS: FieldTable = {
    "id": ("id", "id"),
    "title": ("title", "title"),
    "setting": ("setting", "setting"),
    "duration": ("duration", "duration"),
    "lines": ("lines", "lines"),
    "created_at": ("createdAt", "created_at"),
}

# Nested JSON tables: attribute -> key
SETTINGS_KEYS: Dict[str, str] = {
    "dark_mode": "darkMode",
    "audio_autoplay": "audioAutoplay",
    "haptic_feedback": "hapticFeedback",
    "reminder_time": "reminderTime",
    "streak_freeze_alerts": "streakFreezeAlerts",
    "notifications": "notifications",
    "excluded_collection_ids": "excludedCollectionIds",
}

DIALOGUE_LINE_KEYS: Dict[str, str] = {
    "speaker": "speaker",
    "text": "text",
    "translation": "translation",
    "highlighted_words": "highlightedWords",
}

NESTED_KEYS: Dict[str, Dict[str, str]] = {
    "settings": SETTINGS_KEYS,
    "lines": DIALOGUE_LINE_KEYS,
}

TABLE_FIELDS: Dict[str, FieldTable] = {
    "profiles": PROFILE_FIELDS,
    "collections": COLLECTION_FIELDS,
    "cards": CARD_FIELDS,
    "dialogues": DIALOGUE_FIELDS,
}


def _rename(data: Dict[str, Any], keys: Dict[str, str]) -> Dict[str, Any]:
    return {keys[k]: v for k, v in data.items() if k in keys}


def _nested_out(attr: str, value: Any) -> Any:
    """Convert a nested attribute-keyed value to its camelCase JSON layout."""
    keys = NESTED_KEYS.get(attr)
    if keys is None or value is None:
        return value
    if isinstance(value, list):
        return [_rename(item, keys) if isinstance(item, dict) else item for item in value]
    if isinstance(value, dict):
        return _rename(value, keys)
    return value


def _nested_in(attr: str, value: Any) -> Any:
    """Convert a nested camelCase JSON value back to attribute keys."""
    keys = NESTED_KEYS.get(attr)
    if keys is None or value is None:
        return value
    reverse = {v: k for k, v in keys.items()}
    if isinstance(value, list):
        return [_rename(item, reverse) if isinstance(item, dict) else item for item in value]
    if isinstance(value, dict):
        return _rename(value, reverse)
    return value


def to_local(fields: FieldTable, data: Dict[str, Any]) -> Dict[str, Any]:
    """Attribute-keyed dict -> camelCase local record."""
    return {
        fields[attr][0]: _nested_out(attr, value)
        for attr, value in data.items()
        if attr in fields
    }


def from_local(fields: FieldTable, record: Dict[str, Any]) -> Dict[str, Any]:
    """camelCase local record -> attribute-keyed dict (unknown keys dropped)."""
    reverse = {local: attr for attr, (local, _) in fields.items()}
    return {
        reverse[key]: _nested_in(reverse[key], value)
        for key, value in record.items()
        if key in reverse
    }


def to_remote(fields: FieldTable, data: Dict[str, Any]) -> Dict[str, Any]:
    """Attribute-keyed dict -> remote row; attributes without a column are skipped."""
    row = {}
    for attr, value in data.items():
        if attr not in fields or fields[attr][1] is None:
            continue
        row[fields[attr][1]] = _nested_out(attr, value)
    return row


def from_remote(fields: FieldTable, row: Dict[str, Any]) -> Dict[str, Any]:
    """Remote row -> attribute-keyed dict (unknown columns dropped)."""
    reverse = {column: attr for attr, (_, column) in fields.items() if column}
    return {
        reverse[column]: _nested_in(reverse[column], value)
        for column, value in row.items()
        if column in reverse
    }
