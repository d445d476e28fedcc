"""Flashcard model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.helpers import parse_timestamp, utc_now
from ..utils.mapping import CARD_FIELDS
from .base import Record

DEFAULT_INTERVAL = 1
DEFAULT_EASE_FACTOR = 2.5
DEFAULT_DIFFICULTY = 2

# Attributes owned by the scheduler; changing any of them invalidates
# the owning collection's counters.
SCHEDULING_FIELDS = frozenset({
    "interval", "ease_factor", "review_count", "next_review", "last_review",
})


@dataclass
class Card(Record):
    """One flashcard with its spaced-repetition scheduling state."""

    FIELDS = CARD_FIELDS

    id: str
    collection_id: Optional[str]
    front: str
    back: str

    # Reading guides and context
    reading: str = ""
    example: str = ""
    example_translation: str = ""
    example_reading: str = ""

    # Media references
    image: Optional[str] = None
    audio: Optional[str] = None

    questions: List[Any] = field(default_factory=list)
    difficulty: int = DEFAULT_DIFFICULTY

    # Scheduling state
    interval: int = DEFAULT_INTERVAL
    ease_factor: float = DEFAULT_EASE_FACTOR
    review_count: int = 0
    next_review: Optional[datetime] = None
    last_review: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(cls, card_id: str, draft: Dict[str, Any], now: Optional[datetime] = None) -> "Card":
        """
        Build a freshly created card from a draft.

        New cards start at interval 1, ease 2.5, no reviews and are due now.
        Draft values win over these defaults, as when importing a card that
        already carries scheduling state.
        """
        now = now or utc_now()
        data = {
            "interval": DEFAULT_INTERVAL,
            "ease_factor": DEFAULT_EASE_FACTOR,
            "review_count": 0,
            "next_review": now,
            "last_review": None,
            "created_at": now,
        }
        data.update({k: v for k, v in draft.items() if k != "id"})
        data["id"] = card_id
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        """Build a card, normalizing missing or stringly-typed scheduling fields."""
        interval = data.get("interval")
        ease_factor = data.get("ease_factor")
        review_count = data.get("review_count")
        difficulty = data.get("difficulty")
        questions = data.get("questions")

        return cls(
            id=str(data.get("id") or ""),
            collection_id=data.get("collection_id"),
            front=data.get("front") or "",
            back=data.get("back") or "",
            reading=data.get("reading") or "",
            example=data.get("example") or "",
            example_translation=data.get("example_translation") or "",
            example_reading=data.get("example_reading") or "",
            image=data.get("image"),
            audio=data.get("audio"),
            questions=list(questions) if isinstance(questions, list) else [],
            difficulty=DEFAULT_DIFFICULTY if difficulty is None else int(difficulty),
            interval=DEFAULT_INTERVAL if interval is None else int(interval),
            # Remote numeric columns come back as strings
            ease_factor=DEFAULT_EASE_FACTOR if ease_factor is None else float(ease_factor),
            review_count=0 if review_count is None else int(review_count),
            next_review=parse_timestamp(data.get("next_review")),
            last_review=parse_timestamp(data.get("last_review")),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )
