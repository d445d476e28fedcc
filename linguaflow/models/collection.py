"""Collection model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..utils.helpers import parse_timestamp, utc_now
from ..utils.mapping import COLLECTION_FIELDS
from .base import Record

DEFAULT_EMOJI = "📚"


@dataclass
class Collection(Record):
    """
    A named group of cards.

    ``card_count``, ``mastered`` and ``due_cards`` are a denormalized cache
    recomputed from the member cards after every card mutation.
    """

    FIELDS = COLLECTION_FIELDS

    id: str
    name: str
    emoji: str = DEFAULT_EMOJI
    image: Optional[str] = None

    card_count: int = 0
    mastered: int = 0
    due_cards: int = 0

    last_studied: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(cls, collection_id: str, draft: Dict[str, Any], now: Optional[datetime] = None) -> "Collection":
        data = {
            "card_count": 0,
            "mastered": 0,
            "due_cards": 0,
            "last_studied": None,
            "created_at": now or utc_now(),
        }
        data.update({k: v for k, v in draft.items() if k != "id"})
        data["id"] = collection_id
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Collection":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            emoji=data.get("emoji") or DEFAULT_EMOJI,
            image=data.get("image"),
            card_count=int(data.get("card_count") or 0),
            mastered=int(data.get("mastered") or 0),
            due_cards=int(data.get("due_cards") or 0),
            last_studied=parse_timestamp(data.get("last_studied")),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )
