"""
Due-Set Query - which cards are due, and aggregate study statistics.

All functions are pure over the card/collection lists they receive.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..models import Card, Collection, UserProfile
from ..utils.helpers import ensure_aware, round_half_up, utc_now

MASTERED_EASE_FACTOR = 2.5
LEARNING_EASE_FACTOR = 2.0


class MasteryBand(Enum):
    """UI grouping of cards by ease factor."""
    HIGH = "high"      # mastered
    MEDIUM = "medium"  # learning
    LOW = "low"        # new / struggling


@dataclass(frozen=True)
class CollectionStats:
    """Recomputed denormalized counters of one collection."""

    card_count: int
    mastered: int
    due_cards: int

    def to_updates(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class StudyStats:
    """Summary shown on the home and settings screens."""

    streak: int
    total_cards_learned: int
    total_collections: int
    total_cards: int
    total_mastered: int
    total_due: int
    mastery_percent: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_due(card: Card, now: Optional[datetime] = None) -> bool:
    """A card is due when it was never scheduled or its review time has come."""
    if card.next_review is None:
        return True
    now = ensure_aware(now or utc_now())
    return ensure_aware(card.next_review) <= now


def is_mastered(card: Card) -> bool:
    return card.ease_factor >= MASTERED_EASE_FACTOR


def mastery_band(card: Card) -> MasteryBand:
    if card.ease_factor >= MASTERED_EASE_FACTOR:
        return MasteryBand.HIGH
    if card.ease_factor >= LEARNING_EASE_FACTOR:
        return MasteryBand.MEDIUM
    return MasteryBand.LOW


def group_by_mastery(cards: Iterable[Card]) -> Dict[MasteryBand, List[Card]]:
    groups: Dict[MasteryBand, List[Card]] = {band: [] for band in MasteryBand}
    for card in cards:
        groups[mastery_band(card)].append(card)
    return groups


def filter_cards(
    cards: Iterable[Card],
    collection_id: Optional[str] = None,
    excluded_collection_ids: Optional[Sequence[str]] = None,
) -> List[Card]:
    """
    Scope a card list.

    A collection id selects exactly that collection and ignores the
    exclusion list; otherwise cards of excluded collections are removed.
    """
    if collection_id:
        return [c for c in cards if c.collection_id == collection_id]

    excluded = set(excluded_collection_ids or ())
    if not excluded:
        return list(cards)
    return [c for c in cards if c.collection_id not in excluded]


def get_due_cards(
    cards: Iterable[Card],
    collection_id: Optional[str] = None,
    excluded_collection_ids: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> List[Card]:
    """Due cards within the given scope, in stored order."""
    now = now or utc_now()
    due = [c for c in cards if is_due(c, now)]
    return filter_cards(due, collection_id, excluded_collection_ids)


def compute_collection_stats(cards: Sequence[Card], now: Optional[datetime] = None) -> CollectionStats:
    """
    Recompute a collection's counters from its member cards.

    Args:
        cards: Every card of the collection
        now: Reference time for the due count

    Returns:
        Fresh counters
    """
    now = now or utc_now()
    return CollectionStats(
        card_count=len(cards),
        mastered=sum(1 for c in cards if is_mastered(c)),
        due_cards=sum(1 for c in cards if is_due(c, now)),
    )


def get_stats(
    user: UserProfile,
    collections: Sequence[Collection],
    all_cards: Sequence[Card],
    now: Optional[datetime] = None,
) -> StudyStats:
    """
    Aggregate statistics across collections.

    Mastery is summed from the collection counters; the due total is counted
    from the cards themselves, skipping excluded collections.
    """
    total_mastered = sum(c.mastered or 0 for c in collections)
    total_cards = sum(c.card_count or 0 for c in collections)
    mastery_percent = round_half_up(100 * total_mastered / total_cards) if total_cards > 0 else 0

    excluded = user.settings.excluded_collection_ids
    total_due = len(get_due_cards(all_cards, excluded_collection_ids=excluded, now=now))

    return StudyStats(
        streak=user.streak or 0,
        total_cards_learned=user.total_cards_learned or 0,
        total_collections=len(collections),
        total_cards=total_cards,
        total_mastered=total_mastered,
        total_due=total_due,
        mastery_percent=mastery_percent,
    )
