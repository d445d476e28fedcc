"""
Card Scheduler - SM-2 variant review algorithm.

Pure state transition: given a card's scheduling state and a quality grade,
compute the next state. No I/O.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any, Dict, Optional

from ..exceptions import InvalidQualityError
from ..utils.helpers import round_half_up, utc_now

MIN_EASE_FACTOR = 1.3

AGAIN_EASE_PENALTY = 0.20
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

HARD_INTERVAL_MULTIPLIER = 1.2
EASY_INTERVAL_MULTIPLIER = 1.3

GOOD_SECOND_INTERVAL = 6
EASY_FIRST_INTERVAL = 4


class Quality(IntEnum):
    """Four-way review outcome chosen by the learner."""
    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3


@dataclass(frozen=True)
class SchedulingState:
    """The scheduling fields of a card."""

    interval: int
    ease_factor: float
    review_count: int
    next_review: Optional[datetime] = None
    last_review: Optional[datetime] = None

    @classmethod
    def of(cls, card: Any) -> "SchedulingState":
        """Snapshot the scheduling state of any object carrying the fields."""
        return cls(
            interval=card.interval,
            ease_factor=card.ease_factor,
            review_count=card.review_count,
            next_review=getattr(card, "next_review", None),
            last_review=getattr(card, "last_review", None),
        )

    def to_updates(self) -> Dict[str, Any]:
        """Partial-update dict for the persistence layer."""
        return {
            "interval": self.interval,
            "ease_factor": self.ease_factor,
            "review_count": self.review_count,
            "next_review": self.next_review,
            "last_review": self.last_review,
        }


def coerce_quality(quality: Any) -> Quality:
    """
    Validate a quality grade.

    Raises:
        InvalidQualityError: For anything other than 0..3
    """
    if isinstance(quality, bool):
        raise InvalidQualityError(f"Invalid review quality: {quality!r}")
    try:
        return Quality(quality)
    except ValueError:
        raise InvalidQualityError(f"Invalid review quality: {quality!r}") from None


def next_review_after(now: datetime, interval: int) -> datetime:
    """
    ``now`` plus ``interval`` days, clamped to the latest representable
    datetime once the interval runs past year 9999.
    """
    try:
        return now + timedelta(days=interval)
    except OverflowError:
        return datetime.max.replace(tzinfo=now.tzinfo)


def review(state: SchedulingState, quality: Any, now: Optional[datetime] = None) -> SchedulingState:
    """
    Compute the next scheduling state after a review.

    ``next_review`` is ``now`` plus ``interval`` calendar days: for an aware
    ``now`` in a zone with DST the wall-clock time is kept, not shifted by
    a 24h multiple.

    Args:
        state: Current scheduling state
        quality: Grade 0..3 (``Quality`` or int)
        now: Review time (defaults to current UTC time)

    Returns:
        New scheduling state

    Raises:
        InvalidQualityError: If quality is out of range; nothing is changed
    """
    grade = coerce_quality(quality)
    now = now or utc_now()

    interval = state.interval
    ease_factor = state.ease_factor
    review_count = state.review_count

    if grade == Quality.AGAIN:
        interval = 1
        ease_factor = max(MIN_EASE_FACTOR, ease_factor - AGAIN_EASE_PENALTY)
    elif grade == Quality.HARD:
        interval = max(1, round_half_up(interval * HARD_INTERVAL_MULTIPLIER))
        ease_factor = max(MIN_EASE_FACTOR, ease_factor - HARD_EASE_PENALTY)
    elif grade == Quality.GOOD:
        if review_count == 0:
            interval = 1
        elif review_count == 1:
            interval = GOOD_SECOND_INTERVAL
        else:
            interval = round_half_up(interval * ease_factor)
    else:
        if review_count == 0:
            interval = EASY_FIRST_INTERVAL
        else:
            interval = round_half_up(interval * ease_factor * EASY_INTERVAL_MULTIPLIER)
        # No upper clamp on ease
        ease_factor = ease_factor + EASY_EASE_BONUS

    return SchedulingState(
        interval=interval,
        ease_factor=ease_factor,
        review_count=review_count + 1,
        next_review=next_review_after(now, interval),
        last_review=now,
    )
