"""
Study Session - the review queue the study screen walks through.
"""

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..models import Card
from ..utils.helpers import round_half_up
from .scheduler import Quality, coerce_quality

if TYPE_CHECKING:
    from ..services.data_store import DataStore

logger = logging.getLogger(__name__)


@dataclass
class SessionTally:
    """Per-session answer counts."""

    reviewed: int = 0
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0

    @property
    def accuracy(self) -> int:
        """Percentage of answers graded good or easy."""
        if self.reviewed == 0:
            return 0
        return round_half_up((self.good + self.easy) / self.reviewed * 100)

    def record(self, quality: Quality) -> None:
        self.reviewed += 1
        name = quality.name.lower()
        setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["accuracy"] = self.accuracy
        return data


class StudySession:
    """
    Ordered queue of cards for one study run.

    The queue holds the due cards of the scope (one collection, or every
    collection not excluded by the learner). When nothing is due and the
    session is collection-scoped or ``study_all`` is set, every card in the
    scope is queued instead for free practice.

    Usage:
        session = StudySession(store, collection_id=col.id)
        while not session.is_finished:
            await session.answer(Quality.GOOD)
    """

    def __init__(
        self,
        store: "DataStore",
        collection_id: Optional[str] = None,
        study_all: bool = False,
    ):
        self.store = store
        self.collection_id = collection_id
        self.study_all = study_all
        self.tally = SessionTally()
        self.position = 0
        self.practice_mode = False
        self.cards: List[Card] = self._build_queue()

    def _build_queue(self) -> List[Card]:
        excluded = self.store.get_user().settings.excluded_collection_ids
        cards = self.store.get_due_cards(self.collection_id, excluded)
        if not cards and (self.study_all or self.collection_id):
            cards = self.store.get_cards(self.collection_id, excluded)
            self.practice_mode = bool(cards)
        logger.debug(
            "Study session for %s: %d cards%s",
            self.collection_id or "all collections",
            len(cards),
            " (practice)" if self.practice_mode else "",
        )
        return cards

    def restart(self) -> None:
        """Rebuild the queue from the current data and clear the tally."""
        self.tally = SessionTally()
        self.position = 0
        self.practice_mode = False
        self.cards = self._build_queue()

    @property
    def total(self) -> int:
        return len(self.cards)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.position)

    @property
    def is_finished(self) -> bool:
        return self.position >= self.total

    @property
    def current(self) -> Optional[Card]:
        if self.is_finished:
            return None
        return self.cards[self.position]

    @property
    def progress(self) -> float:
        """Fraction of the queue answered, 0.0 to 1.0."""
        if not self.cards:
            return 1.0
        return self.position / self.total

    async def answer(self, quality: Any) -> Optional[Card]:
        """
        Grade the current card and advance.

        Args:
            quality: 0=again, 1=hard, 2=good, 3=easy

        Returns:
            The rescheduled card, or None if the session is finished or the
            card no longer exists

        Raises:
            InvalidQualityError: For an out-of-range grade; the session does
                not advance
        """
        grade = coerce_quality(quality)
        card = self.current
        if card is None:
            return None

        updated = await self.store.review_card(card.id, grade)
        self.tally.record(grade)
        self.position += 1
        return updated

    def skip(self) -> None:
        """Move past the current card without grading it."""
        if not self.is_finished:
            self.position += 1
