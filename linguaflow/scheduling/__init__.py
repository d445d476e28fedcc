"""Spaced-repetition scheduling, due queries and study sessions."""

from .due import (
    CollectionStats,
    MasteryBand,
    StudyStats,
    compute_collection_stats,
    get_due_cards,
    group_by_mastery,
    is_due,
    mastery_band,
)
from .scheduler import Quality, SchedulingState, review
from .session import SessionTally, StudySession

__all__ = [
    'CollectionStats',
    'compute_collection_stats',
    'get_due_cards',
    'group_by_mastery',
    'is_due',
    'MasteryBand',
    'mastery_band',
    'Quality',
    'review',
    'SchedulingState',
    'SessionTally',
    'StudySession',
    'StudyStats',
]
