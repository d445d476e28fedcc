"""Data models for LinguaFlow."""

from .base import Record, to_plain
from .card import Card, SCHEDULING_FIELDS
from .collection import Collection
from .dialogue import Dialogue, DialogueLine
from .profile import UserProfile, UserSettings

__all__ = [
    'Card',
    'Collection',
    'Dialogue',
    'DialogueLine',
    'Record',
    'SCHEDULING_FIELDS',
    'to_plain',
    'UserProfile',
    'UserSettings',
]
