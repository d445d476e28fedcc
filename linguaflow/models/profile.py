"""User profile and settings models."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.helpers import parse_timestamp
from ..utils.mapping import PROFILE_FIELDS
from .base import Record


@dataclass
class UserSettings:
    """Per-user preferences stored as a JSON sub-record of the profile."""

    dark_mode: bool = True
    audio_autoplay: bool = False
    haptic_feedback: bool = True
    reminder_time: str = "20:00"
    streak_freeze_alerts: bool = True
    notifications: bool = True
    excluded_collection_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            f.name: list(getattr(self, f.name)) if f.name == "excluded_collection_ids" else getattr(self, f.name)
            for f in fields(self)
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserSettings":
        """Build settings, filling any missing key with its default."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known and v is not None}
        if "excluded_collection_ids" in values:
            values["excluded_collection_ids"] = list(values["excluded_collection_ids"])
        return cls(**values)


@dataclass
class UserProfile(Record):
    """The single learner profile of an installation or account."""

    FIELDS = PROFILE_FIELDS

    id: Optional[str] = None
    name: str = "Learner"
    level: int = 1
    target_language: str = "Spanish"
    native_language: str = "English"
    streak: int = 0
    total_cards_learned: int = 0
    daily_goal: int = 20
    settings: UserSettings = field(default_factory=UserSettings)
    onboarded: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        defaults = cls()
        return cls(
            id=data.get("id"),
            name=data.get("name") or defaults.name,
            level=int(data.get("level") or defaults.level),
            target_language=data.get("target_language") or defaults.target_language,
            native_language=data.get("native_language") or defaults.native_language,
            streak=int(data.get("streak") or 0),
            total_cards_learned=int(data.get("total_cards_learned") or 0),
            daily_goal=int(data.get("daily_goal") or defaults.daily_goal),
            settings=UserSettings.from_dict(data.get("settings")),
            onboarded=bool(data.get("onboarded", False)),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )
