"""Generated practice dialogue models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.helpers import parse_timestamp
from ..utils.mapping import DIALOGUE_FIELDS
from .base import Record

SPEAKERS = ("A", "B")


@dataclass
class DialogueLine:
    """One turn of a dialogue. Speaker A is the learner, B the native speaker."""

    speaker: str
    text: str
    translation: str = ""
    highlighted_words: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speaker": self.speaker,
            "text": self.text,
            "translation": self.translation,
            "highlighted_words": list(self.highlighted_words),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DialogueLine":
        speaker = str(data.get("speaker") or "A").strip().upper()
        if speaker not in SPEAKERS:
            raise ValueError(f"Unknown speaker tag: {speaker!r}")
        words = data.get("highlighted_words") or []
        return cls(
            speaker=speaker,
            text=data.get("text") or "",
            translation=data.get("translation") or "",
            highlighted_words=[str(w) for w in words],
        )


@dataclass
class Dialogue(Record):
    """An immutable generated conversation, kept in the history list."""

    FIELDS = DIALOGUE_FIELDS

    id: str
    title: str
    setting: str = ""
    duration: Optional[float] = None
    lines: List[DialogueLine] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dialogue":
        lines = [
            line if isinstance(line, DialogueLine) else DialogueLine.from_dict(line)
            for line in data.get("lines") or []
        ]
        duration = data.get("duration")
        return cls(
            id=str(data.get("id") or ""),
            title=data.get("title") or "",
            setting=data.get("setting") or "",
            duration=float(duration) if duration is not None else None,
            lines=lines,
            created_at=parse_timestamp(data.get("created_at")),
        )
