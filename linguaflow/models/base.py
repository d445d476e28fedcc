"""Serialization shared by all entity dataclasses."""

from dataclasses import fields, is_dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict

from ..utils import mapping
from ..utils.mapping import FieldTable


def to_plain(value: Any) -> Any:
    """Convert datetimes and nested records to JSON-ready values."""
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return value.to_dict()
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    return value


class Record:
    """
    Mixin for entity dataclasses.

    ``to_dict``/``from_dict`` work on attribute names; the ``local`` and
    ``remote`` variants go through the field mapping tables.
    """

    FIELDS: ClassVar[FieldTable] = {}

    def to_dict(self) -> Dict[str, Any]:
        """Attribute-keyed dict with timestamps as ISO strings."""
        return {f.name: to_plain(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        raise NotImplementedError

    def to_local(self) -> Dict[str, Any]:
        return mapping.to_local(self.FIELDS, self.to_dict())

    @classmethod
    def from_local(cls, record: Dict[str, Any]):
        return cls.from_dict(mapping.from_local(cls.FIELDS, record))

    def to_remote(self) -> Dict[str, Any]:
        return mapping.to_remote(self.FIELDS, self.to_dict())

    @classmethod
    def from_remote(cls, row: Dict[str, Any]):
        return cls.from_dict(mapping.from_remote(cls.FIELDS, row))
