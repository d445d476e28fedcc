"""Utility functions for ids and timestamps."""

import math
import random
import string
import time
from datetime import datetime, timezone
from typing import Optional, Union

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_local_id(prefix: str) -> str:
    """
    Generate a collision-resistant local id.

    Format is ``<prefix>_<epoch millis>_<9 random chars>``, used when the
    remote store cannot hand out a canonical id.
    """
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{millis}_{suffix}"


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse ISO timestamps as stored locally or returned by the remote store.

    Accepts a trailing ``Z``, more than six fractional digits, and naive
    values (treated as UTC). Unparseable input yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Postgres may return more fractional digits than fromisoformat accepts
        if "." in text and "T" in text:
            head, _, tail = text.partition(".")
            digits = ""
            rest = ""
            for i, ch in enumerate(tail):
                if not ch.isdigit():
                    rest = tail[i:]
                    break
                digits += ch
            text = f"{head}.{digits[:6].ljust(6, '0')}{rest}"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO 8601, keeping None as None."""
    if value is None:
        return None
    return value.isoformat()


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with stored timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)
