"""Utils module."""

from .helpers import (
    ensure_aware,
    format_timestamp,
    generate_local_id,
    parse_timestamp,
    round_half_up,
    utc_now,
)
from .parsing import TextParser
from .logger import setup_logger

__all__ = [
    'ensure_aware',
    'format_timestamp',
    'generate_local_id',
    'parse_timestamp',
    'round_half_up',
    'utc_now',
    'TextParser',
    'setup_logger',
]
