"""Text parsing utilities for consistent text processing across the application."""

import json
import re
import unicodedata
from typing import Any, Dict


class TextParser:
    """
    Centralized text parsing utilities.

    Single source of truth for Unicode normalization of user/AI text and for
    extracting JSON payloads from model responses.
    """

    # Markdown code fences around model output (```json ... ```)
    CODE_FENCE_PATTERN = re.compile(r'```(?:json)?\s*\n?|\n?\s*```')

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """
        Normalize text to NFC form for consistent Unicode handling.

        Prevents issues with characters like é being represented as
        either a single codepoint (NFC) or base + combining accent (NFD),
        and with pinyin tone marks typed on different keyboards.

        Args:
            text: Input text

        Returns:
            NFC-normalized text
        """
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def normalize_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with every string value NFC-normalized."""
        return {
            k: cls.normalize_unicode(v) if isinstance(v, str) else v
            for k, v in data.items()
        }

    @classmethod
    def strip_code_fences(cls, text: str) -> str:
        """Remove Markdown code fences a model may wrap around JSON."""
        if not text:
            return ""
        return cls.CODE_FENCE_PATTERN.sub('', str(text)).strip()

    @classmethod
    def parse_json(cls, text: str) -> Any:
        """
        Parse a JSON payload from raw model output.

        Args:
            text: Raw response text, possibly fenced

        Returns:
            Decoded JSON value

        Raises:
            ValueError: If no valid JSON can be decoded
        """
        cleaned = cls.strip_code_fences(text)
        if not cleaned:
            raise ValueError("empty response")
        return json.loads(cleaned)
