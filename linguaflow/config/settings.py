"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, default))
    except ValueError:
        return default


@dataclass
class Config:
    """Application-wide configuration."""

    # Remote store (Supabase / PostgREST)
    # Store in environment variables or .env file, never in source code.
    SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.environ.get("SUPABASE_ANON_KEY", "")
    SUPABASE_ACCESS_TOKEN: str = os.environ.get("SUPABASE_ACCESS_TOKEN", "")
    USER_ID: str = os.environ.get("LINGUAFLOW_USER_ID", "")
    ALLOW_ANON_REMOTE: bool = _env_bool("LINGUAFLOW_ALLOW_ANON_REMOTE", True)
    REMOTE_TIMEOUT: int = _env_int("REMOTE_TIMEOUT", 15)

    # AI generation (Gemini)
    GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-3-flash-preview")
    GEMINI_BASE_URL: str = os.environ.get(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    GENERATION_TIMEOUT: int = _env_int("GENERATION_TIMEOUT", 60)

    # Cross-platform paths using pathlib
    # BASE_DIR is the project root (parent of linguaflow/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()
    DATA_DIR: str = os.environ.get("LINGUAFLOW_DATA_DIR", str(BASE_DIR / "data"))

    # Local storage backend: json, sqlite or memory
    STORAGE_BACKEND: str = os.environ.get("LINGUAFLOW_STORAGE", "json")

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def remote_configured(cls) -> bool:
        """Remote store is usable only when both URL and anon key are set."""
        return bool(cls.SUPABASE_URL and cls.SUPABASE_ANON_KEY)
