"""Environment-backed runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_ENV_FILE = _PROJECT_ROOT / ".env"


def _parse_optional_int(name: str, raw_value: str | None) -> Optional[int]:
    """Parse optional integer env values such as the generation max_tokens override."""
    if raw_value is None:
        return None
    value = raw_value.strip()
    if value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer when set") from exc


def _parse_int(name: str, raw_value: str | None, default: int) -> int:
    parsed = _parse_optional_int(name, raw_value)
    if parsed is None:
        return default
    if parsed < 0:
        raise ValueError(f"{name} must not be negative")
    return parsed


def _parse_float(name: str, raw_value: str | None, default: float) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        return float(raw_value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number when set") from exc


def _load_env_file(path: Path) -> None:
    """Populate process env vars from .env when present."""
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'\"")
        if key:
            os.environ.setdefault(key, value)


@dataclass(frozen=True)
class Settings:
    OPENAI_API_KEY: str = ""
    OAUTH_URL: str = ""
    CLIENT_ID: str = ""
    CLIENT_SECRET: str = ""
    AZURE_BASE_URL: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    GENERATION_MAX_TOKENS: Optional[int] = None
    GENERATION_TEMPERATURE: float = 0.7
    GENERATION_MAX_RETRIES: int = 3
    GENERATION_TIMEOUT_SECONDS: int = 120
    PRIOR_CONTEXT_CHAR_LIMIT: int = 4000
    ASK_SECTION_KEYWORD: str = "budget"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
            OAUTH_URL=os.getenv("OAUTH_URL", ""),
            CLIENT_ID=os.getenv("CLIENT_ID", ""),
            CLIENT_SECRET=os.getenv("CLIENT_SECRET", ""),
            AZURE_BASE_URL=os.getenv("AZURE_BASE_URL", ""),
            OPENAI_MODEL=os.getenv("OPENAI_MODEL", "gpt-4o"),
            GENERATION_MAX_TOKENS=_parse_optional_int(
                "GENERATION_MAX_TOKENS", os.getenv("GENERATION_MAX_TOKENS")
            ),
            GENERATION_TEMPERATURE=_parse_float(
                "GENERATION_TEMPERATURE", os.getenv("GENERATION_TEMPERATURE"), 0.7
            ),
            GENERATION_MAX_RETRIES=_parse_int(
                "GENERATION_MAX_RETRIES", os.getenv("GENERATION_MAX_RETRIES"), 3
            ),
            GENERATION_TIMEOUT_SECONDS=_parse_int(
                "GENERATION_TIMEOUT_SECONDS", os.getenv("GENERATION_TIMEOUT_SECONDS"), 120
            ),
            PRIOR_CONTEXT_CHAR_LIMIT=_parse_int(
                "PRIOR_CONTEXT_CHAR_LIMIT", os.getenv("PRIOR_CONTEXT_CHAR_LIMIT"), 4000
            ),
            ASK_SECTION_KEYWORD=os.getenv("ASK_SECTION_KEYWORD", "budget").strip() or "budget",
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            CORS_ALLOW_ORIGINS=os.getenv("CORS_ALLOW_ORIGINS", ""),
        )


@lru_cache
def get_settings() -> Settings:
    _load_env_file(_ENV_FILE)
    return Settings.from_env()
