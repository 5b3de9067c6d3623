"""Application settings resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

try:  # Load environment variables from a .env file if present
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:  # pragma: no cover - optional dependency
    pass

from practicehub.time_utils import DEFAULT_PRACTICE_TIMEZONE

APP_NAME = "PracticeHub"

_DEFAULT_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:5000"


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class PracticeSettings:
    """Letterhead details printed on exported reports."""

    name: str = "PracticeHub Counselling"
    subtitle: Optional[str] = None
    address: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""


@dataclass(frozen=True)
class AppSettings:
    """Resolved runtime configuration for the API process."""

    environment: str = "development"
    log_level: str = "INFO"
    jwt_secret: str = "dev-secret"
    jwt_algorithm: str = "HS256"
    access_token_minutes: int = 60
    ai_model: str = "gpt-4o"
    ai_temperature: float = 0.2
    practice_timezone: str = DEFAULT_PRACTICE_TIMEZONE
    allowed_origins: List[str] = field(default_factory=list)
    practice: PracticeSettings = field(default_factory=PracticeSettings)

    @property
    def allow_all_origins(self) -> bool:
        return any(origin in {"*", "wildcard"} for origin in self.allowed_origins)


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number; got {raw!r}") from exc


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return the active application settings derived from the environment."""

    environment = os.getenv("ENVIRONMENT", "development").lower()
    jwt_secret = os.getenv("JWT_SECRET")
    if not jwt_secret:
        if environment not in {"development", "dev", "local", "test"}:
            raise RuntimeError("JWT_SECRET must be configured outside development")
        jwt_secret = "dev-secret"

    practice = PracticeSettings(
        name=os.getenv("PRACTICE_NAME", PracticeSettings.name),
        subtitle=os.getenv("PRACTICE_SUBTITLE") or None,
        address=os.getenv("PRACTICE_ADDRESS", ""),
        phone=os.getenv("PRACTICE_PHONE", ""),
        email=os.getenv("PRACTICE_EMAIL", ""),
        website=os.getenv("PRACTICE_WEBSITE", ""),
    )

    return AppSettings(
        environment=environment,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret=jwt_secret,
        access_token_minutes=_get_int_env("ACCESS_TOKEN_MINUTES", 60),
        ai_model=os.getenv("AI_MODEL", "gpt-4o"),
        ai_temperature=_get_float_env("AI_TEMPERATURE", 0.2),
        practice_timezone=os.getenv("PRACTICE_TIMEZONE", DEFAULT_PRACTICE_TIMEZONE),
        allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", _DEFAULT_ORIGINS)),
        practice=practice,
    )


__all__ = ["APP_NAME", "AppSettings", "PracticeSettings", "get_settings"]
