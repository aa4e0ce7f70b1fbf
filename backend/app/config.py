"""
Application configuration.

Values come from environment variables (a local .env file is loaded first).
Malformed numeric values fall back to their defaults.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _csv_env(key: str, default: List[str]) -> List[str]:
    raw = os.getenv(key, "").strip()
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or list(default)


@dataclass
class Settings:
    database_url: str = "sqlite:///./prayer.db"
    sql_echo: bool = False
    jwt_issuer: str = ""
    jwks_url: str = ""
    jwks_cache_ttl_seconds: int = 600
    jwks_http_timeout_seconds: float = 5.0
    prayed_window_hours: int = 12
    prayed_window_max_hours: int = 168
    feed_default_limit: int = 20
    feed_max_limit: int = 100
    search_default_limit: int = 20
    search_max_limit: int = 30
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./prayer.db"),
            sql_echo=os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes"),
            jwt_issuer=os.getenv("JWT_ISSUER", "").strip(),
            jwks_url=os.getenv("JWKS_URL", "").strip(),
            jwks_cache_ttl_seconds=_int_env("JWKS_CACHE_TTL_SECONDS", 600),
            jwks_http_timeout_seconds=_float_env("JWKS_HTTP_TIMEOUT_SECONDS", 5.0),
            prayed_window_hours=_int_env("PRAYED_WINDOW_HOURS", 12),
            prayed_window_max_hours=_int_env("PRAYED_WINDOW_MAX_HOURS", 168),
            feed_default_limit=_int_env("FEED_DEFAULT_LIMIT", 20),
            feed_max_limit=_int_env("FEED_MAX_LIMIT", 100),
            search_default_limit=_int_env("SEARCH_DEFAULT_LIMIT", 20),
            search_max_limit=_int_env("SEARCH_MAX_LIMIT", 30),
            cors_origins=_csv_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def missing_required(self) -> List[str]:
        """Names of required settings that are not set."""
        missing = []
        if not self.jwt_issuer:
            missing.append("JWT_ISSUER")
        if not self.jwks_url:
            missing.append("JWKS_URL")
        return missing


settings = Settings.from_env()
