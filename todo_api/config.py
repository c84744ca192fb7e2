"""Settings loaded from environment variables (+ optional .env)."""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./todo.db"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


def normalize_database_url(url: str) -> str:
    """Make sure a Postgres URL uses the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool
    allowed_origins: List[str]
    host: str
    port: int
    debug: bool
    log_level: str
    tasks_max_take: int

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        database_url=normalize_database_url(os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL),
        db_echo=_env_bool("DB_ECHO", False),
        allowed_origins=_env_list("ALLOWED_ORIGINS", ["*"]),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8000),
        debug=_env_bool("DEBUG", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        tasks_max_take=max(1, _env_int("TASKS_MAX_TAKE", 100)),
    )
