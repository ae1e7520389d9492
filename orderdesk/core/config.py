from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so type casting and validation live in one place
    return os.environ.get(name, default).strip()


def _getenv_int(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _getenv_bool(name: str, default: str) -> bool:
    raw = _getenv(name, default).lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    invitation_ttl_days: int = 7
    id_token_ttl_min: int = 60
    db_pool_size: int = 5
    db_max_overflow: int = 10

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getenv_int("PORT", "8000")
    invitation_ttl_days = _getenv_int("INVITATION_TTL_DAYS", "7")
    id_token_ttl_min = _getenv_int("ID_TOKEN_TTL_MIN", "60")
    db_pool_size = _getenv_int("DB_POOL_SIZE", "5")
    db_max_overflow = _getenv_int("DB_MAX_OVERFLOW", "10")

    if invitation_ttl_days <= 0:
        raise ValueError(
            f"INVITATION_TTL_DAYS must be positive (got {invitation_ttl_days})"
        )
    if id_token_ttl_min <= 0:
        raise ValueError(f"ID_TOKEN_TTL_MIN must be positive (got {id_token_ttl_min})")
    if db_pool_size <= 0:
        raise ValueError(f"DB_POOL_SIZE must be positive (got {db_pool_size})")
    if db_max_overflow < 0:
        raise ValueError(f"DB_MAX_OVERFLOW must not be negative (got {db_max_overflow})")

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv_bool("LOG_JSON", "false"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        invitation_ttl_days=invitation_ttl_days,
        id_token_ttl_min=id_token_ttl_min,
        db_pool_size=db_pool_size,
        db_max_overflow=db_max_overflow,
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
