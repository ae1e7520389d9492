from __future__ import annotations

import pytest

from orderdesk.core.config import AppEnv, Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "APP_ENV",
        "LOG_LEVEL",
        "LOG_JSON",
        "PORT",
        "DATABASE_URL",
        "REDIS_URL",
        "INVITATION_TTL_DAYS",
        "ID_TOKEN_TTL_MIN",
        "DB_POOL_SIZE",
        "DB_MAX_OVERFLOW",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8000
    assert settings.database_url is None
    assert settings.redis_url is None
    assert settings.invitation_ttl_days == 7
    assert settings.id_token_ttl_min == 60
    assert (settings.db_pool_size, settings.db_max_overflow) == (5, 10)


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "  warning ")
    monkeypatch.setenv("LOG_JSON", "yes")
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/orderdesk")
    monkeypatch.setenv("INVITATION_TTL_DAYS", "14")
    monkeypatch.setenv("ID_TOKEN_TTL_MIN", "5")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "warning"
    assert settings.log_json is True
    assert settings.database_url == "postgresql+asyncpg://u:p@db/orderdesk"
    assert settings.invitation_ttl_days == 14
    assert settings.id_token_ttl_min == 5


def test_blank_urls_mean_not_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "   ")
    monkeypatch.setenv("REDIS_URL", "")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("APP_ENV", "staging", "APP_ENV must be dev|test|prod"),
        ("APP_ENV", "", "APP_ENV must be dev|test|prod"),
        ("LOG_LEVEL", "verbose", "LOG_LEVEL must be debug|info|warning|error"),
        ("LOG_JSON", "maybe", "LOG_JSON must be a boolean"),
        ("PORT", "eighty", "PORT must be an integer"),
        ("INVITATION_TTL_DAYS", "0", "INVITATION_TTL_DAYS must be positive"),
        ("ID_TOKEN_TTL_MIN", "-1", "ID_TOKEN_TTL_MIN must be positive"),
        ("DB_POOL_SIZE", "0", "DB_POOL_SIZE must be positive"),
        ("DB_MAX_OVERFLOW", "-2", "DB_MAX_OVERFLOW must not be negative"),
    ],
)
def test_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=message):
        load_settings()


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


@pytest.mark.parametrize("env", ["dev", "test", "prod"])
def test_settings_env_flags(env: AppEnv) -> None:
    s = _make_settings(env)
    assert (s.is_dev, s.is_test, s.is_prod) == (env == "dev", env == "test", env == "prod")


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
