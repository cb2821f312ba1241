# tokenvault/core/config.py
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from tokenvault.core.errors import ConfigurationError

_ALLOWED_ENVS = {"dev", "prod", "test"}

# prod demands longer signing secrets than dev/test
SECRET_MIN_LENGTH = 32
SECRET_MIN_LENGTH_PROD = 64


class Settings(BaseSettings):
    # 기본 앱 설정
    env: str = Field("dev", alias="ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # DB
    database_url: str = Field("", alias="DATABASE_URL")
    auto_create_tables: bool = Field(False, alias="AUTO_CREATE_TABLES")
    session_purge_interval_seconds: int = Field(3600, alias="SESSION_PURGE_INTERVAL_SECONDS")

    # JWT
    access_secret: str = Field(..., alias="JWT_SECRET_KEY")
    refresh_secret: str = Field(..., alias="JWT_REFRESH_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_issuer: str = Field("tokenvault", alias="JWT_ISSUER")
    jwt_audience: str = Field("tokenvault-users", alias="JWT_AUDIENCE")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(7, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


def validate_settings(settings: Settings) -> Settings:
    """Reject configurations the service must not start with."""
    env = settings.env.strip().lower()
    if env not in _ALLOWED_ENVS:
        allowed = "|".join(sorted(_ALLOWED_ENVS))
        raise ConfigurationError(f"ENV must be one of {allowed}")

    min_len = SECRET_MIN_LENGTH_PROD if env == "prod" else SECRET_MIN_LENGTH
    for name, value in (
        ("JWT_SECRET_KEY", settings.access_secret),
        ("JWT_REFRESH_SECRET", settings.refresh_secret),
    ):
        if len(value or "") < min_len:
            raise ConfigurationError(f"{name} must be at least {min_len} characters")

    if settings.access_token_expire_minutes <= 0 or settings.refresh_token_expire_days <= 0:
        raise ConfigurationError("token lifetimes must be positive")
    return settings


def load_settings(**overrides) -> Settings:
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    return validate_settings(settings)


@lru_cache
def get_settings() -> Settings:
    return load_settings()
