"""Game config server configuration via environment variables."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from gameconfig.rate_limit import DEFAULT_LIMIT, DEFAULT_WINDOW_SECONDS
from shared.db.config_store import DEFAULT_MAX_VALUE_BYTES
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class RateLimitBackend(StrEnum):
    FILE = "file"
    SQLITE = "sqlite"


class GameConfigSettings(BaseSettings):
    model_config = {"env_prefix": "GAMECONFIG_"}

    log_dir: str = "backend/logs/gameconfig"
    database_path: str = "backend/storage.db"
    cache_dir: str = "backend/var/cache"

    # Unset: artifacts live until the next admin write replaces them.
    cache_ttl_seconds: float | None = Field(default=None, gt=0)

    max_value_bytes: int = Field(default=DEFAULT_MAX_VALUE_BYTES, gt=0)
    store_timeout_seconds: float = Field(default=5.0, gt=0)

    rate_limit_backend: RateLimitBackend = RateLimitBackend.FILE
    rate_limit_dir: str = "backend/var/ratelimit"
    rate_limit_requests: int = Field(default=DEFAULT_LIMIT, ge=1)
    rate_limit_window_seconds: float = Field(default=DEFAULT_WINDOW_SECONDS, gt=0)

    # Only enable behind a proxy that overwrites X-Forwarded-For.
    trust_forwarded_for: bool = False

    cors_origins: list[str] = []

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
