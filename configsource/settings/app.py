"""Application settings powered by Pydantic BaseSettings."""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from configsource.observability.logging import parse_log_level
from configsource.provider.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from configsource.sources.constants import DEFAULT_ENTRY_POINT_GROUP


class AppSettings(BaseSettings):
    """Environment configuration for the CLI and provider construction.

    Every field can be set through a ``CONFIGSOURCE_``-prefixed variable
    or a ``.env`` file, e.g. ``CONFIGSOURCE_MAX_WORKERS=4``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONFIGSOURCE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    json_logs: bool = True
    max_workers: Annotated[int, Field(ge=1, le=64)] = 1
    resolve_timeout_seconds: Annotated[float, Field(gt=0)] | None = None
    http_timeout_seconds: Annotated[float, Field(gt=0, le=300)] = (
        DEFAULT_HTTP_TIMEOUT_SECONDS
    )
    entry_point_group: Annotated[str, Field(min_length=1)] = DEFAULT_ENTRY_POINT_GROUP

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the level is a standard logging level name."""
        parse_log_level(v)
        return v.upper()


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
