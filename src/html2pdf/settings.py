from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constraint import DEFAULT_CONFIG_PATH, ENV_PREFIX
from .errors import ConfigError


class Settings(BaseSettings):
    """Application runtime settings sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_file=".env", extra="ignore")

    config_path: Path = DEFAULT_CONFIG_PATH
    verbose: bool = False


class S3Settings(BaseSettings):
    """S3 credentials. Every field falls back to its ``S3_*`` environment variable."""

    model_config = SettingsConfigDict(env_prefix="S3_", env_file=".env", extra="ignore")

    access_key_id: str = ""
    secret_access_key: str = ""
    bucket: str = ""
    region: str = ""
    endpoint: str = ""

    def merged(self, **overrides: str | None) -> "S3Settings":
        """Return a copy where non-empty CLI values replace environment values."""

        values = {key: value for key, value in overrides.items() if value}
        return self.model_copy(update=values)

    def require(self) -> "S3Settings":
        required = {
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
            "endpoint": self.endpoint,
            "bucket": self.bucket,
        }
        for name, value in required.items():
            if not value:
                raise ConfigError(
                    f"S3 configuration error: {name} is required. "
                    f"Provide it via --s3-{name.replace('_', '-')} or S3_{name.upper()}."
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["S3Settings", "Settings", "get_settings"]
