"""
Configuration management for the CDN deployer.

Settings come from CDN_DEPLOY_* environment variables, an optional .env file
and explicit overrides (usually the command line). The resulting model is
frozen for the lifetime of a pipeline run.
"""

from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def default_metadata() -> Dict[str, str]:
    return {"cache_control": "public, max-age=31556926"}


class Config(BaseSettings):
    """Deployment configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CDN_DEPLOY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    # Container
    container_name: str = Field(description="Target container (bucket) name")
    container_options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra keyword arguments for container creation"
    )
    destination_prefix: str = Field(default="", description="Key prefix inside the container")
    delete_existing_blobs: bool = Field(
        default=False,
        description="Delete every blob under the prefix before uploading"
    )

    # Upload
    concurrent_uploads: int = Field(default=10, ge=1, description="Maximum in-flight uploads")
    gzip: bool = Field(default=False, description="Gzip files when that makes them smaller")
    compression_level: int = Field(default=9, ge=1, le=9, description="Gzip compression level")
    metadata: Dict[str, str] = Field(
        default_factory=default_metadata,
        description="Metadata attached to every uploaded file"
    )
    exclusion_prefix: str = Field(default="_", description="File names starting with this are skipped")
    dry_run: bool = Field(default=False, description="Log deletes and uploads without performing them")

    # S3 client
    endpoint_url: Optional[str] = Field(default=None, description="S3 endpoint override")
    region_name: Optional[str] = Field(default=None, description="S3 region")
    profile_name: Optional[str] = Field(default=None, description="AWS profile for credentials")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="json or console")

    @field_validator("container_name")
    @classmethod
    def _container_name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("container name must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {', '.join(LOG_LEVELS)}")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("Log format must be json or console")
        return value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "container_name": self.container_name,
            "container_options": self.container_options,
            "destination_prefix": self.destination_prefix,
            "delete_existing_blobs": self.delete_existing_blobs,
            "concurrent_uploads": self.concurrent_uploads,
            "gzip": self.gzip,
            "metadata": self.metadata,
            "dry_run": self.dry_run,
            "endpoint_url": self.endpoint_url,
            "region_name": self.region_name
        }


def load_config(**overrides: Any) -> Config:
    """
    Load and validate configuration.

    Overrides whose value is None are ignored so that unset command-line
    options fall back to the environment.

    Raises:
        ConfigError: if the container name is missing or any value is invalid
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Config(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
