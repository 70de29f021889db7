"""
Configuration for the rest-conventions service.

This module provides the application settings, loaded from environment
variables (prefix ``RC_``) and an optional ``.env`` file, together with
helpers that resolve paths relative to the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import logging

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.versioning import parse_version

logger = logging.getLogger(__name__)

# Project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent


class ConfigurationError(Exception):
    """Raised when there are issues with configuration loading or validation."""


class Settings(BaseSettings):
    """Application settings.

    Attributes:
        app_name: Service name, used as the OpenAPI title.
        app_version: Service version reported by the health endpoint.
        debug: Enables human-readable logs and detailed error texts.
        testing: Enables docs endpoints and detailed error texts.
        log_level: Minimum log level.
        cors_origins: Origins allowed by the CORS middleware.
        api_key: Expected ``X-API-Key`` value. Empty disables authentication.
        api_versions: Supported URL versions, e.g. ``["v1", "v2"]``.
        deprecated_api_versions: Supported versions announced as deprecated.
        api_sunset: HTTP date sent in the ``Sunset`` header of deprecated
            versions. Empty omits the header.
        default_page_size: ``per_page`` used when the client sends none.
        max_page_size: Largest ``per_page`` a client may request.
        rate_limit_writes: Write requests allowed per client IP per minute.
            0 disables the limiter.
        resources_file: YAML file declaring the service's resources.
    """

    app_name: str = "rest-conventions"
    app_version: str = "0.1.0"
    debug: bool = False
    testing: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    api_key: str = ""
    api_versions: list[str] = Field(default_factory=lambda: ["v1"])
    deprecated_api_versions: list[str] = Field(default_factory=list)
    api_sunset: str = ""
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    rate_limit_writes: int = Field(default=0, ge=0)
    resources_file: str = "src/cfg/resources.yaml"

    model_config = SettingsConfigDict(
        env_prefix="RC_",
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("api_versions")
    @classmethod
    def validate_api_versions(cls, v: list[str]) -> list[str]:
        """Require at least one well-formed version, e.g. ``v1``."""
        if not v:
            raise ValueError("At least one API version must be supported")
        for version in v:
            parse_version(version)
        return sorted(set(v), key=parse_version)

    @model_validator(mode="after")
    def validate_page_sizes(self) -> Settings:
        """Keep the default page size within the maximum."""
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        unknown = set(self.deprecated_api_versions) - set(self.api_versions)
        if unknown:
            raise ValueError(
                f"Deprecated API versions must be supported: {sorted(unknown)}"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings loaded once from the environment.
    """
    settings = Settings()
    logger.debug("Settings loaded", extra={"app_name": settings.app_name})
    return settings


def get_settings_override(overrides: dict[str, Any]) -> Settings:
    """Build settings with explicit overrides, bypassing the cache.

    Args:
        overrides: Field values taking precedence over the environment.

    Returns:
        A fresh Settings instance.
    """
    return Settings(**overrides)


def get_project_root() -> Path:
    """
    Get the project root directory.

    Returns:
        Path: The absolute path to the project root directory.
    """
    return PROJECT_ROOT


def resolve_path(path_str: str, relative_to: Optional[Path] = None) -> Path:
    """
    Resolve a path string to an absolute path.

    If the path is relative, it will be resolved relative to the project root
    (or a specified directory). Absolute paths are returned as-is.

    Args:
        path_str: The path string to resolve.
        relative_to: Optional base directory for relative paths.
                     Defaults to project root.

    Returns:
        Path: The resolved absolute path.

    Examples:
        >>> resolve_path('src/cfg/resources.yaml')
        Path('/path/to/project/src/cfg/resources.yaml')
        >>> resolve_path('/absolute/path')
        Path('/absolute/path')
    """
    path = Path(path_str)

    if path.is_absolute():
        return path

    base_dir = relative_to if relative_to is not None else PROJECT_ROOT
    return (base_dir / path).resolve()
