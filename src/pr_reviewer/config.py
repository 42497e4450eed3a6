"""Configuration management for pr-reviewer.

This module defines the configuration schema using Pydantic settings,
supporting TOML files, environment variables, and programmatic overrides.

Configuration loading priority (highest to lowest):
1. Environment variables (PR_REVIEWER_* prefix)
2. TOML configuration file or keyword arguments to PRReviewerConfig
3. Default values defined in this module

Example TOML configuration:
    [database]
    backend = "sql"
    url = "sqlite+aiosqlite:///pr-reviewer.db"

    [bitbucket]
    base_url = "https://bitbucket.example.com"
    project_key = "PROJ"
    repository_slug = "service"

Example environment variable override:
    PR_REVIEWER_BITBUCKET__AUTH_TOKEN="..."
    PR_REVIEWER_REVIEW__EXCLUDE_PATTERNS='["\\\\.lock$"]'
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import tomli
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

DEFAULT_EXCLUDE_PATTERNS = [r"\.md$", r"^docs/"]
DEFAULT_CUSTOM_PROMPT = (
    "Please review the following diff for technical quality and best practices."
)


class DatabaseConfig(BaseSettings):
    """Review state storage configuration.

    Attributes:
        backend: Store implementation, "sql" (durable) or "memory" (volatile)
        url: SQLAlchemy async database URL, used by the sql backend
        echo: Enable SQL query logging
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_REVIEWER_DATABASE__",
        extra="forbid",
    )

    backend: str = Field(default="sql")
    url: str = Field(
        default="sqlite+aiosqlite:///pr-reviewer.db",
        description="SQLAlchemy async connection URL",
    )
    echo: bool = Field(default=False)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate the store backend is recognized."""
        valid_backends = {"sql", "memory"}
        v_lower = v.lower()
        if v_lower not in valid_backends:
            raise ValueError(f"Invalid store backend: {v}. Must be one of {valid_backends}")
        return v_lower


class BitbucketConfig(BaseSettings):
    """Bitbucket Server REST API configuration.

    Either auth_token or both username and password must be set before a
    client can be built; this is checked when the client is constructed so
    that commands which never touch Bitbucket (reset, status) still work.

    Attributes:
        base_url: Server root URL, without the /rest/api/1.0 suffix
        project_key: Project key owning the repository
        repository_slug: Repository slug
        auth_token: HTTP access token (sent as a bearer token)
        username: Username for basic auth
        password: Password or app password for basic auth
        timeout_seconds: Request timeout in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_REVIEWER_BITBUCKET__",
        extra="forbid",
    )

    base_url: str = Field(default="https://bitbucket.org")
    project_key: str = Field(default="")
    repository_slug: str = Field(default="")
    auth_token: str | None = Field(default=None)
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)
    timeout_seconds: int = Field(default=30, ge=1, le=300)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        return v.rstrip("/")


class ReviewConfig(BaseSettings):
    """Review workflow configuration.

    Attributes:
        exclude_patterns: Regular expressions; matching file paths are never
            offered for review
        custom_prompt: Instruction text returned with every file diff
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_REVIEWER_REVIEW__",
        extra="forbid",
    )

    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    custom_prompt: str = Field(default=DEFAULT_CUSTOM_PROMPT)

    @field_validator("exclude_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        """Reject patterns that are not valid regular expressions."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid exclude pattern {pattern!r}: {e}") from e
        return v


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json or console)
        file: Optional log file path (None for stderr only)
        rotation_size_mb: Log file rotation size in megabytes
        retention_count: Number of rotated log files to keep
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_REVIEWER_LOGGING__",
        extra="forbid",
    )

    level: str = Field(default="INFO")
    format: str = Field(default="json")
    file: Path | None = Field(default=None)
    rotation_size_mb: int = Field(default=50, ge=1, le=1000)
    retention_count: int = Field(default=10, ge=1, le=100)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is recognized."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is recognized."""
        valid_formats = {"json", "console"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class PRReviewerConfig(BaseSettings):
    """Root configuration for pr-reviewer.

    Environment variable format for nested config:
        PR_REVIEWER_<SECTION>__<KEY>=value

    Example:
        PR_REVIEWER_DATABASE__BACKEND="memory"
        PR_REVIEWER_BITBUCKET__PROJECT_KEY="PROJ"
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_REVIEWER_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    bitbucket: BitbucketConfig = Field(default_factory=BitbucketConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # TOML data arrives as keyword arguments; the environment wins over it
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_config(config_path: Path | None = None) -> PRReviewerConfig:
    """Load configuration from TOML file with environment variable overrides.

    Configuration search order (first found is used):
    1. config_path if explicitly provided
    2. ./pr-reviewer.toml (current directory)
    3. ~/.config/pr-reviewer/config.toml (user config directory)

    Args:
        config_path: Explicit path to TOML config file. If None, searches
                    default locations.

    Returns:
        PRReviewerConfig: Fully resolved configuration instance.

    Raises:
        FileNotFoundError: If config_path is explicitly provided but doesn't exist.
        ValueError: If TOML file contains invalid configuration.
    """
    toml_data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        selected_path: Path | None = config_path
    else:
        search_paths = [
            Path.cwd() / "pr-reviewer.toml",
            Path.home() / ".config" / "pr-reviewer" / "config.toml",
        ]
        selected_path = None
        for path in search_paths:
            if path.exists():
                selected_path = path
                break

    if selected_path is not None:
        with open(selected_path, "rb") as f:
            toml_data = tomli.load(f)

    # Pydantic overlays environment variables on top of the TOML data
    try:
        return PRReviewerConfig(**toml_data)
    except Exception as e:
        if selected_path:
            raise ValueError(
                f"Invalid configuration in {selected_path}: {e}"
            ) from e
        else:
            raise ValueError(f"Invalid configuration: {e}") from e
