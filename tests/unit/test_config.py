"""Unit tests for configuration management.

Tests cover:
- Default configuration values
- TOML file loading
- Environment variable overrides
- Validation errors for invalid configurations
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from pr_reviewer.config import (
    DEFAULT_EXCLUDE_PATTERNS,
    BitbucketConfig,
    DatabaseConfig,
    LoggingConfig,
    PRReviewerConfig,
    ReviewConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep user config files and PR_REVIEWER_* variables out of these tests."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    for section in ("DATABASE", "BITBUCKET", "REVIEW", "LOGGING"):
        for key in ("URL", "BACKEND", "AUTH_TOKEN", "PROJECT_KEY", "LEVEL", "CUSTOM_PROMPT"):
            monkeypatch.delenv(f"PR_REVIEWER_{section}__{key}", raising=False)


class TestDatabaseConfig:
    """Test DatabaseConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = DatabaseConfig()
        assert config.backend == "sql"
        assert config.url == "sqlite+aiosqlite:///pr-reviewer.db"
        assert config.echo is False

    def test_backend_is_normalized(self) -> None:
        assert DatabaseConfig(backend="MEMORY").backend == "memory"

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Invalid store backend"):
            DatabaseConfig(backend="redis")


class TestBitbucketConfig:
    """Test BitbucketConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = BitbucketConfig()
        assert config.auth_token is None
        assert config.username is None
        assert config.timeout_seconds == 30

    def test_trailing_slash_stripped(self) -> None:
        config = BitbucketConfig(base_url="https://bitbucket.example.com///")
        assert config.base_url == "https://bitbucket.example.com"

    def test_timeout_validation(self) -> None:
        with pytest.raises(ValidationError):
            BitbucketConfig(timeout_seconds=0)
        with pytest.raises(ValidationError):
            BitbucketConfig(timeout_seconds=301)


class TestReviewConfig:
    """Test ReviewConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = ReviewConfig()
        assert config.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
        assert config.custom_prompt

    def test_defaults_are_not_shared(self) -> None:
        first = ReviewConfig()
        first.exclude_patterns.append(r"\.lock$")
        assert ReviewConfig().exclude_patterns == DEFAULT_EXCLUDE_PATTERNS

    def test_invalid_pattern_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Invalid exclude pattern"):
            ReviewConfig(exclude_patterns=["(unclosed"])


class TestLoggingConfig:
    """Test LoggingConfig defaults and validation."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "json"
        assert config.file is None
        assert config.rotation_size_mb == 50
        assert config.retention_count == 10

    def test_level_validation(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"
        with pytest.raises(ValidationError, match="Invalid log level"):
            LoggingConfig(level="INVALID")

    def test_format_validation(self) -> None:
        assert LoggingConfig(format="CONSOLE").format == "console"
        with pytest.raises(ValidationError, match="Invalid log format"):
            LoggingConfig(format="xml")


class TestPRReviewerConfig:
    def test_default_values(self) -> None:
        config = PRReviewerConfig()
        assert isinstance(config.database, DatabaseConfig)
        assert isinstance(config.bitbucket, BitbucketConfig)
        assert isinstance(config.review, ReviewConfig)
        assert isinstance(config.logging, LoggingConfig)

    def test_unknown_section_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PRReviewerConfig(web={"port": 8000})


class TestLoadConfig:
    """Test TOML configuration loading."""

    def test_load_defaults_when_no_file(self) -> None:
        config = load_config()
        assert config.database.url == "sqlite+aiosqlite:///pr-reviewer.db"

    def test_explicit_path_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(tmp_path / "missing.toml")

    def test_load_from_toml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "custom.toml"
        config_file.write_text("""
[database]
backend = "memory"

[bitbucket]
base_url = "https://bitbucket.example.com"
project_key = "PROJ"
repository_slug = "service"
auth_token = "token"

[review]
exclude_patterns = ["\\\\.lock$"]
custom_prompt = "Focus on security."

[logging]
level = "DEBUG"
format = "console"
""")

        config = load_config(config_file)
        assert config.database.backend == "memory"
        assert config.bitbucket.project_key == "PROJ"
        assert config.bitbucket.auth_token == "token"
        assert config.review.exclude_patterns == [r"\.lock$"]
        assert config.review.custom_prompt == "Focus on security."
        assert config.logging.format == "console"
        # Unspecified values keep their defaults
        assert config.bitbucket.timeout_seconds == 30

    def test_invalid_toml_raises_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "invalid.toml"
        config_file.write_text("""
[bitbucket]
timeout_seconds = "not a number"
""")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(config_file)

    def test_search_current_directory(self, tmp_path: Path) -> None:
        (tmp_path / "pr-reviewer.toml").write_text("""
[bitbucket]
project_key = "CWD"
""")

        assert load_config().bitbucket.project_key == "CWD"

    def test_search_user_config_directory(self, tmp_path: Path) -> None:
        user_dir = tmp_path / "home" / ".config" / "pr-reviewer"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text("""
[bitbucket]
project_key = "HOME"
""")

        assert load_config().bitbucket.project_key == "HOME"

    def test_environment_variable_override(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = tmp_path / "test.toml"
        config_file.write_text("""
[bitbucket]
project_key = "FROM_TOML"
repository_slug = "service"
""")
        monkeypatch.setenv("PR_REVIEWER_BITBUCKET__PROJECT_KEY", "FROM_ENV")

        config = load_config(config_file)
        assert config.bitbucket.project_key == "FROM_ENV"
        assert config.bitbucket.repository_slug == "service"

    def test_environment_variables_without_toml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PR_REVIEWER_DATABASE__URL", "postgresql+asyncpg://db/reviews")
        monkeypatch.setenv("PR_REVIEWER_LOGGING__LEVEL", "WARNING")

        config = load_config()
        assert config.database.url == "postgresql+asyncpg://db/reviews"
        assert config.logging.level == "WARNING"
