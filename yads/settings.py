"""
YADS Settings - Process configuration using Pydantic Settings.

Loads configuration from environment variables and .env files. These are the
knobs of the tool itself; the user's stack choices (web server, domain, PHP
version) live in the flat config file handled by yads.config.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

YADS_HOME = Path.home() / ".yads"


class YadsSettings(BaseSettings):
    """
    YADS process settings.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file in current directory
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="YADS_",  # All YADS env vars must start with YADS_
    )

    # Locations
    home: Path = Field(
        default=YADS_HOME,
        description="YADS state directory (env: YADS_HOME)",
    )

    config_file: Path = Field(
        default=YADS_HOME / "config",
        description="Flat KEY=\"value\" config file (env: YADS_CONFIG_FILE)",
    )

    projects_dir: Path = Field(
        default=Path("projects"),
        description="Directory holding one folder per project (env: YADS_PROJECTS_DIR)",
    )

    project_templates_dir: Path = Field(
        default=Path("templates"),
        description="Optional per-type project templates (env: YADS_PROJECT_TEMPLATES_DIR)",
    )

    compose_file: Path = Field(
        default=Path("docker-compose.yml"),
        description="Docker Compose file of the stack (env: YADS_COMPOSE_FILE)",
    )

    stack_env_file: Path = Field(
        default=Path(".env"),
        description="Compose environment file with database passwords (env: YADS_STACK_ENV_FILE)",
    )

    web_root: Path = Field(
        default=Path("/var/www/html"),
        description="Document root used for bare-host virtual hosts (env: YADS_WEB_ROOT)",
    )

    # Execution
    dry_run: bool = Field(
        default=False,
        description="Log commands instead of running them (env: YADS_DRY_RUN)",
    )

    command_timeout: float | None = Field(
        default=None,
        description="Timeout in seconds for external commands (env: YADS_COMMAND_TIMEOUT)",
    )

    # Network
    github_api: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL for release lookups (env: YADS_GITHUB_API)",
    )

    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for downloads (env: YADS_HTTP_TIMEOUT)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR) (env: YADS_LOG_LEVEL)",
    )


# Global settings instance
_settings: YadsSettings | None = None


def get_settings() -> YadsSettings:
    """
    Get the global settings instance.

    Creates the settings instance on first call, then returns cached instance.

    Returns:
        YadsSettings instance
    """
    global _settings
    if _settings is None:
        _settings = YadsSettings()
    return _settings


def reload_settings() -> YadsSettings:
    """
    Reload settings from environment/files.

    Useful for testing or when .env file changes.

    Returns:
        Fresh YadsSettings instance
    """
    global _settings
    _settings = YadsSettings()
    return _settings
