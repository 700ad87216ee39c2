"""Core configuration - centralized config for the codifier package.

All environment-based configuration should flow through this module.
This provides a single source of truth and consistent defaults.

Usage:
    from codifier.core.config import get_config
    config = get_config()

    log_level = config.log_level
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    """Core configuration settings for Codifier.

    Settings can be configured via environment variables. Most use the
    CODIFIER_ prefix; VCS tokens keep their conventional names.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="CODIFIER_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="CODIFIER_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="CODIFIER_LOG_FILE",
    )

    # ==========================================================================
    # PLAYBOOK SETTINGS
    # ==========================================================================

    playbooks_dir: Path | None = Field(
        default=None,
        description="Directory of playbook YAML definitions (defaults to the packaged definitions)",
        validation_alias="CODIFIER_PLAYBOOKS_DIR",
    )

    # ==========================================================================
    # DATA QUERY (ATHENA SIDECAR) SETTINGS
    # ==========================================================================

    athena_database: str | None = Field(
        default=None,
        description="Default Athena database/catalog",
        validation_alias="ATHENA_DATABASE",
    )
    athena_command: str = Field(
        default="python3",
        description="Executable used to launch the Athena MCP sidecar",
        validation_alias="CODIFIER_ATHENA_COMMAND",
    )
    athena_args: list[str] = Field(
        default=["-m", "athena_mcp.server"],
        description="Arguments for the Athena MCP sidecar",
        validation_alias="CODIFIER_ATHENA_ARGS",
    )
    athena_max_response_bytes: int = Field(
        default=100 * 1024,
        description="Responses larger than this are truncated",
        validation_alias="CODIFIER_ATHENA_MAX_RESPONSE_BYTES",
    )
    athena_timeout_seconds: int = Field(
        default=60,
        description="Query timeout passed to the sidecar",
        validation_alias="ATHENA_TIMEOUT_SECONDS",
    )
    athena_workgroup: str = Field(
        default="primary",
        description="Athena workgroup",
        validation_alias="ATHENA_WORKGROUP",
    )
    athena_s3_output_location: str = Field(
        default="",
        description="S3 location for Athena query results",
        validation_alias="ATHENA_S3_OUTPUT_LOCATION",
    )

    # ==========================================================================
    # REPOSITORY CONDENSATION SETTINGS
    # ==========================================================================

    repomix_command: list[str] = Field(
        default=["npx", "--yes", "repomix"],
        description="Command used to run repomix",
        validation_alias="CODIFIER_REPOMIX_COMMAND",
    )
    repomix_timeout_seconds: int = Field(
        default=300,
        description="Timeout for a single repomix run",
        validation_alias="CODIFIER_REPOMIX_TIMEOUT_SECONDS",
    )
    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    gitlab_token: str | None = Field(default=None, validation_alias="GITLAB_TOKEN")
    bitbucket_token: str | None = Field(default=None, validation_alias="BITBUCKET_TOKEN")


# Global config instance - lazy loaded
_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global core config instance."""
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
