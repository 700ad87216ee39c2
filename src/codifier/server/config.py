# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Server configuration using pydantic-settings."""

from __future__ import annotations

import logging
import secrets
from importlib.metadata import PackageNotFoundError, version

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import SettingsConfigDict

from codifier.core.config import CoreSettings

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0")  # nosec B104
MIN_TOKEN_LENGTH = 16


def get_package_version() -> str:
    """Get the package version from installed metadata.

    Returns the version from pyproject.toml when installed,
    or a dev fallback when running from source without install.
    """
    try:
        return version("codifier-mcp")
    except PackageNotFoundError:
        return "0.0.0-dev"


class ServerSettings(CoreSettings):
    """Configuration for the Codifier HTTP MCP server.

    Inherits core settings (logging, playbooks, collaborators) and adds
    server-specific settings (HTTP, auth, transports).

    Settings can be configured via environment variables with CODIFIER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CODIFIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=3000, description="Port to bind to")

    # External URL advertised in discovery documents
    external_url: str | None = Field(
        default=None,
        description="Public URL of this server (e.g., https://codifier.example.com)",
    )

    # Shared bearer secret
    api_auth_token: SecretStr | None = Field(
        default=None,
        description="Bearer token clients must present (REQUIRED in production)",
        validation_alias=AliasChoices("CODIFIER_API_AUTH_TOKEN", "API_AUTH_TOKEN"),
    )

    # CORS settings
    allowed_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins. ['*'] allows any origin.",
    )

    # Legacy streaming transport
    keepalive_interval: float = Field(
        default=15.0,
        description="Seconds of stream inactivity before a keep-alive comment is sent",
    )

    # Server name for MCP
    server_name: str = Field(default="codifier", description="MCP server name")
    server_version: str = Field(default_factory=get_package_version, description="Server version")

    # Production mode flag (explicit override)
    production: bool = Field(
        default=False,
        description="Force production mode (stricter security requirements)",
    )

    @model_validator(mode="after")
    def validate_production_settings(self) -> ServerSettings:
        """Validate security settings for production environments.

        In production (when host is not local, external_url is set, or
        production is forced) an explicit auth token of at least 16
        characters is required.
        """
        is_production = self.external_url is not None or self.host not in LOCAL_HOSTS or self.production
        token = self.api_auth_token.get_secret_value() if self.api_auth_token else ""

        if is_production:
            if not token:
                raise ValueError(
                    "CODIFIER_API_AUTH_TOKEN is required in production mode. "
                    "Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
                )
            if len(token) < MIN_TOKEN_LENGTH:
                raise ValueError(f"CODIFIER_API_AUTH_TOKEN must be at least {MIN_TOKEN_LENGTH} characters.")

        # For development, generate a random token if not provided
        if not token:
            logger.warning("Auto-generating API auth token - set CODIFIER_API_AUTH_TOKEN to use a stable one")
            object.__setattr__(self, "api_auth_token", SecretStr(secrets.token_urlsafe(32)))

        return self

    @property
    def base_url(self) -> str:
        """Get the base URL for the server."""
        if self.external_url:
            return self.external_url.rstrip("/")
        return f"http://{self.host}:{self.port}"


# Global settings instance - lazy loaded
_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ServerSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
