"""Codifier Core - Shared configuration, errors and logging."""

from .config import CoreSettings, clear_config_cache, get_config
from .exceptions import (
    AuthError,
    CodifierException,
    ConfigException,
    ConflictError,
    DataStoreError,
    ExternalCollaboratorError,
    ExternalToolError,
    InternalError,
    NotFoundError,
    RoutingError,
    ToolError,
    ValidationException,
    WorkflowStateError,
)
from .logging import (
    ToolCallLogger,
    configure_logging,
    get_request_id,
    request_context,
    tool_logger,
)

__all__ = [
    # Config
    "CoreSettings",
    "get_config",
    "clear_config_cache",
    # Exceptions
    "CodifierException",
    "AuthError",
    "RoutingError",
    "ValidationException",
    "ConfigException",
    "NotFoundError",
    "WorkflowStateError",
    "ConflictError",
    "ExternalCollaboratorError",
    "DataStoreError",
    "ExternalToolError",
    "InternalError",
    "ToolError",
    # Logging
    "configure_logging",
    "get_request_id",
    "request_context",
    "ToolCallLogger",
    "tool_logger",
]
