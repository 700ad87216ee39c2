# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for Codifier.

Provides specific exception types for different error categories,
enabling better error handling and clearer error messages.
"""

from __future__ import annotations

from typing import Any


class CodifierException(Exception):  # noqa: N818
    """Base exception for all Codifier errors.

    All Codifier-specific exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class AuthError(CodifierException):
    """Exception for bearer authentication failures.

    Raised when:
    - The Authorization header is missing
    - The scheme is not Bearer
    - The token does not match the configured secret
    """

    def __init__(self, message: str, reason: str):
        super().__init__(message, {"reason": reason})
        self.reason = reason


class RoutingError(CodifierException):
    """Exception for requests that cannot be routed.

    Raised when:
    - A verb is not applicable to a transport binding (405)
    - A legacy stream session id is unknown (404)
    """

    def __init__(self, message: str, status_code: int = 404, allow: str | None = None):
        details: dict[str, Any] = {"status_code": status_code}
        if allow:
            details["allow"] = allow
        super().__init__(message, details)
        self.status_code = status_code
        self.allow = allow


class ValidationException(CodifierException):
    """Exception for validation errors.

    Raised when:
    - Input validation fails
    - Required fields are missing
    - Field values are out of range
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConfigException(CodifierException):
    """Exception for configuration errors.

    Raised when:
    - Required environment variables are missing
    - Playbook definition files are invalid
    """

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


class NotFoundError(CodifierException):
    """Exception for resource not found errors.

    Raised when:
    - Requested playbook doesn't exist or has no steps
    - Requested workflow session doesn't exist
    - Requested project doesn't exist
    """

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class WorkflowStateError(CodifierException):
    """Exception for illegal workflow session transitions.

    Raised when advancing a session that is not active.
    """

    def __init__(self, session_id: str, status: str):
        super().__init__(
            f'Session "{session_id}" is not active (status: {status})',
            {"session_id": session_id, "status": status},
        )
        self.session_id = session_id
        self.status = status


class ConflictError(CodifierException):
    """Exception for conflict errors.

    Raised when:
    - Optimistic locking fails (the session row changed since it was read)
    - State conflict during update
    """

    def __init__(self, message: str, existing_id: str | None = None):
        details = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id


class ExternalCollaboratorError(CodifierException):
    """Base exception for failures of collaborators outside the core."""


class DataStoreError(ExternalCollaboratorError):
    """Exception for persistence failures.

    Raised when:
    - A record cannot be written or read
    - The backing store is unavailable
    """


class ExternalToolError(ExternalCollaboratorError):
    """Exception for external tool failures (repository packing, data queries)."""

    def __init__(self, message: str, tool: str | None = None):
        details = {}
        if tool:
            details["tool"] = tool
        super().__init__(message, details)
        self.tool = tool


class InternalError(CodifierException):
    """Exception for states that should be unreachable.

    Raised when a workflow session references a step index outside its
    playbook definition.
    """


class ToolError(CodifierException):
    """Exception for MCP tool execution errors.

    Raised when:
    - Tool execution fails
    - Invalid tool parameters
    """

    def __init__(self, message: str, tool_name: str | None = None):
        details = {}
        if tool_name:
            details["tool_name"] = tool_name
        super().__init__(message, details)
        self.tool_name = tool_name
