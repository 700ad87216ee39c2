# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Structured logging configuration for Codifier.

Provides:
- JSON formatter for production (machine-parseable)
- Colour formatter for interactive development
- Per-request correlation IDs, set by the HTTP gateway
- Tool call logging with redaction of credential-like arguments
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access", "mcp.client")


def get_request_id() -> str | None:
    """Return the correlation ID bound to the current request, if any."""
    return _request_id.get()


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a request.

    Example:
        with request_context() as rid:
            logger.info("Handling request")  # carries rid
    """
    rid = request_id or uuid.uuid4().hex[:12]
    token = _request_id.set(rid)
    try:
        yield rid
    finally:
        _request_id.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            payload["request_id"] = request_id

        if record.levelno >= logging.WARNING:
            payload["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_data", None)
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter with optional ANSI colours."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Copy so other handlers see the unmodified record
        record = logging.makeLogRecord(record.__dict__)

        request_id = get_request_id()
        if request_id:
            record.msg = f"[{request_id}] {record.msg}"

        extra = getattr(record, "extra_data", None)
        if extra:
            record.msg = f"{record.msg} {json.dumps(extra, default=str)}"

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Configure root logging for Codifier services.

    Arguments left as None are taken from CoreSettings
    (CODIFIER_LOG_LEVEL, CODIFIER_LOG_FORMAT, CODIFIER_LOG_FILE).
    When the format is unset, JSON is used unless stderr is a terminal.
    """
    from .config import get_config

    config = get_config()

    if level is None:
        level = config.log_level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_format is None:
        fmt = config.log_format.lower()
        json_format = fmt == "json" if fmt in ("json", "text") else not sys.stderr.isatty()

    if log_file is None:
        log_file = config.log_file

    formatter: logging.Formatter = JSONFormatter() if json_format else StandardFormatter()

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class ToolCallLogger:
    """Logs MCP tool calls without leaking credentials or huge payloads."""

    SENSITIVE_KEYS = ("password", "secret", "token", "api_key", "apikey", "auth", "credential")
    MAX_STRING = 500

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("codifier.tools")

    def log_call(self, tool_name: str, arguments: dict[str, Any], level: int = logging.DEBUG) -> None:
        self.logger.log(
            level,
            f"Tool call: {tool_name}",
            extra={"extra_data": {"tool": tool_name, "arguments": self.sanitize(arguments)}},
        )

    def log_result(
        self,
        tool_name: str,
        success: bool,
        duration_ms: float | None = None,
        level: int = logging.DEBUG,
    ) -> None:
        msg = f"Tool result: {tool_name} -> {'success' if success else 'failure'}"
        if duration_ms is not None:
            msg += f" ({duration_ms:.1f}ms)"
        self.logger.log(
            level,
            msg,
            extra={"extra_data": {"tool": tool_name, "success": success, "duration_ms": duration_ms}},
        )

    def sanitize(self, data: Any) -> Any:
        """Recursively redact sensitive keys and truncate long strings."""
        if isinstance(data, dict):
            return {
                key: "[REDACTED]"
                if any(s in str(key).lower() for s in self.SENSITIVE_KEYS)
                else self.sanitize(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [self.sanitize(item) for item in data]
        if isinstance(data, str) and len(data) > self.MAX_STRING:
            return data[: self.MAX_STRING] + "..."
        return data


tool_logger = ToolCallLogger()
