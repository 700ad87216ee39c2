"""Data-warehouse queries through an Athena MCP sidecar.

The sidecar (``python3 -m athena_mcp.server`` by default) is spawned over
stdio with the ``mcp`` client library for each call and torn down
immediately afterwards, so no sidecar process outlives a request.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Literal

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from ..core.config import CoreSettings, get_config
from ..core.exceptions import ExternalToolError, ValidationException

logger = logging.getLogger(__name__)

QueryOperation = Literal["list-tables", "describe-tables", "execute-query"]
QUERY_OPERATIONS: tuple[str, ...] = ("list-tables", "describe-tables", "execute-query")

TRUNCATION_SUFFIX = "\n... [truncated]"

SessionFactory = Callable[[], AbstractAsyncContextManager[Any]]


def ensure_select_only(sql: str) -> str:
    """Reject anything that is not a SELECT statement."""
    if not sql.lstrip().lower().startswith("select"):
        raise ValidationException(
            f"Only SELECT queries are permitted. Received: {sql[:100]}",
            field="query",
        )
    return sql


def truncate_text(text: str, max_bytes: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    logger.warning(f"Athena response truncated from {len(encoded)} to {max_bytes} bytes")
    return encoded[:max_bytes].decode("utf-8", errors="ignore") + TRUNCATION_SUFFIX


class AthenaClient:
    """Per-call client for the Athena MCP sidecar.

    Args:
        config: Settings supplying the sidecar command and limits.
        session_factory: Returns an async context manager yielding an
            initialized ``ClientSession``-like object. Defaults to spawning
            the sidecar over stdio.
    """

    def __init__(self, config: CoreSettings | None = None, session_factory: SessionFactory | None = None):
        self.config = config or get_config()
        self._session_factory = session_factory or self._stdio_session

    def _server_params(self) -> StdioServerParameters:
        env = dict(os.environ)
        env.update(
            {
                "ATHENA_WORKGROUP": self.config.athena_workgroup,
                "ATHENA_TIMEOUT_SECONDS": str(self.config.athena_timeout_seconds),
                "ATHENA_S3_OUTPUT_LOCATION": self.config.athena_s3_output_location,
            }
        )
        if self.config.athena_database:
            env["ATHENA_DATABASE"] = self.config.athena_database
        return StdioServerParameters(command=self.config.athena_command, args=list(self.config.athena_args), env=env)

    @asynccontextmanager
    async def _stdio_session(self) -> AsyncIterator[ClientSession]:
        logger.info("Connecting to Athena MCP sidecar")
        async with stdio_client(self._server_params()) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                yield session
        logger.debug("Athena MCP sidecar disconnected")

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        try:
            async with self._session_factory() as session:
                result = await session.call_tool(tool_name, arguments)
        except ExternalToolError:
            raise
        except Exception as e:
            logger.error(f"Athena sidecar call {tool_name} failed: {e}")
            raise ExternalToolError(f"Athena query failed: {e}", tool="athena") from e

        if getattr(result, "isError", False):
            raise ExternalToolError(f"Athena tool {tool_name} returned an error: {self._extract(result)}", tool="athena")
        return self._extract(result)

    def _extract(self, result: Any) -> Any:
        max_bytes = self.config.athena_max_response_bytes
        for item in getattr(result, "content", None) or []:
            if getattr(item, "type", None) == "text":
                return truncate_text(item.text, max_bytes)

        if hasattr(result, "model_dump"):
            result = result.model_dump(mode="json")
        serialized = json.dumps(result, default=str)
        if len(serialized.encode("utf-8")) > max_bytes:
            return truncate_text(serialized, max_bytes)
        return result

    def _with_database(self, arguments: dict[str, Any], database: str | None) -> dict[str, Any]:
        database = database or self.config.athena_database
        if database:
            arguments["database"] = database
        return arguments

    async def list_tables(self, database: str | None = None) -> Any:
        logger.info("Listing Athena tables")
        return await self._call("list_tables", self._with_database({}, database))

    async def describe_tables(self, table_names: list[str], database: str | None = None) -> Any:
        logger.info(f"Describing Athena tables: {', '.join(table_names)}")
        return await self._call("describe_tables", self._with_database({"table_names": list(table_names)}, database))

    async def execute_query(self, sql: str, database: str | None = None) -> Any:
        ensure_select_only(sql)
        logger.info("Executing Athena query", extra={"extra_data": {"query": sql[:200]}})
        return await self._call("execute_query", self._with_database({"query": sql}, database))

    async def run(
        self,
        operation: str,
        *,
        query: str | None = None,
        table_names: list[str] | None = None,
        database: str | None = None,
    ) -> Any:
        """Run one of the ``QUERY_OPERATIONS`` by name."""
        if operation == "list-tables":
            return await self.list_tables(database)
        if operation == "describe-tables":
            if not table_names:
                raise ValidationException("table_names is required for describe-tables", field="table_names")
            return await self.describe_tables(table_names, database)
        if operation == "execute-query":
            if not query:
                raise ValidationException("query is required for execute-query", field="query")
            return await self.execute_query(query, database)
        raise ValidationException(f"Unknown query operation: {operation}", field="operation", value=operation)
