"""Tool backends that actually run a tool once it has been dispatched.

Each backend serves exactly one ``ToolBackendKind``:
- ApiToolBackend: calls an HTTP endpoint described by the tool configuration
- McpToolBackend: calls a tool on an MCP server (stdio or SSE transport)
- NativeFunctionBackend: calls an in-process Python function
"""

import asyncio
import base64
import inspect
import json
import logging
import shlex
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.types import CallToolResult

from domain.entities import Tool, ToolBackendKind

logger = logging.getLogger(__name__)

HTTP_METHODS = {"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"}


class ToolBackendError(Exception):
    """Raised when a backend cannot run a tool or the tool itself fails."""


class ToolBackend(Protocol):
    """Runs tools of one kind."""

    kind: ToolBackendKind

    async def execute(self, tool: Tool, parameters: dict[str, Any]) -> Any: ...


def _load_json_object(raw: str | None, field: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolBackendError(f"Invalid JSON in tool {field}") from e
    if not isinstance(value, dict):
        raise ToolBackendError(f"Tool {field} must be a JSON object")
    return value


def _require(config: dict[str, Any], key: str) -> Any:
    value = config.get(key)
    if value in (None, ""):
        raise ToolBackendError(f"Required configuration value '{key}' is missing")
    return value


class ApiToolBackend:
    """Executes tools backed by an HTTP API."""

    kind = ToolBackendKind.API

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        """Initialize API tool backend.

        Args:
            http_client: Shared HTTP client (owned by the caller)
        """
        self.http_client = http_client

    async def execute(self, tool: Tool, parameters: dict[str, Any]) -> Any:
        """Send the request described by the tool and decode the response.

        GET requests carry the parameters as query string; every other
        method sends them as a JSON body.

        Raises:
            ToolBackendError: On bad configuration or a non-2xx response
        """
        configuration = _load_json_object(tool.configuration, "configuration")
        auth = _load_json_object(tool.authentication, "authentication")
        headers = {
            key: str(value)
            for key, value in _load_json_object(tool.headers, "headers").items()
        }

        endpoint = _require(configuration, "endpoint")
        method = str(configuration.get("method", "GET")).upper()
        if method not in HTTP_METHODS:
            raise ToolBackendError(f"Unsupported HTTP method: {method}")

        headers.update(self._auth_headers(auth))

        request_kwargs: dict[str, Any] = {"headers": headers}
        if method == "GET":
            request_kwargs["params"] = {
                key: "" if value is None else str(value)
                for key, value in parameters.items()
            }
        elif parameters:
            request_kwargs["json"] = parameters

        logger.info(f"Calling API tool '{tool.name}': {method} {endpoint}")
        try:
            response = await self.http_client.request(method, endpoint, **request_kwargs)
        except httpx.HTTPError as e:
            raise ToolBackendError(
                f"Failed to execute API tool '{tool.name}': {e}"
            ) from e

        if response.is_error:
            raise ToolBackendError(
                f"API request failed with status {response.status_code}: {response.text}"
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _auth_headers(auth: dict[str, Any]) -> dict[str, str]:
        auth_type = str(auth.get("type", "")).lower()

        if auth_type == "bearer" and auth.get("token"):
            return {"Authorization": f"Bearer {auth['token']}"}

        if auth_type == "apikey" and auth.get("key") and auth.get("value"):
            return {str(auth["key"]): str(auth["value"])}

        if auth_type == "basic" and "username" in auth and "password" in auth:
            credentials = base64.b64encode(
                f"{auth['username']}:{auth['password']}".encode()
            ).decode("ascii")
            return {"Authorization": f"Basic {credentials}"}

        return {}


class McpToolBackend:
    """Executes tools hosted on MCP servers.

    A client session is opened for each call and closed right after.
    """

    kind = ToolBackendKind.MCP

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    async def execute(self, tool: Tool, parameters: dict[str, Any]) -> Any:
        """Call the configured MCP tool.

        Raises:
            ToolBackendError: On bad configuration or when the server reports an error
        """
        configuration = _load_json_object(tool.configuration, "configuration")
        auth = _load_json_object(tool.authentication, "authentication")

        endpoint = str(_require(configuration, "endpoint"))
        remote_name = str(configuration.get("name") or tool.name)
        transport = str(configuration.get("mcpType", "stdio")).lower()

        async with AsyncExitStack() as stack:
            read_stream, write_stream = await stack.enter_async_context(
                self._open_transport(transport, endpoint, configuration, auth)
            )
            session = await stack.enter_async_context(
                ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=timedelta(seconds=self.timeout),
                )
            )
            await session.initialize()
            result = await session.call_tool(remote_name, parameters)

        content = self._unwrap_result(remote_name, result)
        logger.info(f"Executed MCP tool '{remote_name}' on endpoint '{endpoint}'")
        return content

    @classmethod
    def _unwrap_result(cls, remote_name: str, result: CallToolResult) -> Any:
        content = cls._extract_content(result.content or [])
        if result.isError:
            raise ToolBackendError(f"MCP tool '{remote_name}' failed: {content}")
        return content

    @staticmethod
    def _open_transport(
        transport: str,
        endpoint: str,
        configuration: dict[str, Any],
        auth: dict[str, Any],
    ) -> Any:
        if transport == "stdio":
            command, *args = shlex.split(endpoint)
            env = {str(k): str(v) for k, v in (configuration.get("env") or {}).items()}
            env.update({str(k): str(v) for k, v in auth.items()})
            params = StdioServerParameters(
                command=command,
                args=args,
                env=env or None,
                cwd=configuration.get("workingDirectory"),
            )
            return stdio_client(params)

        if transport == "sse":
            return sse_client(endpoint, headers={k: str(v) for k, v in auth.items()})

        raise ToolBackendError(f"Unsupported MCP transport type: {transport}")

    @staticmethod
    def _extract_content(blocks: list[Any]) -> Any:
        if not blocks:
            return None
        if len(blocks) == 1 and getattr(blocks[0], "type", None) == "text":
            return blocks[0].text

        extracted: list[dict[str, Any]] = []
        for block in blocks:
            block_type = getattr(block, "type", "unknown")
            if block_type == "text":
                extracted.append({"type": "text", "text": block.text})
            elif block_type == "image":
                extracted.append(
                    {"type": "image", "data": block.data, "mimeType": block.mimeType}
                )
            else:
                extracted.append({"type": block_type, "content": str(block)})
        return extracted


NativeFunction = Callable[..., Any] | Callable[..., Awaitable[Any]]


class NativeFunctionBackend:
    """Executes tools implemented as Python functions in this process.

    Functions receive the parsed parameters as keyword arguments; synchronous
    ones run in a worker thread. The function is looked up by the ``function``
    key of the tool configuration, falling back to the tool name.
    """

    kind = ToolBackendKind.NATIVE

    def __init__(self) -> None:
        self._functions: dict[str, NativeFunction] = {}

    def register(self, name: str, function: NativeFunction) -> None:
        self._functions[name.casefold()] = function
        logger.debug(f"Registered native function: {name}")

    async def execute(self, tool: Tool, parameters: dict[str, Any]) -> Any:
        configuration = _load_json_object(tool.configuration, "configuration")
        name = str(configuration.get("function") or tool.name)

        function = self._functions.get(name.casefold())
        if function is None:
            raise ToolBackendError(f"Native function '{name}' is not registered")

        if inspect.iscoroutinefunction(function):
            return await function(**parameters)

        # Blocking functions run in a worker thread
        result = await asyncio.to_thread(function, **parameters)
        if inspect.isawaitable(result):
            result = await result
        return result


def get_current_time(timezone: str | None = None) -> str:
    """Built-in native tool returning the current time in ISO format.

    Args:
        timezone: IANA zone name, UTC when omitted

    Raises:
        ToolBackendError: If the zone is unknown
    """
    if not timezone:
        return datetime.now(UTC).isoformat()
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ToolBackendError(f"Unknown timezone: {timezone}") from e
    return datetime.now(zone).isoformat()
