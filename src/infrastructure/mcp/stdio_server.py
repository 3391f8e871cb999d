"""McpStdioServer - server side of the MCP stdio channel.

Reads newline-delimited JSON-RPC requests from stdin, dispatches them to the
registered tool handlers and writes responses to stdout. Requests are handled
one at a time, in arrival order.

stdout is the protocol channel: nothing else may be printed to it while the
server runs (log to stderr).
"""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TextIO

from jsonschema import Draft7Validator

from .models import McpError, McpRequest, McpResponse, McpServerInfo, McpToolDefinition, McpToolResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[McpToolResult]]

STDIN_LIMIT = 16 * 1024 * 1024  # bytes per request line


@dataclass
class RegisteredTool:
    """A tool definition bound to the coroutine that executes it."""

    definition: McpToolDefinition
    handler: ToolHandler


class McpStdioServer:
    """Minimal MCP server exposing tools over stdio.

    Supported methods: initialize, ping, tools/list, tools/call. Notifications
    (no id) are accepted and never answered. Tool arguments are checked
    against the tool's input schema before its handler runs.
    """

    def __init__(self, name: str, version: str = "1.0.0") -> None:
        self._info = McpServerInfo(name=name, version=version)
        self._tools: dict[str, RegisteredTool] = {}

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def add_tool(self, definition: McpToolDefinition, handler: ToolHandler) -> None:
        """Register a tool. A later registration under the same name replaces the earlier one."""
        self._tools[definition.name] = RegisteredTool(definition=definition, handler=handler)
        logger.debug(f"Registered MCP tool '{definition.name}'")

    async def handle_line(self, line: str | bytes) -> dict[str, Any] | None:
        """Handle one raw line; returns the response to write, if any."""
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        if not line.strip():
            return None

        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable MCP message: {line[:100]}")
            return McpResponse.failure(None, McpError.PARSE_ERROR, f"Parse error: {e.msg}").to_dict()

        if not isinstance(message, dict):
            return McpResponse.failure(None, McpError.INVALID_REQUEST, "Invalid request").to_dict()
        return await self.handle_message(message)

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Dispatch a decoded JSON-RPC message."""
        if "id" not in message:
            logger.debug(f"MCP notification received: {message.get('method')}")
            return None

        if "method" not in message:
            return McpResponse.failure(message.get("id"), McpError.INVALID_REQUEST, "Missing method").to_dict()

        request = McpRequest.from_dict(message)

        if request.method == "initialize":
            client = request.params.get("clientInfo", {})
            logger.info(f"MCP client connected: {client.get('name', 'unknown')} {client.get('version', '')}".rstrip())
            return McpResponse(id=request.id, result=self._info.to_dict()).to_dict()

        if request.method == "ping":
            return McpResponse(id=request.id, result={}).to_dict()

        if request.method == "tools/list":
            tools = [t.definition.to_dict() for t in self._tools.values()]
            return McpResponse(id=request.id, result={"tools": tools}).to_dict()

        if request.method == "tools/call":
            return (await self._call_tool(request)).to_dict()

        return McpResponse.failure(request.id, McpError.METHOD_NOT_FOUND, f"Method not found: {request.method}").to_dict()

    async def _call_tool(self, request: McpRequest) -> McpResponse:
        name = request.params.get("name", "")
        arguments = request.params.get("arguments") or {}

        tool = self._tools.get(name)
        if tool is None:
            return McpResponse.failure(request.id, McpError.INVALID_PARAMS, f"Unknown tool: {name}")
        if not isinstance(arguments, dict):
            return McpResponse.failure(request.id, McpError.INVALID_PARAMS, "Tool arguments must be an object")

        if tool.definition.input_schema:
            errors = list(Draft7Validator(tool.definition.input_schema).iter_errors(arguments))
            if errors:
                details = "; ".join(f"{'.'.join(str(p) for p in e.absolute_path) or 'root'}: {e.message}" for e in errors[:5])
                return McpResponse.failure(request.id, McpError.INVALID_PARAMS, f"Invalid arguments for tool {name}: {details}")

        logger.info(f"Executing tool '{name}'")
        try:
            result = await tool.handler(arguments)
        except Exception as e:
            logger.exception(f"Tool '{name}' raised")
            result = McpToolResult.text(f"Tool {name} failed: {e}", is_error=True)

        return McpResponse(id=request.id, result=result.to_dict())

    async def serve(self, reader: asyncio.StreamReader | None = None, output: TextIO | None = None) -> None:
        """Serve requests until the input stream closes.

        Args:
            reader: Source of request lines (defaults to stdin)
            output: Destination for responses (defaults to stdout)
        """
        if reader is None:
            reader = asyncio.StreamReader(limit=STDIN_LIMIT)
            loop = asyncio.get_running_loop()
            await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        output = output or sys.stdout

        logger.info(f"{self._info.name} serving {len(self._tools)} tools over stdio")
        while True:
            line = await reader.readline()
            if not line:
                break
            response = await self.handle_line(line)
            if response is not None:
                output.write(json.dumps(response) + "\n")
                output.flush()
        logger.info(f"{self._info.name} input closed, shutting down")
