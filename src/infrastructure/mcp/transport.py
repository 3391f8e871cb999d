"""MCP transport interface.

Defines the client-side channel to an MCP tool server and the transport error
hierarchy. Everything the tool invoker catches derives from McpTransportError.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import McpServerInfo, McpToolDefinition, McpToolResult


class McpTransportError(Exception):
    """Base exception for MCP transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class McpConnectionError(McpTransportError):
    """Error establishing or maintaining the connection to the MCP server."""


class McpProtocolError(McpTransportError):
    """Invalid message or JSON-RPC error returned by the MCP server."""


class McpTimeoutError(McpTransportError):
    """Timeout waiting for an MCP server response."""


class IMcpTransport(ABC):
    """Client-side channel to one MCP server.

    Usage:
        transport = StdioTransport(command=["python", "jira_server.py"])
        await transport.connect()
        try:
            tools = await transport.list_tools()
            result = await transport.call_tool("get_issue", {"issueKey": "PROJ-1"})
        finally:
            await transport.disconnect()

    A transport is a single bound connection: implementations must serialize
    request/response pairs when shared by concurrent callers.
    """

    @abstractmethod
    async def connect(self) -> "McpServerInfo":
        """Open the channel and perform the `initialize` handshake.

        Raises:
            McpConnectionError: If the channel cannot be opened
            McpProtocolError: If the handshake fails
            McpTimeoutError: If the server does not answer in time
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the channel. Idempotent."""
        ...

    @abstractmethod
    async def list_tools(self) -> list["McpToolDefinition"]:
        """Send `tools/list` and return the advertised tools."""
        ...

    @abstractmethod
    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> "McpToolResult":
        """Send `tools/call` and wait for the result.

        Raises:
            McpConnectionError: If not connected or the connection drops
            McpProtocolError: If the server answers with a JSON-RPC error
            McpTimeoutError: If the tool does not answer in time
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True if connected and ready to exchange messages."""
        ...

    @property
    @abstractmethod
    def server_info(self) -> "McpServerInfo | None":
        """Server identity from the handshake, None when disconnected."""
        ...

    async def __aenter__(self) -> "IMcpTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
