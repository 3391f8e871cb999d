"""MCP (Model Context Protocol) infrastructure layer.

- Transport abstraction and the stdio client transport (agent host side)
- Stdio server (tool server side)
- JSON-RPC protocol message models shared by both sides
"""

from .models import (
    PROTOCOL_VERSION,
    McpContent,
    McpContentType,
    McpError,
    McpNotification,
    McpRequest,
    McpResponse,
    McpServerInfo,
    McpToolDefinition,
    McpToolResult,
)
from .stdio_server import McpStdioServer
from .stdio_transport import StdioTransport, command_for_server
from .transport import IMcpTransport, McpConnectionError, McpProtocolError, McpTimeoutError, McpTransportError

__all__ = [
    # Transport interface
    "IMcpTransport",
    "McpTransportError",
    "McpConnectionError",
    "McpProtocolError",
    "McpTimeoutError",
    # Transports
    "StdioTransport",
    "command_for_server",
    # Server
    "McpStdioServer",
    # Protocol models
    "PROTOCOL_VERSION",
    "McpContent",
    "McpContentType",
    "McpError",
    "McpNotification",
    "McpRequest",
    "McpResponse",
    "McpServerInfo",
    "McpToolDefinition",
    "McpToolResult",
]
