"""MCP protocol message models.

JSON-RPC 2.0 structures exchanged over the stdio channel between the agent
host (client side) and the Jira tool server (server side). Both sides use the
same dataclasses, so every model serializes in both directions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from domain.models import ToolDescriptor

# MCP protocol version spoken by both ends of the stdio channel
PROTOCOL_VERSION = "2024-11-05"


class McpContentType(str, Enum):
    """Types of content blocks in MCP tool results."""

    TEXT = "text"
    IMAGE = "image"
    RESOURCE = "resource"


@dataclass
class McpRequest:
    """JSON-RPC request (client to server).

    Attributes:
        id: Request identifier used to correlate the response
        method: MCP method (e.g., "tools/list", "tools/call")
        params: Method parameters
    """

    id: int | str
    method: str
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-RPC format."""
        return {
            "jsonrpc": "2.0",
            "id": self.id,
            "method": self.method,
            "params": self.params,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpRequest":
        """Create from JSON-RPC dictionary."""
        return cls(
            id=data["id"],
            method=data["method"],
            params=data.get("params") or {},
        )


@dataclass
class McpError:
    """JSON-RPC error object carried by an error response."""

    code: int
    message: str
    data: Any = None

    # Standard JSON-RPC error codes
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpError":
        """Create from dictionary."""
        return cls(
            code=data.get("code", cls.INTERNAL_ERROR),
            message=data.get("message", ""),
            data=data.get("data"),
        )


@dataclass
class McpResponse:
    """JSON-RPC response (server to client).

    Carries either a result or an error, never both.
    """

    id: int | str | None
    result: dict[str, Any] | None = None
    error: McpError | None = None

    def is_error(self) -> bool:
        """Check if this is an error response."""
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-RPC format."""
        response: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self.id,
        }
        if self.error:
            response["error"] = self.error.to_dict()
        else:
            response["result"] = self.result or {}
        return response

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpResponse":
        """Create from JSON-RPC dictionary."""
        error = None
        if "error" in data:
            error = McpError.from_dict(data["error"])

        return cls(
            id=data.get("id", 0),
            result=data.get("result"),
            error=error,
        )

    @classmethod
    def failure(cls, request_id: int | str | None, code: int, message: str) -> "McpResponse":
        """Create an error response."""
        return cls(id=request_id, error=McpError(code=code, message=message))


@dataclass
class McpNotification:
    """JSON-RPC notification (no id, no response expected)."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-RPC format (no id for notifications)."""
        return {
            "jsonrpc": "2.0",
            "method": self.method,
            "params": self.params,
        }


@dataclass
class McpContent:
    """Content block within an MCP tool result.

    Attributes:
        type: Content type (text, image, resource)
        text: Text content (for type="text")
        data: Base64 payload (for type="image")
        mime_type: MIME type for binary content
        uri: Resource URI (for type="resource")
    """

    type: McpContentType | str
    text: str | None = None
    data: str | None = None
    mime_type: str | None = None
    uri: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        result: dict[str, Any] = {"type": self.type.value if isinstance(self.type, McpContentType) else self.type}
        if self.text is not None:
            result["text"] = self.text
        if self.data is not None:
            result["data"] = self.data
        if self.mime_type is not None:
            result["mimeType"] = self.mime_type
        if self.uri is not None:
            result["uri"] = self.uri
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpContent":
        """Create from dictionary."""
        return cls(
            type=data.get("type", "text"),
            text=data.get("text"),
            data=data.get("data"),
            mime_type=data.get("mimeType"),
            uri=data.get("uri"),
        )

    @staticmethod
    def text_content(text: str) -> "McpContent":
        """Create a text content block."""
        return McpContent(type=McpContentType.TEXT, text=text)


@dataclass
class McpToolResult:
    """Result of a `tools/call` request.

    Attributes:
        content: Content blocks returned by the tool
        is_error: Whether the tool reported a failure
    """

    content: list[McpContent] = field(default_factory=list)
    is_error: bool = False

    def get_text(self) -> str:
        """Get combined text from all text content blocks."""
        return "\n".join(c.text or "" for c in self.content if c.type in (McpContentType.TEXT, "text"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "content": [c.to_dict() for c in self.content],
            "isError": self.is_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpToolResult":
        """Create from tools/call response."""
        return cls(
            content=[McpContent.from_dict(c) for c in data.get("content", [])],
            is_error=bool(data.get("isError", False)),
        )

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "McpToolResult":
        """Create a result holding a single text block."""
        return cls(content=[McpContent.text_content(text)], is_error=is_error)


@dataclass
class McpToolDefinition:
    """A tool as advertised by `tools/list`."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a `tools/list` item."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpToolDefinition":
        """Create from tools/list response item."""
        return cls(
            name=data.get("name", ""),
            description=data.get("description", "") or "",
            input_schema=data.get("inputSchema", {}) or {},
        )

    def to_descriptor(self) -> ToolDescriptor:
        """Convert to the domain descriptor registered in a chat session."""
        return ToolDescriptor(name=self.name, description=self.description, input_schema=self.input_schema)


@dataclass
class McpServerInfo:
    """Server identity returned by the `initialize` handshake."""

    name: str
    version: str
    protocol_version: str = PROTOCOL_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Serialize to an `initialize` result."""
        return {
            "protocolVersion": self.protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.name, "version": self.version},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "McpServerInfo":
        """Create from initialize response."""
        server_info = data.get("serverInfo", {})
        return cls(
            name=server_info.get("name", "unknown"),
            version=server_info.get("version", "unknown"),
            protocol_version=data.get("protocolVersion", PROTOCOL_VERSION),
        )
