"""Tool value objects exchanged between the model, the orchestrator and the MCP server.

- ToolDescriptor: a tool advertised by the MCP server (name, description, input schema)
- ToolCallIntent: a tool call requested by the model mid-stream
- ToolResult: the outcome of invoking one ToolCallIntent
"""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool registered for the lifetime of a chat session.

    Attributes:
        name: Tool name, unique within a session
        description: Human-readable description shown to the model
        input_schema: JSON Schema describing the tool arguments
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mcp(cls, data: dict[str, Any]) -> "ToolDescriptor":
        """Create from a `tools/list` response item."""
        return cls(
            name=data.get("name", ""),
            description=data.get("description", "") or "",
            input_schema=data.get("inputSchema", {}) or {},
        )


@dataclass
class ToolCallIntent:
    """A tool call decided by the model.

    Attributes:
        tool_name: Name of the tool to call
        arguments: Arguments as produced by the model. Usually a mapping; some
            models send a JSON-encoded string instead.
    """

    tool_name: str
    arguments: dict[str, Any] | str = field(default_factory=dict)

    @classmethod
    def from_llm(cls, name: str, arguments: Any) -> "ToolCallIntent":
        """Create from a model tool call, decoding JSON-string arguments."""
        if isinstance(arguments, str):
            try:
                decoded = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError:
                return cls(tool_name=name, arguments=arguments)
            arguments = decoded
        if arguments is None:
            arguments = {}
        return cls(tool_name=name, arguments=arguments)


@dataclass
class ToolResult:
    """Outcome of a single tool invocation.

    Exactly one of `content` (serialized tool output) or `error` is meaningful.
    """

    tool_name: str
    content: str = ""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, tool_name: str, content: str) -> "ToolResult":
        return cls(tool_name=tool_name, content=content)

    @classmethod
    def failure(cls, tool_name: str, error: str) -> "ToolResult":
        return cls(tool_name=tool_name, error=error)

    def to_prompt_line(self) -> str:
        """Render as one entry of the summarization prompt."""
        if self.succeeded:
            return self.content
        return f"{self.tool_name} failed: {self.error}"
