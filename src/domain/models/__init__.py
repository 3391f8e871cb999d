"""Domain value objects for the Jira Agent Host.

These are plain dataclasses shared by the orchestrator, the tool invoker
and the tool registry.
"""

from .tool import ToolCallIntent, ToolDescriptor, ToolResult

__all__ = [
    "ToolCallIntent",
    "ToolDescriptor",
    "ToolResult",
]
