"""Domain layer for the Jira Agent Host.

Contains:
- models/: Tool value objects (descriptors, call intents, results)
"""

from domain.models import ToolCallIntent, ToolDescriptor, ToolResult

__all__ = [
    "ToolCallIntent",
    "ToolDescriptor",
    "ToolResult",
]
