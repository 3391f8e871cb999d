"""Tool registry: the tool set advertised by the MCP server for one chat session."""

import logging
from collections.abc import Iterable
from typing import Any

from application.agents.llm_provider import LlmToolDefinition
from domain.models import ToolDescriptor

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Holds the session's ToolDescriptors and exposes them in model format.

    Registration order is preserved. Duplicate names are kept as registered;
    lookups return the first descriptor with a given name.
    """

    def __init__(self) -> None:
        self._descriptors: list[ToolDescriptor] = []

    @staticmethod
    def to_definition(descriptor: ToolDescriptor) -> LlmToolDefinition:
        """Convert a descriptor to the provider-agnostic tool definition."""
        return LlmToolDefinition(
            name=descriptor.name,
            description=descriptor.description,
            parameters=descriptor.input_schema,
        )

    def register(self, descriptors: Iterable[ToolDescriptor]) -> list[dict[str, Any]]:
        """Register descriptors and return them in Ollama function-calling format.

        Args:
            descriptors: Tools as advertised by the MCP server

        Returns:
            One `{"type": "function", "function": {...}}` entry per descriptor,
            in input order
        """
        added = list(descriptors)
        self._descriptors.extend(added)
        logger.debug(f"Registered {len(added)} tools ({len(self._descriptors)} total)")
        return [self.to_definition(d).to_ollama_format() for d in added]

    def get(self, name: str) -> ToolDescriptor | None:
        """Get the first registered descriptor with this name."""
        return next((d for d in self._descriptors if d.name == name), None)

    def clear(self) -> None:
        self._descriptors.clear()

    @property
    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._descriptors)

    @property
    def definitions(self) -> list[LlmToolDefinition]:
        """The registered tools, ready to attach to a model request."""
        return [self.to_definition(d) for d in self._descriptors]

    @property
    def names(self) -> list[str]:
        return [d.name for d in self._descriptors]

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return any(d.name == name for d in self._descriptors)
