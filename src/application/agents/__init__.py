"""LLM provider abstractions used by the chat orchestrator."""

from application.agents.llm_provider import (
    LlmConfig,
    LlmMessage,
    LlmMessageRole,
    LlmProvider,
    LlmProviderError,
    LlmProviderType,
    LlmStreamChunk,
    LlmToolCall,
    LlmToolDefinition,
)

__all__ = [
    "LlmConfig",
    "LlmMessage",
    "LlmMessageRole",
    "LlmProvider",
    "LlmProviderError",
    "LlmProviderType",
    "LlmStreamChunk",
    "LlmToolCall",
    "LlmToolDefinition",
]
