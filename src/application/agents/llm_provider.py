"""Model backend contract for the Jira agent host.

The orchestrator only ever streams: it sends a user or system message, with or
without the session's tools, and consumes `LlmStreamChunk`s until the backend
marks the end. Anything that stops a stream early is an `LlmProviderError`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Optional


class LlmProviderType(str, Enum):
    """Backends the host can stream from."""

    OLLAMA = "ollama"


class LlmProviderError(Exception):
    """A model request could not be streamed to completion.

    Attributes:
        message: Text shown to the user in the error line
        error_code: http_error, backend_error, connection_error or incomplete_stream
        provider: Backend that failed
        is_retryable: Whether the same request could succeed later (never retried here)
        details: Model name, HTTP status and similar context for logs
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        provider: str,
        is_retryable: bool = False,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.provider = provider
        self.is_retryable = is_retryable
        self.details = details or {}


class LlmMessageRole(str, Enum):
    """Roles used by the two model passes."""

    SYSTEM = "system"  # summarization prompt
    USER = "user"  # the query


@dataclass
class LlmMessage:
    """One message sent to the model."""

    role: LlmMessageRole
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "LlmMessage":
        return cls(role=LlmMessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "LlmMessage":
        return cls(role=LlmMessageRole.USER, content=content)


@dataclass
class LlmToolCall:
    """A tool call decided by the model.

    `arguments` is kept exactly as the backend sent it (a mapping or a JSON
    string); decoding happens when the orchestrator builds its intents.
    """

    id: str
    name: str
    arguments: Any


@dataclass
class LlmStreamChunk:
    """One record of a model stream.

    Attributes:
        content: Text delta, possibly empty
        tool_calls: The model's tool calls, on the record that carries them
        done: Set on the backend's final record
        finish_reason: "stop", "tool_calls", ... on records that end a turn
    """

    content: str = ""
    tool_calls: Optional[list[LlmToolCall]] = None
    done: bool = False
    finish_reason: Optional[str] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass
class LlmToolDefinition:
    """A session tool as offered to the model: name, description and JSON Schema parameters."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_ollama_format(self) -> dict[str, Any]:
        """Render as an entry of the Ollama `tools` array."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class LlmConfig:
    """Connection and sampling settings of one model.

    Attributes:
        model: Model identifier, e.g. "qwen3:14b"
        temperature: Sampling temperature
        top_p: Nucleus sampling (backend default when None)
        max_tokens: Generation cap per response (backend default when None)
        timeout: HTTP timeout in seconds
        base_url: Backend URL
        extra: Backend-specific options such as `num_ctx`
    """

    model: str
    temperature: float = 0.7
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout: float = 120.0
    base_url: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


class LlmProvider(ABC):
    """A streaming model backend.

    A chat session holds two instances: one for the primary pass, which gets
    the tools, and one for the summarization pass.
    """

    def __init__(self, config: LlmConfig) -> None:
        self._config = config

    @property
    @abstractmethod
    def provider_type(self) -> LlmProviderType: ...

    @property
    def config(self) -> LlmConfig:
        return self._config

    @property
    def model(self) -> str:
        return self._config.model

    @abstractmethod
    def chat_stream(
        self,
        messages: list[LlmMessage],
        tools: Optional[list[LlmToolDefinition]] = None,
    ) -> AsyncIterator[LlmStreamChunk]:
        """Stream the model's answer as an async generator.

        Closing the generator early must release the underlying request.

        Raises:
            LlmProviderError: If the stream cannot be read to its final record
        """
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> bool:
        """Whether the backend is reachable and serves the configured model."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the provider."""
