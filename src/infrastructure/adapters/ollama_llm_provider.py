"""Ollama LLM Provider implementation.

This module provides the Ollama implementation of the LlmProvider interface,
talking to the `/api/chat` endpoint with newline-delimited JSON streaming.

Features:
- Streaming chat completions
- Tool/function calling support (tool calls detected on any record)
- Health check and model availability verification
- Configurable via LlmConfig or Settings
"""

import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional
from uuid import uuid4

import httpx

from application.agents.llm_provider import LlmConfig, LlmMessage, LlmProvider, LlmProviderError, LlmProviderType, LlmStreamChunk, LlmToolCall, LlmToolDefinition

if TYPE_CHECKING:
    from application.settings import Settings

logger = logging.getLogger(__name__)


class OllamaLlmProvider(LlmProvider):
    """Ollama implementation of the LLM provider interface.

    Configuration:
        - base_url: Ollama API URL (default: http://localhost:11434)
        - model: Model name (e.g., "qwen3:14b", "gemma3:27b")
        - temperature, top_p: Sampling parameters
        - max_tokens: Sent as `num_predict`
        - extra["num_ctx"]: Context window size (default: 2048)

    Usage:
        config = LlmConfig(model="qwen3:14b", base_url="http://localhost:11434")
        provider = OllamaLlmProvider(config)
        async for chunk in provider.chat_stream([LlmMessage.user("Hello!")]):
            print(chunk.content, end="")
    """

    def __init__(self, config: LlmConfig) -> None:
        """Initialize the Ollama provider.

        Args:
            config: LLM configuration
        """
        super().__init__(config)
        self._base_url = (config.base_url or "http://localhost:11434").rstrip("/")
        self._num_ctx = config.extra.get("num_ctx", 2048)
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider_type(self) -> LlmProviderType:
        return LlmProviderType.OLLAMA

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._config.timeout,
            )
        return self._client

    def _convert_messages(self, messages: list[LlmMessage]) -> list[dict[str, Any]]:
        """Convert LlmMessage list to Ollama format."""
        return [msg.to_dict() for msg in messages]

    def _convert_tools(self, tools: Optional[list[LlmToolDefinition]]) -> Optional[list[dict[str, Any]]]:
        """Convert tool definitions to Ollama format."""
        if not tools:
            return None
        return [tool.to_ollama_format() for tool in tools]

    def _build_options(self) -> dict[str, Any]:
        """Build the sampling options sent with every request."""
        options: dict[str, Any] = {
            "temperature": self._config.temperature,
            "num_ctx": self._num_ctx,
        }
        if self._config.max_tokens is not None:
            options["num_predict"] = self._config.max_tokens
        if self._config.top_p is not None:
            options["top_p"] = self._config.top_p
        return options

    def _parse_tool_calls(self, ollama_tool_calls: list[dict[str, Any]]) -> list[LlmToolCall]:
        """Parse tool calls from an Ollama response record.

        Args:
            ollama_tool_calls: Tool calls from Ollama response

        Returns:
            List of LlmToolCall objects, in the order the model sent them
        """
        tool_calls = []
        for tc in ollama_tool_calls:
            func = tc.get("function", {})
            tool_calls.append(
                LlmToolCall(
                    id=tc.get("id", str(uuid4())),
                    name=func.get("name", ""),
                    arguments=func.get("arguments", {}),
                )
            )
        return tool_calls

    def _error(self, message: str, error_code: str, is_retryable: bool = False, **details: Any) -> LlmProviderError:
        return LlmProviderError(
            message=message,
            error_code=error_code,
            provider=self.provider_type.value,
            is_retryable=is_retryable,
            details={"model": self._config.model, **details},
        )

    async def chat_stream(
        self,
        messages: list[LlmMessage],
        tools: Optional[list[LlmToolDefinition]] = None,
    ) -> AsyncIterator[LlmStreamChunk]:
        """Send a streaming chat completion request to Ollama.

        Every record carrying `message.tool_calls` yields a chunk with those
        calls, whether or not it is the final record. The HTTP response is
        released as soon as the consumer closes the generator.

        Args:
            messages: Conversation messages
            tools: Optional list of available tools

        Yields:
            Streaming chunks from Ollama

        Raises:
            LlmProviderError: On transport failure, HTTP error status, an error
                record, or a stream that ends without its `done` record
        """
        client = await self._get_client()

        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": self._convert_messages(messages),
            "stream": True,
            "options": self._build_options(),
        }

        ollama_tools = self._convert_tools(tools)
        if ollama_tools:
            payload["tools"] = ollama_tools

        try:
            logger.debug(f"Ollama stream request: model={self._config.model}, messages={len(messages)}, tools={len(tools or [])}")

            async with client.stream("POST", "/api/chat", json=payload) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"Ollama HTTP error: {response.status_code} - {body[:200]}")
                    raise self._error(
                        f"Ollama returned HTTP {response.status_code}",
                        "http_error",
                        is_retryable=response.status_code >= 500,
                        status_code=response.status_code,
                        body=body[:500],
                    )

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue

                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning(f"Failed to parse Ollama response line: {line}")
                        continue

                    if "error" in chunk:
                        logger.error(f"Ollama stream error: {chunk['error']}")
                        raise self._error(str(chunk["error"]), "backend_error")

                    message = chunk.get("message") or {}
                    content = message.get("content") or ""
                    tool_calls = None
                    if message.get("tool_calls"):
                        tool_calls = self._parse_tool_calls(message["tool_calls"])

                    if chunk.get("done", False):
                        yield LlmStreamChunk(
                            content=content,
                            tool_calls=tool_calls,
                            done=True,
                            finish_reason="tool_calls" if tool_calls else chunk.get("done_reason", "stop"),
                        )
                        return

                    if content or tool_calls:
                        yield LlmStreamChunk(
                            content=content,
                            tool_calls=tool_calls,
                            finish_reason="tool_calls" if tool_calls else None,
                        )

        except httpx.RequestError as e:
            logger.error(f"Ollama request error: {e}")
            raise self._error(f"Ollama request failed: {e}", "connection_error", is_retryable=True) from e

        raise self._error("Ollama stream ended before completion", "incomplete_stream", is_retryable=True)

    async def health_check(self) -> bool:
        """Check if Ollama is available and the model is loaded.

        Returns:
            True if healthy, False otherwise
        """
        try:
            client = await self._get_client()
            response = await client.get("/api/tags")
            response.raise_for_status()

            data = response.json()
            models = [m.get("name", "") for m in data.get("models", [])]

            model_name = self._config.model.split(":")[0]
            model_available = any(self._config.model in m or m.startswith(model_name) for m in models)

            if not model_available:
                logger.warning(f"Model '{self._config.model}' not found. Available: {models}")
                return False

            logger.debug(f"Ollama health check passed. Model '{self._config.model}' available.")
            return True

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def from_settings(settings: "Settings", model: Optional[str] = None) -> "OllamaLlmProvider":
        """Create a provider from application settings.

        Args:
            settings: Application settings
            model: Model to use instead of `settings.ollama_model`

        Returns:
            A configured provider
        """
        model = model or settings.ollama_model
        if not model:
            raise ValueError("ollama_model cannot be empty - set OLLAMA_MODEL environment variable")

        config = LlmConfig(
            model=model,
            temperature=settings.ollama_temperature,
            max_tokens=settings.ollama_num_predict,
            timeout=settings.ollama_timeout,
            base_url=settings.ollama_url,
            extra={"num_ctx": settings.ollama_num_ctx},
        )
        logger.info(f"✅ Configured OllamaLlmProvider: model={model}, url={settings.ollama_url}")
        return OllamaLlmProvider(config)
