"""Chat session: the long-lived resources shared by every query.

A ChatSession owns the MCP transport to the tool server, the tool registry
filled from `tools/list`, the tool invoker, and the two model providers
(primary pass with tools, summarization pass without). It is built once by
the host, connected at startup and closed at shutdown.
"""

import logging
from typing import TYPE_CHECKING, Optional

from neuroglia.hosting.abstractions import HostedService

from application.agents.llm_provider import LlmProvider
from application.settings import Settings, app_settings
from infrastructure.mcp import IMcpTransport, McpServerInfo, StdioTransport, command_for_server

from .tool_invoker import ToolInvoker
from .tool_registry import ToolRegistry

if TYPE_CHECKING:
    from neuroglia.hosting.web import WebApplicationBuilder

logger = logging.getLogger(__name__)


class ChatSession:
    """Connected tool set and model providers for the lifetime of a host process.

    Usage:
        session = ChatSession.from_settings(app_settings)
        await session.connect()
        try:
            orchestrator = StreamingOrchestrator(session)
            ...
        finally:
            await session.close()
    """

    def __init__(
        self,
        transport: IMcpTransport,
        primary_llm: LlmProvider,
        summary_llm: LlmProvider,
        validate_tool_arguments: bool = True,
        tool_timeout: Optional[float] = None,
        debug: bool = False,
    ) -> None:
        """Initialize the chat session.

        Args:
            transport: MCP transport to the tool server (not yet connected)
            primary_llm: Provider for the primary pass, which receives the tool schema
            summary_llm: Provider for the summarization pass
            validate_tool_arguments: Check tool arguments against input schemas
            tool_timeout: Per-call timeout override for tool invocations
            debug: Log registered tools and per-query processing time
        """
        self.transport = transport
        self.primary_llm = primary_llm
        self.summary_llm = summary_llm
        self.debug = debug
        self.registry = ToolRegistry()
        self.invoker = ToolInvoker(
            transport,
            registry=self.registry,
            validate_arguments=validate_tool_arguments,
            timeout=tool_timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatSession":
        """Build a session spawning the configured MCP server and Ollama models."""
        from infrastructure.adapters import OllamaLlmProvider

        transport = StdioTransport(
            command=command_for_server(settings.mcp_server_path),
            timeout=settings.mcp_timeout,
        )
        return cls(
            transport=transport,
            primary_llm=OllamaLlmProvider.from_settings(settings, settings.ollama_model),
            summary_llm=OllamaLlmProvider.from_settings(settings, settings.ollama_summary_model),
            validate_tool_arguments=settings.validate_tool_arguments,
            tool_timeout=settings.mcp_timeout,
            debug=settings.debug,
        )

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    @property
    def server_info(self) -> Optional[McpServerInfo]:
        return self.transport.server_info

    async def connect(self) -> None:
        """Connect to the tool server and register its tools.

        Raises:
            McpTransportError: If the server cannot be spawned or does not answer
        """
        server_info = await self.transport.connect()
        tools = await self.transport.list_tools()

        self.registry.clear()
        self.registry.register(tool.to_descriptor() for tool in tools)
        logger.info(f"Chat session connected to {server_info.name} with {len(self.registry)} tools")
        if self.debug:
            logger.info(f"Registered tools: {self.registry.names}")

        if not await self.primary_llm.health_check():
            logger.warning(f"Primary model '{self.primary_llm.model}' is not available yet")

    async def close(self) -> None:
        """Disconnect from the tool server and release the model clients."""
        await self.transport.disconnect()
        await self.primary_llm.close()
        if self.summary_llm is not self.primary_llm:
            await self.summary_llm.close()
        logger.info("Chat session closed")

    async def __aenter__(self) -> "ChatSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class ChatSessionHostedService(HostedService):
    """Hosted service connecting the chat session with the web host.

    - start_async(): connects to the MCP server and registers its tools
    - stop_async(): closes the session
    """

    def __init__(self, session: ChatSession) -> None:
        self._session = session

    async def start_async(self) -> None:
        """Connect the session on application startup."""
        try:
            await self._session.connect()
            logger.info("✅ ChatSessionHostedService started")
        except Exception as e:
            logger.error(f"❌ ChatSessionHostedService failed to connect: {e}")
            # Don't raise - the API stays up and reports the session as unavailable

    async def stop_async(self) -> None:
        """Close the session on application shutdown."""
        await self._session.close()
        logger.info("✅ ChatSessionHostedService stopped")

    @staticmethod
    def configure(builder: "WebApplicationBuilder", settings: Optional[Settings] = None) -> "WebApplicationBuilder":
        """Register the chat session and its hosted service.

        Args:
            builder: The WebApplicationBuilder to configure
            settings: Settings to build the session from (app_settings by default)

        Returns:
            The builder instance for fluent chaining
        """
        logger.info("🔧 Configuring ChatSession...")
        session = ChatSession.from_settings(settings or app_settings)

        builder.services.add_singleton(ChatSession, singleton=session)
        builder.services.add_singleton(HostedService, singleton=ChatSessionHostedService(session))

        logger.info("✅ ChatSession configured")
        return builder
