"""Tests for ChatSession and its hosted service."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from neuroglia.hosting.abstractions import HostedService

from application.services import ChatSession, ChatSessionHostedService
from application.settings import Settings
from fakes import FakeLlmProvider
from infrastructure.adapters import OllamaLlmProvider
from infrastructure.mcp import McpConnectionError, StdioTransport


class TestChatSession:
    """Test session lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_registers_server_tools(self, make_session, transport):
        """Test that connect() fills the registry from tools/list."""
        session = make_session(FakeLlmProvider())

        await session.connect()

        assert session.is_connected
        assert session.registry.names == ["get_issue", "add_comment"]
        assert session.registry.get("get_issue").input_schema["required"] == ["issueKey"]

    @pytest.mark.asyncio
    async def test_reconnect_does_not_duplicate_tools(self, make_session):
        """Test that registering again replaces the previous tool set."""
        session = make_session(FakeLlmProvider())

        await session.connect()
        await session.close()
        await session.connect()

        assert session.registry.names == ["get_issue", "add_comment"]

    @pytest.mark.asyncio
    async def test_connect_tolerates_unavailable_model(self, make_session):
        """Test that a failing model health check only logs a warning."""
        primary = FakeLlmProvider()
        primary.healthy = False
        session = make_session(primary)

        await session.connect()

        assert session.is_connected

    @pytest.mark.asyncio
    async def test_close_releases_everything(self, make_session):
        """Test that close() disconnects and closes both providers."""
        primary, summary = FakeLlmProvider(), FakeLlmProvider()
        session = make_session(primary, summary)
        await session.connect()

        await session.close()

        assert not session.is_connected
        assert primary.closed
        assert summary.closed

    @pytest.mark.asyncio
    async def test_context_manager(self, make_session):
        """Test async with connects and closes the session."""
        session = make_session(FakeLlmProvider())

        async with session:
            assert session.is_connected

        assert not session.is_connected

    def test_invoker_shares_registry(self, make_session):
        """Test that the invoker validates against the session registry."""
        session = make_session(FakeLlmProvider(), validate_tool_arguments=False)

        assert session.invoker._registry is session.registry
        assert session.invoker._validate is False

    def test_from_settings(self):
        """Test that settings select the server command and both models."""
        settings = Settings(
            mcp_server_path="servers/jira.js",
            ollama_model="qwen3:14b",
            ollama_summary_model="gemma3:27b",
            debug=True,
        )

        session = ChatSession.from_settings(settings)

        assert isinstance(session.transport, StdioTransport)
        assert session.transport._command == ["node", "servers/jira.js"]
        assert isinstance(session.primary_llm, OllamaLlmProvider)
        assert session.primary_llm.model == "qwen3:14b"
        assert session.summary_llm.model == "gemma3:27b"
        assert session.debug is True


class TestChatSessionHostedService:
    """Test hosted service lifecycle hooks."""

    @pytest.mark.asyncio
    async def test_start_connects_session(self):
        """Test that start_async connects the session."""
        session = MagicMock()
        session.connect = AsyncMock()
        service = ChatSessionHostedService(session)

        await service.start_async()

        session.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_failure_does_not_raise(self):
        """Test that a failed connection leaves the host running."""
        session = MagicMock()
        session.connect = AsyncMock(side_effect=McpConnectionError("MCP server command not found: node"))
        service = ChatSessionHostedService(session)

        await service.start_async()

        session.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_closes_session(self):
        """Test that stop_async closes the session."""
        session = MagicMock()
        session.close = AsyncMock()
        service = ChatSessionHostedService(session)

        await service.stop_async()

        session.close.assert_awaited_once()

    def test_configure_registers_session_and_service(self):
        """Test DI registration of the session and the hosted service."""
        builder = MagicMock()
        session = MagicMock(spec=ChatSession)

        with patch.object(ChatSession, "from_settings", return_value=session):
            result = ChatSessionHostedService.configure(builder, Settings())

        assert result is builder
        registrations = [c.args[0] for c in builder.services.add_singleton.call_args_list]
        assert registrations == [ChatSession, HostedService]
        assert builder.services.add_singleton.call_args_list[0].kwargs["singleton"] is session
