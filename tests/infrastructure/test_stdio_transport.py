"""Tests for the MCP stdio client transport.

Tests cover:
- Construction, repr and connection guards
- Request/response exchange with a mocked subprocess
- End-to-end exchange with a real MCP server subprocess
"""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from infrastructure.mcp import McpConnectionError, McpProtocolError, McpTimeoutError, StdioTransport, command_for_server

SRC_DIR = Path(__file__).resolve().parents[2] / "src"


def mock_process(*lines: bytes | str) -> MagicMock:
    """A connected subprocess whose stdout yields the given lines, then EOF."""
    process = MagicMock()
    process.returncode = None
    process.stdin = MagicMock()
    process.stdin.drain = AsyncMock()
    process.stdout = MagicMock()
    process.stdout.readline = AsyncMock(side_effect=[line.encode() if isinstance(line, str) else line for line in lines] + [b""])
    return process


def response_line(request_id: int, result: dict | None = None, error: dict | None = None) -> str:
    message: dict = {"jsonrpc": "2.0", "id": request_id}
    if error:
        message["error"] = error
    else:
        message["result"] = result or {}
    return json.dumps(message) + "\n"


def written_messages(process: MagicMock) -> list[dict]:
    return [json.loads(call.args[0].decode()) for call in process.stdin.write.call_args_list]


class TestCommandForServer:
    def test_js_runs_under_node(self) -> None:
        assert command_for_server("./jiral.js") == ["node", "./jiral.js"]

    def test_other_runs_under_python(self) -> None:
        assert command_for_server("src/jira_server.py") == [sys.executable, "src/jira_server.py"]


class TestStdioTransport:
    """Test StdioTransport without a process."""

    def test_empty_command_raises_error(self) -> None:
        """Test that an empty command is rejected."""
        with pytest.raises(ValueError, match="Command cannot be empty"):
            StdioTransport(command=[])

    def test_repr(self) -> None:
        """Test string representation."""
        transport = StdioTransport(command=["python", "server.py"])

        assert repr(transport) == "<StdioTransport(python server.py) [disconnected]>"

    @pytest.mark.asyncio
    async def test_connect_command_not_found(self) -> None:
        """Test connection error for a missing executable."""
        transport = StdioTransport(command=["definitely-not-an-mcp-server-binary"])

        with pytest.raises(McpConnectionError, match="MCP server command not found"):
            await transport.connect()

    @pytest.mark.asyncio
    async def test_disconnect_idempotent(self) -> None:
        """Test that disconnecting twice is harmless."""
        transport = StdioTransport(command=["python", "server.py"])

        await transport.disconnect()
        await transport.disconnect()

        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_call_tool_not_connected(self) -> None:
        """Test that calls before connect() fail with a connection error."""
        transport = StdioTransport(command=["python", "server.py"])

        with pytest.raises(McpConnectionError, match="Transport not connected"):
            await transport.call_tool("get_issue", {"issueKey": "PROJ-1"})


class TestStdioTransportWithMockProcess:
    """Test the request/response exchange against a mocked subprocess."""

    @pytest.mark.asyncio
    async def test_call_tool_sends_request_and_parses_result(self) -> None:
        """Test the tools/call request format and result parsing."""
        process = mock_process(response_line(1, {"content": [{"type": "text", "text": "PROJ-1"}], "isError": False}))
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        result = await transport.call_tool("get_issue", {"issueKey": "PROJ-1"})

        assert result.get_text() == "PROJ-1"
        assert written_messages(process) == [
            {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": "get_issue", "arguments": {"issueKey": "PROJ-1"}}},
        ]

    @pytest.mark.asyncio
    async def test_server_notifications_skipped(self) -> None:
        """Test that lines without an id are ignored while waiting."""
        process = mock_process(
            json.dumps({"jsonrpc": "2.0", "method": "notifications/message", "params": {}}) + "\n",
            response_line(1, {"tools": [{"name": "get_issue", "description": "Get", "inputSchema": {}}]}),
        )
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        tools = await transport.list_tools()

        assert [t.name for t in tools] == ["get_issue"]

    @pytest.mark.asyncio
    async def test_error_response_raises_protocol_error(self) -> None:
        process = mock_process(response_line(1, error={"code": -32602, "message": "Unknown tool: nope"}))
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        with pytest.raises(McpProtocolError, match=r"MCP error \(-32602\): Unknown tool: nope"):
            await transport.call_tool("nope", {})

    @pytest.mark.asyncio
    async def test_id_mismatch_raises_protocol_error(self) -> None:
        process = mock_process(response_line(7, {}))
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        with pytest.raises(McpProtocolError, match="id mismatch"):
            await transport.list_tools()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_protocol_error(self) -> None:
        process = mock_process("not json\n")
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        with pytest.raises(McpProtocolError, match="Invalid JSON response"):
            await transport.list_tools()

    @pytest.mark.asyncio
    async def test_eof_raises_connection_error(self) -> None:
        process = mock_process()
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        with pytest.raises(McpConnectionError, match="closed connection"):
            await transport.list_tools()

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self) -> None:
        async def hang() -> bytes:
            await asyncio.sleep(10)
            return b""

        process = mock_process()
        process.stdout.readline = AsyncMock(side_effect=hang)
        transport = StdioTransport(command=["python", "server.py"], timeout=0.01)
        transport._process = process

        with pytest.raises(McpTimeoutError):
            await transport.list_tools()

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_serialized(self) -> None:
        """Test that two callers never interleave on the pipe."""
        process = mock_process(
            response_line(1, {"content": [{"type": "text", "text": "first"}]}),
            response_line(2, {"content": [{"type": "text", "text": "second"}]}),
        )
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        first, second = await asyncio.gather(
            transport.call_tool("get_issue", {"issueKey": "PROJ-1"}),
            transport.call_tool("get_issue", {"issueKey": "PROJ-2"}),
        )

        assert first.get_text() == "first"
        assert second.get_text() == "second"

    @pytest.mark.asyncio
    async def test_late_response_of_earlier_request_skipped(self):
        """Test that a response left behind by a timed-out request is discarded."""
        process = mock_process(
            response_line(1, {"content": [{"type": "text", "text": "late"}]}),
            response_line(2, {"content": [{"type": "text", "text": "current"}]}),
        )
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process
        transport._request_id = 1

        result = await transport.call_tool("get_issue", {"issueKey": "PROJ-2"})

        assert result.get_text() == "current"
        assert written_messages(process)[0]["id"] == 2

    @pytest.mark.asyncio
    async def test_oversized_line_raises_protocol_error(self):
        """Test that a line over the stream limit is a protocol error."""
        process = mock_process()
        process.stdout.readline = AsyncMock(side_effect=ValueError("Separator is found, but chunk is longer than limit"))
        transport = StdioTransport(command=["python", "server.py"])
        transport._process = process

        with pytest.raises(McpProtocolError, match="line limit"):
            await transport.list_tools()


ECHO_SERVER = """
import asyncio
from infrastructure.mcp import McpStdioServer, McpToolDefinition, McpToolResult

async def shout(arguments):
    return McpToolResult.text(arguments["text"].upper())

async def nap(arguments):
    await asyncio.sleep(arguments["seconds"])
    return McpToolResult.text("awake")

async def repeat(arguments):
    return McpToolResult.text(arguments["text"] * arguments["times"])

server = McpStdioServer(name="Echo Server", version="0.1.0")
server.add_tool(
    McpToolDefinition(
        name="shout",
        description="Upper-case the text",
        input_schema={"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]},
    ),
    shout,
)
server.add_tool(McpToolDefinition(name="nap", description="Sleep, then answer"), nap)
server.add_tool(McpToolDefinition(name="repeat", description="Repeat the text"), repeat)
asyncio.run(server.serve())
"""


def echo_transport() -> StdioTransport:
    return StdioTransport(
        command=[sys.executable, "-c", ECHO_SERVER],
        environment={"PYTHONPATH": str(SRC_DIR)},
        timeout=10.0,
    )


@pytest.mark.integration
class TestStdioTransportWithServerProcess:
    """Exchange messages with a real McpStdioServer subprocess."""

    @pytest.mark.asyncio
    async def test_handshake_list_and_call(self) -> None:
        transport = echo_transport()

        async with transport:
            assert transport.server_info.name == "Echo Server"
            tools = await transport.list_tools()
            result = await transport.call_tool("shout", {"text": "hello"})

        assert [t.name for t in tools] == ["shout", "nap", "repeat"]
        assert result.get_text() == "HELLO"
        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_unknown_tool_is_protocol_error(self) -> None:
        async with echo_transport() as transport:
            with pytest.raises(McpProtocolError, match="Unknown tool: whisper"):
                await transport.call_tool("whisper", {})

    @pytest.mark.asyncio
    async def test_recovers_after_timed_out_call(self) -> None:
        """Test that calls after a timeout get their own responses."""
        async with echo_transport() as transport:
            with pytest.raises(McpTimeoutError):
                await transport.call_tool("nap", {"seconds": 0.5}, timeout=0.1)
            await asyncio.sleep(0.7)

            first = await transport.call_tool("shout", {"text": "one"})
            second = await transport.call_tool("shout", {"text": "two"})

        assert first.get_text() == "ONE"
        assert second.get_text() == "TWO"

    @pytest.mark.asyncio
    async def test_response_larger_than_default_stream_limit(self) -> None:
        """Test a single response line well over 64 KiB."""
        async with echo_transport() as transport:
            result = await transport.call_tool("repeat", {"text": "x", "times": 200_000})

        assert not result.is_error
        assert len(result.get_text()) == 200_000
