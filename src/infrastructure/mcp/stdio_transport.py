"""StdioTransport - MCP transport using a subprocess with stdin/stdout.

Spawns the MCP tool server as a child process and exchanges newline-delimited
JSON-RPC messages over its stdin (requests) and stdout (responses). The
server's stderr is relayed to our logs.
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any

from .models import PROTOCOL_VERSION, McpNotification, McpRequest, McpResponse, McpServerInfo, McpToolDefinition, McpToolResult
from .transport import IMcpTransport, McpConnectionError, McpProtocolError, McpTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds
DEFAULT_INIT_TIMEOUT = 10.0  # seconds for the initialize handshake
STDOUT_LIMIT = 16 * 1024 * 1024  # bytes per response line (asyncio default is 64 KiB)

CLIENT_NAME = "jira-agent-host"
CLIENT_VERSION = "1.0.0"


def command_for_server(server_path: str) -> list[str]:
    """Build the command that launches an MCP server script.

    `.js` servers run under node; anything else under the current interpreter.
    """
    if server_path.endswith(".js"):
        return ["node", server_path]
    return [sys.executable, server_path]


class StdioTransport(IMcpTransport):
    """MCP transport over the stdio pipes of a child process.

    - connect(): spawns the process and performs the MCP handshake
    - disconnect(): terminates the process (kill after a grace period)

    Request/response pairs are serialized with a lock, so one transport can be
    shared by several queries without interleaving reads on stdout.
    """

    def __init__(
        self,
        command: list[str],
        environment: dict[str, str] | None = None,
        cwd: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the StdioTransport.

        Args:
            command: Command and arguments spawning the MCP server
                     (e.g., ["python", "src/jira_server.py"])
            environment: Extra environment variables, merged over os.environ
            cwd: Working directory for the subprocess
            timeout: Default timeout for requests in seconds
        """
        if not command:
            raise ValueError("Command cannot be empty")

        self._command = command
        self._environment = environment or {}
        self._cwd = cwd
        self._timeout = timeout

        self._process: asyncio.subprocess.Process | None = None
        self._request_id = 0
        self._server_info: McpServerInfo | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> McpServerInfo:
        """Spawn the server process and perform the handshake."""
        if self._process is not None:
            raise McpConnectionError("Transport already connected")

        env = {**os.environ, **self._environment}

        try:
            logger.debug(f"Spawning MCP server: {' '.join(self._command)}")
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=self._cwd,
                limit=STDOUT_LIMIT,
            )
        except FileNotFoundError as e:
            raise McpConnectionError(f"MCP server command not found: {self._command[0]}", e) from e
        except OSError as e:
            raise McpConnectionError(f"Failed to spawn MCP server: {e}", e) from e

        self._stderr_task = asyncio.create_task(self._read_stderr())

        try:
            self._server_info = await self._initialize()
        except Exception:
            await self.disconnect()
            raise

        logger.info(f"MCP transport connected to {self._server_info.name} v{self._server_info.version}")
        return self._server_info

    async def _initialize(self) -> McpServerInfo:
        init_response = await self._send_request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
            },
            timeout=DEFAULT_INIT_TIMEOUT,
        )
        server_info = McpServerInfo.from_dict(init_response)
        await self._send_notification("notifications/initialized", {})
        return server_info

    async def disconnect(self) -> None:
        """Terminate the subprocess and clean up. Idempotent."""
        if self._stderr_task:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

        if self._process:
            try:
                if self._process.stdin and not self._process.stdin.is_closing():
                    self._process.stdin.close()
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=2.0)
                except TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            except ProcessLookupError:
                pass
            finally:
                self._process = None
                self._server_info = None
                logger.debug("MCP transport disconnected")

    async def list_tools(self) -> list[McpToolDefinition]:
        """Get the tools advertised by the server."""
        self._ensure_connected()
        response = await self._send_request("tools/list", {})
        return [McpToolDefinition.from_dict(tool) for tool in response.get("tools", [])]

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> McpToolResult:
        """Execute a tool on the server."""
        self._ensure_connected()
        response = await self._send_request(
            "tools/call",
            {"name": tool_name, "arguments": arguments},
            timeout=timeout or self._timeout,
        )
        return McpToolResult.from_dict(response)

    @property
    def is_connected(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def server_info(self) -> McpServerInfo | None:
        return self._server_info

    def _ensure_connected(self) -> None:
        if not self.is_connected:
            raise McpConnectionError("Transport not connected")

    async def _send_request(
        self,
        method: str,
        params: dict[str, Any],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a JSON-RPC request and wait for its response.

        Lines without an id (server notifications) are skipped while waiting.

        Raises:
            McpConnectionError: If the pipe breaks or the server exits
            McpProtocolError: If the response is not JSON or carries an error
            McpTimeoutError: If no response arrives within the timeout
        """
        async with self._lock:
            if not self._process or not self._process.stdin or not self._process.stdout:
                raise McpConnectionError("Transport not connected")

            self._request_id += 1
            request = McpRequest(id=self._request_id, method=method, params=params)
            logger.debug(f"MCP request: {method} (id={request.id})")
            await self._write_line(request.to_dict())

            effective_timeout = timeout or self._timeout
            while True:
                try:
                    response_line = await asyncio.wait_for(self._process.stdout.readline(), timeout=effective_timeout)
                except TimeoutError:
                    raise McpTimeoutError(f"MCP server did not respond within {effective_timeout}s")
                except (ValueError, asyncio.LimitOverrunError) as e:
                    raise McpProtocolError(f"MCP response exceeds the {STDOUT_LIMIT} byte line limit", e) from e

                if not response_line:
                    if self._process.returncode is not None:
                        raise McpConnectionError(f"MCP server exited with code {self._process.returncode}")
                    raise McpConnectionError("MCP server closed connection unexpectedly")

                try:
                    response_data = json.loads(response_line.decode("utf-8"))
                except json.JSONDecodeError as e:
                    raise McpProtocolError(f"Invalid JSON response: {response_line[:100]!r}", e) from e

                if "id" not in response_data:
                    logger.debug(f"MCP notification ignored: {response_data.get('method')}")
                    continue

                response = McpResponse.from_dict(response_data)
                if self._is_stale(response.id, request.id):
                    # Late answer to a request that timed out or was cancelled
                    logger.warning(f"Discarding stale MCP response id={response.id} while waiting for id={request.id}")
                    continue
                break

            if response.id != request.id:
                raise McpProtocolError(f"MCP response id mismatch: expected {request.id}, got {response.id}")
            if response.error:
                raise McpProtocolError(f"MCP error ({response.error.code}): {response.error.message}")

            logger.debug(f"MCP response received for id={response.id}")
            return response.result or {}

    @staticmethod
    def _is_stale(response_id: Any, request_id: int) -> bool:
        """Whether a response answers an earlier request of this transport."""
        return isinstance(response_id, int) and not isinstance(response_id, bool) and 0 < response_id < request_id

    async def _send_notification(self, method: str, params: dict[str, Any]) -> None:
        logger.debug(f"MCP notification: {method}")
        await self._write_line(McpNotification(method=method, params=params).to_dict())

    async def _write_line(self, message: dict[str, Any]) -> None:
        if not self._process or not self._process.stdin:
            raise McpConnectionError("Transport not connected")
        try:
            self._process.stdin.write((json.dumps(message) + "\n").encode("utf-8"))
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise McpConnectionError("MCP server connection lost", e) from e

    async def _read_stderr(self) -> None:
        """Relay the server's stderr to our logs."""
        if not self._process or not self._process.stderr:
            return

        try:
            while True:
                line = await self._process.stderr.readline()
                if not line:
                    break
                logger.info(f"MCP stderr: {line.decode('utf-8', errors='replace').rstrip()}")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Error reading MCP stderr: {e}")

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        return f"<StdioTransport({' '.join(self._command)}) [{status}]>"
