"""Tool invoker: executes model-requested tool calls over the MCP transport.

Every call resolves to a ToolResult. Transport, protocol, timeout,
tool-reported and argument validation failures are returned as failed
results carrying the error text, never raised.
"""

import json
import logging
import time
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from opentelemetry import trace

from domain.models import ToolResult
from infrastructure.mcp import IMcpTransport, McpConnectionError, McpProtocolError, McpTimeoutError, McpTransportError
from observability import tool_execution_count, tool_execution_errors, tool_execution_time

from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ToolInvoker:
    """Dispatches tool calls to the MCP server, one `tools/call` per invocation.

    Usage:
        invoker = ToolInvoker(transport, registry)
        result = await invoker.invoke("get_issue", {"issueKey": "PROJ-1"})
        if not result.succeeded:
            print(result.error)
    """

    def __init__(
        self,
        transport: IMcpTransport,
        registry: ToolRegistry | None = None,
        validate_arguments: bool = True,
        timeout: float | None = None,
    ):
        """Initialize the tool invoker.

        Args:
            transport: Connected MCP transport
            registry: Registry holding the input schemas used for validation
            validate_arguments: Check arguments against the tool's input schema
            timeout: Per-call timeout override (seconds), transport default if None
        """
        self._transport = transport
        self._registry = registry
        self._validate = validate_arguments
        self._timeout = timeout

    async def invoke(self, tool_name: str, arguments: Any) -> ToolResult:
        """Invoke a tool and return its result.

        Args:
            tool_name: Name of the tool, passed through to the server as-is
            arguments: Tool arguments as decided by the model

        Returns:
            ToolResult with the JSON-serialized content blocks on success, or
            the error text on failure
        """
        start_time = time.time()
        tool_execution_count.add(1, {"tool_name": tool_name})

        with tracer.start_as_current_span("mcp.invoke_tool") as span:
            span.set_attribute("tool.name", tool_name)

            if not isinstance(arguments, dict):
                return self._fail(tool_name, "Invalid tool arguments: expected a JSON object", "invalid_arguments", start_time, span)

            validation_error = self._validate_arguments(tool_name, arguments)
            if validation_error:
                return self._fail(tool_name, validation_error, "validation_error", start_time, span)

            try:
                logger.debug(f"Calling MCP tool '{tool_name}' with arguments: {arguments}")
                result = await self._transport.call_tool(tool_name, arguments, timeout=self._timeout)
            except McpTimeoutError as e:
                return self._fail(tool_name, f"Tool execution timed out: {e}", "timeout", start_time, span)
            except McpConnectionError as e:
                return self._fail(tool_name, f"MCP connection error: {e}", "connection_error", start_time, span)
            except McpProtocolError as e:
                return self._fail(tool_name, f"MCP protocol error: {e}", "protocol_error", start_time, span)
            except McpTransportError as e:
                return self._fail(tool_name, f"MCP transport error: {e}", "transport_error", start_time, span)
            except Exception as e:
                logger.exception(f"Unexpected error calling MCP tool '{tool_name}'")
                return self._fail(tool_name, f"Unexpected error: {e}", "unexpected_error", start_time, span)

            if result.is_error:
                return self._fail(tool_name, result.get_text() or "Tool reported an error", "tool_error", start_time, span)

            content = [c.to_dict() for c in result.content]
            execution_time_ms = (time.time() - start_time) * 1000
            tool_execution_time.record(execution_time_ms, {"tool_name": tool_name, "status": "success"})
            span.set_attribute("mcp.execution_time_ms", execution_time_ms)
            span.set_attribute("mcp.content_count", len(content))

            logger.info(f"MCP tool '{tool_name}' executed successfully ({len(content)} content blocks, {execution_time_ms:.2f}ms)")
            return ToolResult.success(tool_name, json.dumps(content))

    def _validate_arguments(self, tool_name: str, arguments: dict[str, Any]) -> str | None:
        """Validate arguments against the registered input schema.

        Returns:
            The error text when validation fails, None otherwise
        """
        if not self._validate or self._registry is None:
            return None

        descriptor = self._registry.get(tool_name)
        if descriptor is None or not descriptor.input_schema:
            return None

        try:
            validator = Draft7Validator(descriptor.input_schema)
            errors = list(validator.iter_errors(arguments))
        except SchemaError as e:
            return f"Invalid argument schema: {e.message}"

        if not errors:
            return None

        error_messages = []
        for error in errors[:5]:  # Limit to first 5 errors
            path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
            error_messages.append(f"{path}: {error.message}")
        return f"Argument validation failed: {'; '.join(error_messages)}"

    @staticmethod
    def _fail(tool_name: str, error_msg: str, error_code: str, start_time: float, span: Any) -> ToolResult:
        execution_time_ms = (time.time() - start_time) * 1000
        logger.error(f"MCP tool '{tool_name}' failed: {error_msg}")
        tool_execution_errors.add(1, {"tool_name": tool_name, "error_code": error_code})
        tool_execution_time.record(execution_time_ms, {"tool_name": tool_name, "status": "error"})
        span.set_attribute("mcp.error", error_code)
        return ToolResult.failure(tool_name, error_msg)
