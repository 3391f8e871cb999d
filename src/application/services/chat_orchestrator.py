"""Streaming chat orchestrator.

Turns one user query into a single ordered stream of text chunks:

1. Primary pass: the model streams its answer with the session's tools attached.
   Content is forwarded as it arrives.
2. If the model decides to call tools, the primary stream is closed and the
   calls are executed one by one over MCP, each narrated with a marker chunk.
3. Summarization pass: a second, tool-free model request turns the tool
   results into prose, streamed on the same channel.

A consumer sees one uninterrupted text stream across all phases.
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from application.agents.llm_provider import LlmMessage, LlmProviderError
from domain.models import ToolCallIntent, ToolResult
from observability import chat_queries_failed, chat_queries_received, chat_query_duration, llm_request_count, llm_tool_calls

from .chunk_pacer import ChunkPacer

if TYPE_CHECKING:
    from .chat_session import ChatSession

logger = logging.getLogger(__name__)

PROCESSING_TOOLS_MARKER = "\n[Processing tool requests...]\n"


def tool_started_marker(tool_name: str) -> str:
    return f"\n⚙️ Calling {tool_name}... "


def tool_succeeded_marker(tool_name: str) -> str:
    return f"✅ {tool_name} completed!\n"


def tool_failed_marker(tool_name: str, error: str) -> str:
    return f"❌ {tool_name} failed: {error}\n"


def build_summary_prompt(results: list[ToolResult]) -> str:
    """Build the system prompt of the summarization pass."""
    lines = "\n".join(result.to_prompt_line() for result in results)
    return f"Tool results:\n{lines}\n\nSummarize these findings clearly and concisely."


class InvalidQueryError(ValueError):
    """The query is missing, empty or whitespace only."""


class OrchestratorState(str, Enum):
    """State of one query in the orchestrator.

    State Machine Transitions:
        INIT → STREAMING_PRIMARY (query accepted)
        STREAMING_PRIMARY → DONE (model finished without calling tools)
        STREAMING_PRIMARY → TOOLS_DETECTED (model decided to call tools)
        TOOLS_DETECTED → INVOKING_TOOLS
        INVOKING_TOOLS → STREAMING_SECONDARY (every call resolved)
        STREAMING_SECONDARY → DONE
        ANY but DONE → ERRORED (model backend failure)
    """

    INIT = "init"
    STREAMING_PRIMARY = "streaming_primary"
    TOOLS_DETECTED = "tools_detected"
    INVOKING_TOOLS = "invoking_tools"
    STREAMING_SECONDARY = "streaming_secondary"
    DONE = "done"
    ERRORED = "errored"

    def can_transition_to(self, target: "OrchestratorState") -> bool:
        """Check if transition to target state is allowed.

        Args:
            target: The target state to transition to

        Returns:
            True if the transition is valid, False otherwise
        """
        valid_transitions: dict[OrchestratorState, set[OrchestratorState]] = {
            OrchestratorState.INIT: {
                OrchestratorState.STREAMING_PRIMARY,
                OrchestratorState.ERRORED,
            },
            OrchestratorState.STREAMING_PRIMARY: {
                OrchestratorState.TOOLS_DETECTED,
                OrchestratorState.DONE,
                OrchestratorState.ERRORED,
            },
            OrchestratorState.TOOLS_DETECTED: {
                OrchestratorState.INVOKING_TOOLS,
                OrchestratorState.ERRORED,
            },
            OrchestratorState.INVOKING_TOOLS: {
                OrchestratorState.STREAMING_SECONDARY,
                OrchestratorState.ERRORED,
            },
            OrchestratorState.STREAMING_SECONDARY: {
                OrchestratorState.DONE,
                OrchestratorState.ERRORED,
            },
            OrchestratorState.DONE: set(),  # Terminal state
            OrchestratorState.ERRORED: set(),  # Terminal state
        }
        return target in valid_transitions.get(self, set())

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in {OrchestratorState.DONE, OrchestratorState.ERRORED}


@dataclass
class QueryContext:
    """Per-query state, discarded once the stream ends.

    Attributes:
        query: The user query
        state: Current orchestrator state
        tool_calls: Tool calls captured from the primary pass, in backend order
        tool_results: One result per resolved tool call, same order
        error: Backend error message when the query ended in ERRORED
    """

    query: str
    state: OrchestratorState = OrchestratorState.INIT
    tool_calls: list[ToolCallIntent] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    error: Optional[str] = None
    started_at: float = field(default_factory=time.monotonic)

    def transition_to(self, target: OrchestratorState) -> None:
        """Move to the target state.

        Raises:
            RuntimeError: If the transition is not allowed from the current state
        """
        if not self.state.can_transition_to(target):
            raise RuntimeError(f"Invalid orchestrator transition: {self.state.value} -> {target.value}")
        logger.debug(f"Orchestrator state: {self.state.value} -> {target.value}")
        self.state = target

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


class StreamingOrchestrator:
    """Runs queries against a chat session and streams the merged output.

    Usage:
        orchestrator = StreamingOrchestrator(session, ChunkPacer(delay_ms=50))
        async for chunk in orchestrator.stream("What is the status of PROJ-1?"):
            print(chunk, end="")
    """

    def __init__(self, session: "ChatSession", pacer: Optional[ChunkPacer] = None) -> None:
        """Initialize the orchestrator.

        Args:
            session: Connected chat session providing tools, invoker and models
            pacer: Output pacer (no pacing when omitted)
        """
        self._session = session
        self._pacer = pacer or ChunkPacer(delay_ms=0)

    @property
    def session(self) -> "ChatSession":
        return self._session

    def create_context(self, query: Any) -> QueryContext:
        """Validate the query and create its context.

        Raises:
            InvalidQueryError: If the query is missing, not a string or blank
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidQueryError("Query parameter required")
        return QueryContext(query=query)

    def stream(self, query: Any) -> AsyncGenerator[str, None]:
        """Stream the paced output for a query.

        Validation happens here, before any generator exists, so an invalid
        query raises InvalidQueryError on the call itself.
        """
        context = self.create_context(query)
        return self._pacer.paced(self.run(context))

    async def run(self, context: QueryContext) -> AsyncGenerator[str, None]:
        """Drive one query through the state machine, yielding unpaced chunks.

        Raises:
            LlmProviderError: If either model pass fails; the context ends in ERRORED
        """
        chat_queries_received.add(1)
        status = "cancelled"
        try:
            context.transition_to(OrchestratorState.STREAMING_PRIMARY)
            async with aclosing(self._stream_primary(context)) as primary:
                async for chunk in primary:
                    yield chunk

            if context.tool_calls:
                context.transition_to(OrchestratorState.TOOLS_DETECTED)
                yield PROCESSING_TOOLS_MARKER

                context.transition_to(OrchestratorState.INVOKING_TOOLS)
                for intent in context.tool_calls:
                    yield tool_started_marker(intent.tool_name)
                    result = await self._session.invoker.invoke(intent.tool_name, intent.arguments)
                    context.tool_results.append(result)
                    if result.succeeded:
                        yield tool_succeeded_marker(intent.tool_name)
                    else:
                        yield tool_failed_marker(intent.tool_name, result.error or "")

                context.transition_to(OrchestratorState.STREAMING_SECONDARY)
                async with aclosing(self._stream_summary(context)) as summary:
                    async for chunk in summary:
                        yield chunk

            context.transition_to(OrchestratorState.DONE)
            status = "done"

        except LlmProviderError as e:
            context.error = e.message
            context.transition_to(OrchestratorState.ERRORED)
            status = "errored"
            chat_queries_failed.add(1, {"error_code": e.error_code})
            logger.error(f"❌ Query aborted by model backend error: {e.message}")
            raise

        finally:
            chat_query_duration.record(context.elapsed_ms, {"status": status})
            if self._session.debug:
                logger.info(f"⏱️ Total processing time: {context.elapsed_ms:.0f}ms")

    async def _stream_primary(self, context: QueryContext) -> AsyncGenerator[str, None]:
        """Stream the primary pass until it ends or the model decides to call tools."""
        llm = self._session.primary_llm
        tools = self._session.registry.definitions or None
        llm_request_count.add(1, {"model": llm.model, "phase": "primary"})

        async with aclosing(llm.chat_stream([LlmMessage.user(context.query)], tools=tools)) as chunks:
            async for chunk in chunks:
                if chunk.has_tool_calls:
                    context.tool_calls = [ToolCallIntent.from_llm(tc.name, tc.arguments) for tc in chunk.tool_calls]
                    llm_tool_calls.add(len(context.tool_calls), {"model": llm.model})
                    logger.info(f"Model requested {len(context.tool_calls)} tool calls: {[tc.tool_name for tc in context.tool_calls]}")
                    break
                if chunk.content:
                    yield chunk.content

    async def _stream_summary(self, context: QueryContext) -> AsyncGenerator[str, None]:
        """Stream the tool-free summarization pass over the collected results."""
        llm = self._session.summary_llm
        llm_request_count.add(1, {"model": llm.model, "phase": "summary"})

        prompt = build_summary_prompt(context.tool_results)
        async with aclosing(llm.chat_stream([LlmMessage.system(prompt)])) as chunks:
            async for chunk in chunks:
                if chunk.content:
                    yield chunk.content
