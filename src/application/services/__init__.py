"""Application services: chat session, streaming orchestrator and the Jira tool set."""

from .chat_orchestrator import InvalidQueryError, OrchestratorState, QueryContext, StreamingOrchestrator
from .chat_session import ChatSession, ChatSessionHostedService
from .chunk_pacer import ChunkPacer
from .jira_tools import JiraToolset
from .tool_invoker import ToolInvoker
from .tool_registry import ToolRegistry

__all__ = [
    "ChatSession",
    "ChatSessionHostedService",
    "ChunkPacer",
    "InvalidQueryError",
    "JiraToolset",
    "OrchestratorState",
    "QueryContext",
    "StreamingOrchestrator",
    "ToolInvoker",
    "ToolRegistry",
]
