"""Observability utilities and metrics."""

from .metrics import (
    chat_queries_failed,
    chat_queries_received,
    chat_query_duration,
    jira_request_count,
    jira_request_errors,
    llm_request_count,
    llm_tool_calls,
    tool_execution_count,
    tool_execution_errors,
    tool_execution_time,
)

__all__ = [
    # Chat metrics
    "chat_queries_received",
    "chat_queries_failed",
    "chat_query_duration",
    # LLM metrics
    "llm_request_count",
    "llm_tool_calls",
    # Tool metrics
    "tool_execution_count",
    "tool_execution_errors",
    "tool_execution_time",
    # Jira metrics
    "jira_request_count",
    "jira_request_errors",
]
