"""Adapters to external services: the Ollama model backend and the Jira REST API."""

from .jira_client import JiraApiError, JiraClient, to_adf
from .ollama_llm_provider import OllamaLlmProvider

__all__ = [
    "JiraApiError",
    "JiraClient",
    "OllamaLlmProvider",
    "to_adf",
]
