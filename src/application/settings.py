"""Application settings configuration for the Jira agent host."""

import logging
import sys
from typing import TextIO

from neuroglia.hosting.abstractions import ApplicationSettings
from pydantic import AliasChoices, Field


class Settings(ApplicationSettings):
    """Jira agent host settings: model backend, MCP tool server and Jira credentials."""

    # Debugging Configuration
    debug: bool = False  # Logs registered tools and per-query processing time
    environment: str = "development"  # development, production
    log_level: str = "INFO"

    # Application Configuration
    app_name: str = "Jira Agent Host"
    app_version: str = "1.0.0"
    app_host: str = "127.0.0.1"  # Uvicorn bind address
    app_port: int = 3000  # Uvicorn port

    # CORS Configuration
    enable_cors: bool = True
    cors_origins: list[str] = ["*"]

    # Ollama LLM Configuration
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "qwen3:14b"  # Primary pass, receives the tool schema
    ollama_summary_model: str = "gemma3:27b"  # Summarization pass, no tools
    ollama_timeout: float = 120.0  # LLM can take time to respond
    ollama_temperature: float = 0.7
    ollama_num_predict: int = 512  # Max tokens per response
    ollama_num_ctx: int = 2048  # Context window size

    # Output pacing between streamed chunks (0 disables)
    chunk_delay_ms: int = 50

    # MCP Tool Server Configuration
    mcp_server_path: str = "src/jira_server.py"  # .js servers run under node, others under python
    mcp_timeout: float = 30.0  # Per tools/call timeout
    validate_tool_arguments: bool = True  # Check arguments against the tool's input schema

    # Jira Configuration (read by the Jira MCP server process)
    jira_domain: str = ""  # e.g. https://example.atlassian.net
    jira_email: str = ""
    jira_api_token: str = Field(default="", validation_alias=AliasChoices("jira_api_token", "jira_api"))
    jira_timeout: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


app_settings = Settings()


def configure_logging(log_level: str = "INFO", stream: TextIO | None = None) -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Log destination (defaults to stdout; the MCP server passes stderr)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(stream or sys.stdout)],
    )

    # Reduce noise from third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("fastapi").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
