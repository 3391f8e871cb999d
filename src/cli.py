"""
Interactive Jira chat shell
===========================

Connects a chat session (MCP tool server + Ollama models) and answers queries
typed at the prompt, streaming each response as it is produced.

Usage Examples:
    python src/cli.py
    python src/cli.py --server ./jira_server.py --chunk-delay 0 --debug

Type `exit` or `quit` (or send EOF) to leave.

Exit Codes:
    0 success, 2 runtime error (tool server unavailable).
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable
from typing import TextIO

from application.agents.llm_provider import LlmProviderError
from application.services import ChatSession, ChunkPacer, StreamingOrchestrator
from application.settings import Settings, app_settings, configure_logging
from infrastructure.mcp import McpTransportError

log = logging.getLogger(__name__)

PROMPT = "> "
RESPONSE_PREFIX = "🤖 "
EXIT_COMMANDS = {"exit", "quit"}


def non_negative_int(value: str) -> int:
    """argparse type for millisecond delays."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Chat with an Ollama model that can call Jira tools over MCP.")
    p.add_argument("--server", help=f"MCP server script (default: {app_settings.mcp_server_path})")
    p.add_argument("--model", help=f"Primary model (default: {app_settings.ollama_model})")
    p.add_argument("--summary-model", help=f"Summarization model (default: {app_settings.ollama_summary_model})")
    p.add_argument("--chunk-delay", type=non_negative_int, help=f"Delay between chunks in ms (default: {app_settings.chunk_delay_ms})")
    p.add_argument("--debug", action="store_true", help="Log registered tools and processing time")
    return p.parse_args(argv)


def settings_from_args(args: argparse.Namespace, base: Settings = app_settings) -> Settings:
    """Overlay command-line options on the loaded settings."""
    overrides = {
        "mcp_server_path": args.server,
        "ollama_model": args.model,
        "ollama_summary_model": args.summary_model,
        "chunk_delay_ms": args.chunk_delay,
        "debug": True if args.debug else None,
    }
    return base.model_copy(update={k: v for k, v in overrides.items() if v is not None})


async def run_shell(
    orchestrator: StreamingOrchestrator,
    read_line: Callable[[str], str] = input,
    output: TextIO = sys.stdout,
) -> None:
    """Prompt for queries until exit, streaming each answer to `output`.

    Blank lines re-prompt. A model backend error ends the current answer only.
    """
    while True:
        try:
            line = await asyncio.to_thread(read_line, PROMPT)
        except EOFError:
            break

        query = line.strip()
        if not query:
            continue
        if query.lower() in EXIT_COMMANDS:
            break

        output.write(RESPONSE_PREFIX)
        output.flush()
        try:
            async for chunk in orchestrator.stream(query):
                output.write(chunk)
                output.flush()
        except LlmProviderError as e:
            output.write(f"\n[Error: {e.message}]")
        output.write("\n\n")
        output.flush()


async def main_async(settings: Settings) -> int:
    session = ChatSession.from_settings(settings)
    try:
        await session.connect()
    except McpTransportError as e:
        log.error(f"❌ Could not connect to MCP server '{settings.mcp_server_path}': {e}")
        await session.close()
        return 2

    try:
        orchestrator = StreamingOrchestrator(session, ChunkPacer(delay_ms=settings.chunk_delay_ms))
        await run_shell(orchestrator)
    finally:
        await session.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(log_level="DEBUG" if settings.debug else settings.log_level, stream=sys.stderr)
    try:
        return asyncio.run(main_async(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
