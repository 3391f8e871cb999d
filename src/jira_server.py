"""Jira MCP server entry point.

Spawned by the agent host over stdio. stdout carries the MCP protocol, so all
logging goes to stderr. Credentials are read from settings (JIRA_DOMAIN,
JIRA_EMAIL, JIRA_API_TOKEN) and never logged.
"""

import asyncio
import logging
import sys

from application.services.jira_tools import JiraToolset
from application.settings import Settings, app_settings, configure_logging
from infrastructure.adapters.jira_client import JiraClient
from infrastructure.mcp import McpStdioServer

log = logging.getLogger(__name__)

SERVER_NAME = "Jira MCP Server"
SERVER_VERSION = "1.0.0"


def create_server(settings: Settings) -> tuple[McpStdioServer, JiraClient]:
    """Build the MCP server with the Jira tools registered."""
    client = JiraClient(
        domain=settings.jira_domain,
        email=settings.jira_email,
        api_token=settings.jira_api_token,
        timeout=settings.jira_timeout,
    )
    server = McpStdioServer(name=SERVER_NAME, version=SERVER_VERSION)
    JiraToolset(client).register(server)
    return server, client


async def main_async(settings: Settings) -> None:
    server, client = create_server(settings)
    log.info(f"{SERVER_NAME} starting for {client.base_url} with tools {server.tool_names}")
    try:
        await server.serve()
    finally:
        await client.close()


def main() -> int:
    configure_logging(log_level=app_settings.log_level, stream=sys.stderr)
    if not app_settings.jira_domain:
        log.error("❌ JIRA_DOMAIN is not set")
        return 1
    asyncio.run(main_async(app_settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
