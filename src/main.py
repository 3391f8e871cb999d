"""Jira agent host HTTP entry point with Neuroglia framework."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from neuroglia.hosting.web import SubAppConfig, WebApplicationBuilder
from neuroglia.mapping import Mapper
from neuroglia.mediation import Mediator

from application.services import ChatSessionHostedService, ChunkPacer
from application.settings import app_settings, configure_logging

configure_logging(log_level=app_settings.log_level)
log = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the Jira agent host application.

    Serves the streaming chat API under the /api prefix. The chat session
    (MCP server process and model clients) is connected on startup and
    closed on shutdown.

    Returns:
        Configured FastAPI application with Neuroglia framework
    """
    log.debug("🚀 Creating Jira agent host application...")

    builder = WebApplicationBuilder(app_settings=app_settings)

    # Configure core Neuroglia services required by controllers
    Mediator.configure(builder, [])
    Mapper.configure(builder, [])

    # Chat session and output pacing
    ChatSessionHostedService.configure(builder, app_settings)
    builder.services.add_singleton(ChunkPacer, singleton=ChunkPacer(delay_ms=app_settings.chunk_delay_ms))

    builder.add_sub_app(
        SubAppConfig(
            path="/api",
            name="api",
            title=f"{app_settings.app_name} API",
            description="Streaming chat API with Jira tools over MCP",
            version=app_settings.app_version,
            controllers=["api.controllers"],
            docs_url="/docs",
        )
    )

    app = builder.build_app_with_lifespan(
        title=app_settings.app_name,
        description="Ollama chat with Jira tool calling over the Model Context Protocol",
        version=app_settings.app_version,
        debug=app_settings.debug,
    )

    if app_settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    log.info("✅ Jira agent host application created successfully!")
    log.info(f"📊 Streaming API available at http://localhost:{app_settings.app_port}/api/chat/")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=app_settings.debug,
    )
