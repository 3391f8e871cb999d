"""Chat controller: streaming query endpoint over the shared chat session."""

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional

from classy_fastapi.decorators import get, post
from fastapi import status
from fastapi.responses import JSONResponse, StreamingResponse
from neuroglia.dependency_injection import ServiceProviderBase
from neuroglia.mapping import Mapper
from neuroglia.mediation import Mediator
from neuroglia.mvc import ControllerBase
from pydantic import BaseModel, Field

from application.agents.llm_provider import LlmProviderError
from application.services import ChatSession, ChunkPacer, InvalidQueryError, StreamingOrchestrator

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    """Request body for a chat query."""

    query: Any = Field(None, description="User query; anything but a non-blank string is answered with 400")


class ToolResponse(BaseModel):
    """A tool registered in the chat session."""

    name: str
    description: str


class ChatController(ControllerBase):
    """Controller for the streaming chat endpoint."""

    def __init__(self, service_provider: ServiceProviderBase, mapper: Mapper, mediator: Mediator):
        super().__init__(service_provider, mapper, mediator)
        self._session: Optional[ChatSession] = None
        self._pacer: Optional[ChunkPacer] = None

    @property
    def session(self) -> ChatSession:
        """Lazy-load ChatSession from DI container."""
        if self._session is None:
            self._session = self.service_provider.get_required_service(ChatSession)
        return self._session

    @property
    def pacer(self) -> ChunkPacer:
        """Lazy-load ChunkPacer from DI container."""
        if self._pacer is None:
            self._pacer = self.service_provider.get_required_service(ChunkPacer)
        return self._pacer

    @post("/")
    async def chat(self, body: Optional[ChatRequest] = None) -> Any:
        """
        Run a query and stream the response as plain text.

        The body is sent chunk by chunk as the model produces it, including the
        tool progress markers. If the model backend fails mid-stream, a final
        error line is written and the response is aborted.
        """
        orchestrator = StreamingOrchestrator(self.session, self.pacer)
        try:
            chunks = orchestrator.stream(body.query if body else None)
        except InvalidQueryError as e:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})

        if not self.session.is_connected:
            await chunks.aclose()
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": "Chat session not connected"})

        async def text_generator() -> AsyncIterator[str]:
            async with aclosing(chunks):
                try:
                    async for chunk in chunks:
                        logger.debug(f"Sending chunk: {chunk.strip()}")
                        yield chunk
                except LlmProviderError as e:
                    logger.error(f"🚨 Stream error: {e.message}")
                    yield f"\n[Error: {e.message}]\n"
                    raise
            logger.info("✅ Stream completed")

        return StreamingResponse(
            text_generator(),
            media_type="text/plain",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    @get("/tools")
    async def list_tools(self) -> list[ToolResponse]:
        """List the tools registered from the MCP server."""
        return [ToolResponse(name=d.name, description=d.description) for d in self.session.registry.descriptors]
