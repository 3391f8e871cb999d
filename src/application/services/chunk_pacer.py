"""Output pacing for streamed chunks."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing

logger = logging.getLogger(__name__)


class ChunkPacer:
    """Throttles the rate at which chunks are released downstream.

    Pacing only delays: chunks are never reordered, merged or dropped.
    """

    def __init__(self, delay_ms: int = 50) -> None:
        """Initialize the pacer.

        Args:
            delay_ms: Pause after each chunk, in milliseconds (0 disables pacing)
        """
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self._delay_ms = delay_ms

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    async def pace(self) -> None:
        """Suspend for the configured delay."""
        if self._delay_ms > 0:
            await asyncio.sleep(self._delay_ms / 1000)

    async def paced(self, chunks: AsyncGenerator[str, None]) -> AsyncGenerator[str, None]:
        """Re-yield chunks, pausing after each one before pulling the next.

        Closing the paced generator closes the source generator.
        """
        async with aclosing(chunks):
            async for chunk in chunks:
                yield chunk
                await self.pace()
