"""Pull-based sequencing of streamed completion chunks."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import logging
from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import GatewayError, InvalidStateError
from .gateway import ChatChunk

if TYPE_CHECKING:
    from .gateway import CompletionGateway, GatewayStream

LOGGER = logging.getLogger(__name__)


class StreamHandle:
    """A lazy, finite, non-restartable sequence of chunks for one completion.

    ``next()`` returns chunks in gateway order, then a final chunk when the
    gateway runs out of data. Transport failures become one error chunk.
    The underlying response is released as soon as a final or error chunk is
    produced, when ``aclose()`` is called, or when a pending ``next()`` is
    cancelled.
    """

    def __init__(self, stream: GatewayStream) -> None:
        self._stream = stream
        self._iterator = stream.chunks()
        self._finished = False
        self._chunks_seen = 0

    @property
    def finished(self) -> bool:
        return self._finished

    async def next(self) -> ChatChunk:
        """Await the next chunk."""
        if self._finished:
            raise InvalidStateError("Stream handle was used after its final chunk.")
        try:
            chunk = await self._iterator.__anext__()
        except StopAsyncIteration:
            chunk = ChatChunk(is_final=True)
        except asyncio.CancelledError:
            await self.aclose()
            raise
        except (httpx.HTTPError, httpx.StreamError) as exc:
            LOGGER.warning(
                "sequencer.stream.transport_error",
                extra={"event": "sequencer.stream.transport_error", "reason": str(exc)},
            )
            chunk = ChatChunk(error=GatewayError(f"Stream interrupted: {exc}"))

        self._chunks_seen += 1
        if chunk.is_final or chunk.error is not None:
            LOGGER.info(
                "sequencer.stream.end",
                extra={
                    "event": "sequencer.stream.end",
                    "chunks": self._chunks_seen,
                    "error": chunk.error is not None,
                },
            )
            await self.aclose()
        return chunk

    def __aiter__(self) -> StreamHandle:
        return self

    async def __anext__(self) -> ChatChunk:
        if self._finished:
            raise StopAsyncIteration
        return await self.next()

    async def aclose(self) -> None:
        """Release the transport; safe to call more than once."""
        if self._finished and self._stream.closed:
            return
        self._finished = True
        try:
            await self._iterator.aclose()
        finally:
            await self._stream.aclose()


class StreamSequencer:
    """Start completions on a gateway and hand back pull handles."""

    def __init__(self, gateway: CompletionGateway) -> None:
        self.gateway = gateway

    async def start(self, messages: Sequence[dict[str, Any]]) -> StreamHandle:
        """Open a stream for ``messages``; raises ``GatewayError`` on failure."""
        stream = await self.gateway.open_stream(messages)
        return StreamHandle(stream)
