"""Background pumping of stream handles into the event queue."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import inspect
import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import GatewayError
from ..gateway import ChatChunk

if TYPE_CHECKING:
    from ..sequencer import StreamHandle

LOGGER = logging.getLogger(__name__)

ChunkDelivery = Callable[[Any], Any]


class StreamManager:
    """Run at most one pump task that pulls chunks and delivers them in order.

    The pump is the only code that awaits ``StreamHandle.next()``; each chunk
    is handed to ``deliver`` which, in the UI, posts it to the app's message
    queue so that session state is only touched by the event loop.
    """

    TASK_NAME = "active_stream"

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None
        self._handle: StreamHandle | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self, handle: StreamHandle, deliver: ChunkDelivery) -> asyncio.Task[None]:
        """Launch the pump for ``handle``."""
        if self.active:
            raise RuntimeError("A stream is already being pumped.")
        self._handle = handle
        self._task = asyncio.create_task(self._pump(handle, deliver), name=self.TASK_NAME)
        self._task.add_done_callback(self._on_done)
        return self._task

    async def _pump(self, handle: StreamHandle, deliver: ChunkDelivery) -> None:
        try:
            while True:
                try:
                    chunk = await handle.next()
                    await self._deliver(deliver, chunk)
                except Exception as exc:
                    # A failed pull or delivery ends this completion only.
                    LOGGER.error(
                        "stream.pump.failed",
                        exc_info=True,
                        extra={"event": "stream.pump.failed"},
                    )
                    failure = GatewayError(f"Stream failed: {exc}")
                    await self._deliver(deliver, ChatChunk(error=failure))
                    return
                if chunk.is_final or chunk.error is not None:
                    return
        finally:
            await handle.aclose()

    @staticmethod
    async def _deliver(deliver: ChunkDelivery, chunk: ChatChunk) -> None:
        result = deliver(chunk)
        if inspect.isawaitable(result):
            await result

    def _on_done(self, task: asyncio.Task[None]) -> None:
        if task is self._task:
            self._handle = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "stream.pump.failed",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"event": "stream.pump.failed"},
            )

    async def wait(self) -> None:
        """Wait for the current pump to finish."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def cancel(self) -> None:
        """Cancel the pump and release the transport."""
        task, handle = self._task, self._handle
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            LOGGER.info("stream.pump.cancelled", extra={"event": "stream.pump.cancelled"})
        if handle is not None:
            await handle.aclose()
        self._handle = None
