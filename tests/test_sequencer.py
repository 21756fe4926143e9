"""Tests for pull-based stream handles."""

from __future__ import annotations

import asyncio
import unittest

import httpx

from termai.exceptions import GatewayError, InvalidStateError
from termai.gateway import ChatChunk
from termai.sequencer import StreamHandle, StreamSequencer


class FakeStream:
    """Stand-in for GatewayStream that yields scripted chunks."""

    def __init__(self, chunks: list[ChatChunk], *, fail_with: Exception | None = None,
                 hang: bool = False) -> None:
        self._chunks = chunks
        self._fail_with = fail_with
        self._hang = hang
        self.close_calls = 0
        self.closed = False

    async def chunks(self):
        for chunk in self._chunks:
            yield chunk
        if self._fail_with is not None:
            raise self._fail_with
        if self._hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeGateway:
    def __init__(self, stream: FakeStream) -> None:
        self.stream = stream
        self.requests: list[list[dict]] = []

    async def open_stream(self, messages):
        self.requests.append(list(messages))
        return self.stream


class StreamHandleTests(unittest.IsolatedAsyncioTestCase):
    """Validate ordering, termination and release guarantees."""

    async def test_chunks_arrive_in_order_then_final(self) -> None:
        stream = FakeStream(
            [ChatChunk(text="Hel"), ChatChunk(text="lo"), ChatChunk(is_final=True)]
        )
        handle = StreamHandle(stream)
        first = await handle.next()
        second = await handle.next()
        final = await handle.next()
        self.assertEqual((first.text, second.text), ("Hel", "lo"))
        self.assertTrue(final.is_final)
        self.assertTrue(handle.finished)
        self.assertTrue(stream.closed)

    async def test_end_of_data_produces_final_chunk(self) -> None:
        stream = FakeStream([ChatChunk(text="only")])
        handle = StreamHandle(stream)
        collected = [chunk async for chunk in handle]
        self.assertEqual(collected[0].text, "only")
        self.assertTrue(collected[-1].is_final)
        self.assertEqual(len(collected), 2)

    async def test_next_after_final_is_invalid(self) -> None:
        handle = StreamHandle(FakeStream([ChatChunk(is_final=True)]))
        await handle.next()
        with self.assertRaises(InvalidStateError):
            await handle.next()

    async def test_transport_error_becomes_error_chunk(self) -> None:
        stream = FakeStream(
            [ChatChunk(text="part")], fail_with=httpx.ReadError("connection reset")
        )
        handle = StreamHandle(stream)
        self.assertEqual((await handle.next()).text, "part")
        with self.assertLogs("termai.sequencer", level="WARNING"):
            chunk = await handle.next()
        self.assertIsInstance(chunk.error, GatewayError)
        self.assertTrue(stream.closed)

    async def test_aclose_is_idempotent(self) -> None:
        stream = FakeStream([ChatChunk(text="a"), ChatChunk(text="b")])
        handle = StreamHandle(stream)
        await handle.next()
        await handle.aclose()
        await handle.aclose()
        self.assertEqual(stream.close_calls, 1)
        with self.assertRaises(InvalidStateError):
            await handle.next()

    async def test_cancelled_next_releases_stream(self) -> None:
        stream = FakeStream([], hang=True)
        handle = StreamHandle(stream)
        task = asyncio.create_task(handle.next())
        await asyncio.sleep(0)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertTrue(stream.closed)
        self.assertTrue(handle.finished)


class StreamSequencerTests(unittest.IsolatedAsyncioTestCase):
    async def test_start_opens_stream_on_gateway(self) -> None:
        gateway = FakeGateway(FakeStream([ChatChunk(is_final=True)]))
        sequencer = StreamSequencer(gateway)
        handle = await sequencer.start([{"role": "user", "content": "hi"}])
        self.assertIsInstance(handle, StreamHandle)
        self.assertEqual(gateway.requests, [[{"role": "user", "content": "hi"}]])
        self.assertTrue((await handle.next()).is_final)


if __name__ == "__main__":
    unittest.main()
