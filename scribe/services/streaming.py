"""
STREAM EMITTER MODULE
=====================

Pushes generated text to the client as server-sent events.

FRAMING:
  data: {"delta": "<up to chunk_chars characters>"}\n\n
  data: {"warning": "<message>"}\n\n            (at most one, on failure)
  data: [DONE]\n\n                             (always last)

Null bytes are stripped from every payload.

The producer (an async iterator of StreamPiece) runs in its own task and
hands pieces over through a queue. While waiting, and before every frame, the
emitter checks whether the client is still connected. On disconnect it
cancels the producer (which aborts any in-flight HTTP call), stops emitting
text, and finishes with [DONE]; that is a normal ending, not an error. Any
exception from the producer becomes one warning frame.
"""

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from config import STREAM_CHUNK_CHARS
from scribe.errors import NetworkAbort, ScribeError, warning_for


logger = logging.getLogger("scribe")

DONE_FRAME = "data: [DONE]\n\n"

IsDisconnected = Callable[[], Awaitable[bool]]


@dataclass
class StreamPiece:
    kind: str    # "text" or "warning"
    value: str


def text_piece(value: str) -> StreamPiece:
    return StreamPiece("text", value)


def warning_piece(value: str) -> StreamPiece:
    return StreamPiece("warning", value)


def encode_frame(payload: dict) -> str:
    # json.dumps would escape NUL as \u0000, so strip it from the values first.
    clean = {k: v.replace("\x00", "") if isinstance(v, str) else v for k, v in payload.items()}
    return f"data: {json.dumps(clean, ensure_ascii=False)}\n\n"


def split_chunks(text: str, size: int) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


async def _never_disconnected() -> bool:
    return False


class StreamEmitter:
    def __init__(self, chunk_chars: int = STREAM_CHUNK_CHARS, poll_interval: float = 0.25):
        self.chunk_chars = max(1, chunk_chars)
        self.poll_interval = poll_interval

    async def _pump(self, source: AsyncIterator[StreamPiece], queue: "asyncio.Queue[Optional[StreamPiece]]") -> None:
        try:
            async for piece in source:
                await queue.put(piece)
        except ScribeError as e:
            logger.warning("Stream producer failed: %s", e)
            await queue.put(warning_piece(warning_for(e)))
        except Exception as e:
            logger.error("Unexpected stream failure: %s", e, exc_info=True)
            await queue.put(warning_piece(warning_for(e)))
        await queue.put(None)

    async def _next_piece(self, queue, is_disconnected: IsDisconnected) -> Optional[StreamPiece]:
        while True:
            try:
                return await asyncio.wait_for(queue.get(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    raise NetworkAbort()

    async def emit(
        self,
        source: AsyncIterator[StreamPiece],
        is_disconnected: IsDisconnected = _never_disconnected,
    ) -> AsyncIterator[str]:
        queue: "asyncio.Queue[Optional[StreamPiece]]" = asyncio.Queue()
        producer = asyncio.create_task(self._pump(source, queue))
        try:
            while True:
                piece = await self._next_piece(queue, is_disconnected)
                if piece is None:
                    break
                if piece.kind == "warning":
                    if await is_disconnected():
                        raise NetworkAbort()
                    yield encode_frame({"warning": piece.value})
                    continue
                for chunk in split_chunks(piece.value, self.chunk_chars):
                    if await is_disconnected():
                        raise NetworkAbort()
                    yield encode_frame({"delta": chunk})
        except NetworkAbort:
            logger.warning("Client disconnected; stream stopped")
        finally:
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer
        yield DONE_FRAME
