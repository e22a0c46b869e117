import asyncio
import json

from scribe.errors import UpstreamHTTPError
from scribe.services.streaming import (
    DONE_FRAME,
    StreamEmitter,
    encode_frame,
    split_chunks,
    text_piece,
    warning_piece,
)


async def pieces(*items):
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


def collect(emitter, source, is_disconnected=None):
    async def _run():
        if is_disconnected is None:
            return [frame async for frame in emitter.emit(source)]
        return [frame async for frame in emitter.emit(source, is_disconnected)]

    return asyncio.run(_run())


def decode(frame):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


def test_split_chunks():
    assert split_chunks("abcdefg", 3) == ["abc", "def", "g"]
    assert split_chunks("", 3) == []


def test_encode_frame_strips_null_bytes():
    frame = encode_frame({"delta": "a\x00b"})
    assert frame == 'data: {"delta": "ab"}\n\n'
    assert "\\u0000" not in frame


def test_text_is_chunked_and_ends_with_done():
    frames = collect(StreamEmitter(chunk_chars=4), pieces(text_piece("Hello world")))
    assert [decode(f)["delta"] for f in frames[:-1]] == ["Hell", "o wo", "rld"]
    assert frames[-1] == DONE_FRAME


def test_warning_frame_then_done():
    frames = collect(StreamEmitter(), pieces(text_piece("Hi"), warning_piece("⚠️ careful")))
    assert decode(frames[0]) == {"delta": "Hi"}
    assert decode(frames[1]) == {"warning": "⚠️ careful"}
    assert frames[2:] == [DONE_FRAME]


def test_empty_source_still_ends_with_done():
    assert collect(StreamEmitter(), pieces()) == [DONE_FRAME]


def test_producer_error_becomes_one_warning():
    source = pieces(text_piece("Hi"), UpstreamHTTPError(500, "boom"))
    frames = collect(StreamEmitter(), source)
    assert decode(frames[0]) == {"delta": "Hi"}
    assert decode(frames[1]) == {"warning": "⚠️ OpenAI request failed (500): boom"}
    assert frames[2:] == [DONE_FRAME]


def test_unexpected_producer_error_is_generic_warning():
    frames = collect(StreamEmitter(), pieces(RuntimeError("kaboom")))
    assert "warning" in decode(frames[0])
    assert "kaboom" not in frames[0]
    assert frames[1:] == [DONE_FRAME]


def test_disconnect_after_third_chunk_stops_the_stream():
    emitter = StreamEmitter(chunk_chars=2, poll_interval=0.01)
    state = {"disconnected": False}

    async def is_disconnected():
        return state["disconnected"]

    async def _run():
        frames = []
        async for frame in emitter.emit(pieces(text_piece("abcdefghij")), is_disconnected):
            frames.append(frame)
            if len(frames) == 3:
                state["disconnected"] = True
        return frames

    frames = asyncio.run(_run())
    assert [decode(f)["delta"] for f in frames[:3]] == ["ab", "cd", "ef"]
    assert frames[3:] == [DONE_FRAME]


def test_disconnect_while_waiting_cancels_producer():
    emitter = StreamEmitter(chunk_chars=2, poll_interval=0.01)
    state = {"disconnected": False, "cancelled": False}

    async def is_disconnected():
        return state["disconnected"]

    async def slow_source():
        yield text_piece("abcdef")
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise
        yield text_piece("never sent")

    async def _run():
        frames = []
        async for frame in emitter.emit(slow_source(), is_disconnected):
            frames.append(frame)
            if len(frames) == 3:
                state["disconnected"] = True
        return frames

    frames = asyncio.run(_run())
    assert len(frames) == 4
    assert frames[-1] == DONE_FRAME
    assert state["cancelled"] is True
