"""Tests unitaires - Transport Framer (toolbridge.features.mcp.framing).

Objectifs:
    - Une frame = un objet JSON compact + `\\n`
    - Les lignes non JSON (bannières, logs) sont ignorées sans couper le flux
    - Une ligne plus longue que la limite du StreamReader est fatale
"""

from __future__ import annotations

import asyncio
import json

import pytest

from toolbridge.core.exceptions import ProtocolError, TransportError
from toolbridge.features.mcp.framing import FrameWriter, decode_frame, encode_frame, read_frames


def _reader_with(data: bytes, *, limit: int = 2**16) -> asyncio.StreamReader:
    reader = asyncio.StreamReader(limit=limit)
    reader.feed_data(data)
    reader.feed_eof()
    return reader


@pytest.mark.unit
def test_encode_frame_is_single_line_even_with_newlines_in_strings():
    data = encode_frame({"jsonrpc": "2.0", "id": 1, "params": {"text": "a\nb"}})
    assert data.endswith(b"\n")
    assert data.count(b"\n") == 1
    assert json.loads(data) == {"jsonrpc": "2.0", "id": 1, "params": {"text": "a\nb"}}


@pytest.mark.unit
def test_decode_frame_blank_line_returns_none():
    assert decode_frame(b"   \n") is None


@pytest.mark.unit
def test_decode_frame_rejects_non_json_and_non_object():
    with pytest.raises(ProtocolError) as exc_info:
        decode_frame(b"server ready\n", server_id="s1")
    assert exc_info.value.details["server_id"] == "s1"

    with pytest.raises(ProtocolError):
        decode_frame(b"[1, 2]\n")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_read_frames_skips_banner_and_delivers_in_order():
    data = (
        b"banner: starting\n"
        + encode_frame({"id": 1, "result": "a"})
        + b"\n"
        + encode_frame({"id": 2, "result": "b"})
    )
    received: list[dict] = []

    await read_frames(_reader_with(data), received.append, server_id="s1")

    assert [frame["id"] for frame in received] == [1, 2]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_read_frames_oversized_line_is_transport_error():
    big = encode_frame({"id": 1, "result": "x" * 5000})
    with pytest.raises(TransportError):
        await read_frames(_reader_with(big, limit=1024), lambda frame: None, server_id="s1")


class _ClosingWriter:
    def __init__(self, *, closing: bool = False, error: BaseException | None = None):
        self.closing = closing
        self.error = error
        self.written: list[bytes] = []

    def is_closing(self) -> bool:
        return self.closing

    def write(self, data: bytes) -> None:
        if self.error is not None:
            raise self.error
        self.written.append(data)

    async def drain(self) -> None:
        return None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_frame_writer_send_and_failures():
    ok = _ClosingWriter()
    await FrameWriter(ok, server_id="s1").send({"id": 1})
    assert ok.written == [encode_frame({"id": 1})]

    with pytest.raises(TransportError):
        await FrameWriter(_ClosingWriter(closing=True), server_id="s1").send({"id": 2})

    with pytest.raises(TransportError):
        await FrameWriter(_ClosingWriter(error=BrokenPipeError()), server_id="s1").send({"id": 3})


class _SlowWriter(_ClosingWriter):
    """`drain` lent; une écriture pendant un drain en cours est un entrelacement."""

    def __init__(self):
        super().__init__()
        self.draining = False
        self.overlaps = 0

    def write(self, data: bytes) -> None:
        if self.draining:
            self.overlaps += 1
        self.written.append(data)

    async def drain(self) -> None:
        self.draining = True
        await asyncio.sleep(0.001)
        self.draining = False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_frame_writer_serializes_concurrent_sends():
    writer = _SlowWriter()
    frames = FrameWriter(writer, server_id="s1")

    await asyncio.gather(
        *(frames.send({"id": i, "params": {"text": "x" * 100 * i}}) for i in range(1, 21))
    )

    assert writer.overlaps == 0
    lines = b"".join(writer.written).splitlines(keepends=True)
    assert len(lines) == 20
    assert sorted(decode_frame(line)["id"] for line in lines) == list(range(1, 21))
