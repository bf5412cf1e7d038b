"""
Streaming (streaming.py)

Tests ChunkBuffer consumption, early close, Streamable.send and OutputStream.
"""

import io

import pytest

from ardea.bridge import Bridge
from ardea.faults import StreamConsumedFault
from ardea.properties import PropertyType
from ardea.request import Interaction
from ardea.response import Response
from ardea.streaming import ChunkBuffer, DataChunk, OutputStream, PropertyChunk, Streamable


class RecordingStream:

    def __init__(self, fail_on=None):
        self.chunks = []
        self.closed_with = "open"
        self.fail_on = fail_on

    def provide(self, chunk):
        if self.fail_on is not None and len(self.chunks) == self.fail_on:
            raise IOError("sink broken")
        self.chunks.append(chunk)

    def close(self, error=None):
        self.closed_with = error


class TrackingFile(io.BytesIO):

    def __init__(self, data):
        super().__init__(data)
        self.was_closed = False

    def close(self):
        self.was_closed = True
        super().close()


# ============================================================================
# ChunkBuffer
# ============================================================================

class TestChunkBuffer:

    def test_text_and_bytes(self):
        buffer = ChunkBuffer().append("a").append(b"b").append(bytearray(b"c")).close()
        assert [c.data for c in buffer.chunks()] == ["a", b"b", b"c"]

    def test_empty_parts_skipped(self):
        buffer = ChunkBuffer().append("").append("x").close()
        assert [c.data for c in buffer.chunks()] == ["x"]

    def test_single_consumer(self):
        buffer = ChunkBuffer.of("x")
        list(buffer.chunks())
        with pytest.raises(StreamConsumedFault):
            buffer.chunks()

    def test_append_after_close(self):
        buffer = ChunkBuffer.of("x")
        with pytest.raises(ValueError):
            buffer.append("y")

    def test_unsupported_source(self):
        with pytest.raises(TypeError):
            ChunkBuffer().append(42)

    def test_file_read_in_blocks_and_closed(self):
        source = TrackingFile(b"abcdefghij")
        buffer = ChunkBuffer(block_size=4).append(source).close()
        assert [c.data for c in buffer.chunks()] == [b"abcd", b"efgh", b"ij"]
        assert source.was_closed

    def test_early_close_releases_files(self):
        first = TrackingFile(b"1234")
        second = TrackingFile(b"5678")
        buffer = ChunkBuffer(block_size=2).append(first).append(second).close()
        chunks = buffer.chunks()
        assert next(chunks).data == b"12"
        chunks.close()
        assert first.was_closed
        assert second.was_closed

    def test_nested_streamable(self):
        inner = ChunkBuffer().append("b").close()
        outer = ChunkBuffer().append("a").append(inner).append("c").close()
        assert [c.data for c in outer.chunks()] == ["a", "b", "c"]


# ============================================================================
# Streamable.send
# ============================================================================

class TestSend:

    def test_content_round_trip(self):
        content = Response.ok("hello").with_title("T")
        stream = RecordingStream()
        content.streamable().send(stream)
        assert stream.chunks == [PropertyChunk(PropertyType.TITLE, "T"), DataChunk("hello")]
        assert stream.closed_with is None

    def test_failure_closes_with_error(self):
        source = TrackingFile(b"abcd")
        content = Response.status(200).content(ChunkBuffer(block_size=1).append(source).close())
        stream = RecordingStream(fail_on=1)
        content.streamable().send(stream)
        assert isinstance(stream.closed_with, IOError)
        assert source.was_closed

    def test_base_streamable_is_abstract(self):
        with pytest.raises(TypeError):
            Streamable()

    def test_bridge_must_render_views(self):
        class StreamOnlyBridge(Bridge):
            interaction = Interaction()

            def create_stream(self, status, mime_type, charset):
                return RecordingStream()

            def redirect(self, location):
                pass

        with pytest.raises(TypeError):
            StreamOnlyBridge()


# ============================================================================
# OutputStream
# ============================================================================

class TestOutputStream:

    def test_encodes_text(self):
        sink = io.BytesIO()
        stream = OutputStream("utf-8", sink)
        Response.ok("héllo").streamable().send(stream)
        assert sink.getvalue() == "héllo".encode("utf-8")
        assert stream.closed
        assert stream.error is None

    def test_properties_forwarded(self):
        seen = []
        stream = OutputStream("utf-8", io.BytesIO(), on_property=seen.append)
        Response.ok("x").with_title("T").streamable().send(stream)
        assert seen == [PropertyChunk(PropertyType.TITLE, "T")]

    def test_provide_after_close(self):
        stream = OutputStream("utf-8", io.BytesIO())
        stream.close()
        with pytest.raises(ValueError):
            stream.provide(DataChunk("x"))
