"""
Streaming - chunk protocol between responses and bridges.

A response is delivered as an ordered sequence of chunks pushed into a
``Stream``: every property chunk first, then the body data chunks, then a
single ``close``. Sequences are single-consumer and forward-only; closing the
iterator early releases any file handle held by the body.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Iterator, List, Optional, Protocol, Union

from .faults import StreamConsumedFault
from .properties import PropertyType


logger = logging.getLogger("ardea.streaming")

DEFAULT_BLOCK_SIZE = 64 * 1024


# ============================================================================
# Chunks
# ============================================================================

@dataclass(frozen=True)
class PropertyChunk:
    """A (property type, value) pair sent ahead of the body."""
    type: PropertyType[Any]
    value: Any


@dataclass(frozen=True)
class DataChunk:
    """A piece of body data, text or bytes."""
    data: Union[str, bytes]

    @property
    def is_text(self) -> bool:
        return isinstance(self.data, str)


Chunk = Union[PropertyChunk, DataChunk]


class Stream(Protocol):
    """Output sink supplied by a bridge."""

    def provide(self, chunk: Chunk) -> None:
        ...

    def close(self, error: Optional[BaseException] = None) -> None:
        ...


# ============================================================================
# Streamable
# ============================================================================

class Streamable(ABC):
    """Something that can be sent to a Stream."""

    @abstractmethod
    def chunks(self) -> Iterator[Chunk]:
        """Ordered chunk sequence, consumed once."""

    def send(self, stream: Stream) -> None:
        """
        Push every chunk into ``stream`` then close it.

        A failure while producing or providing a chunk closes the stream with
        the error attached.
        """
        iterator = self.chunks()
        try:
            for chunk in iterator:
                stream.provide(chunk)
        except Exception as e:
            iterator.close()
            logger.warning("Stream aborted: %s", e)
            stream.close(e)
            return
        stream.close(None)


class ChunkBuffer(Streamable):
    """
    Buffered sequence of body parts.

    Parts are text, bytes, binary file-like objects (read lazily in blocks and
    closed once consumed) or other Streamables. The buffer can be consumed once.
    """

    def __init__(self, block_size: int = DEFAULT_BLOCK_SIZE):
        self._parts: List[Any] = []
        self._closed = False
        self._consumed = False
        self.block_size = block_size

    def append(self, source: Union[str, bytes, bytearray, BinaryIO, Streamable, DataChunk]) -> "ChunkBuffer":
        if self._closed:
            raise ValueError("Cannot append to a closed chunk buffer")
        if isinstance(source, DataChunk):
            self._parts.append(source)
        elif isinstance(source, (str, bytes)):
            self._parts.append(DataChunk(source))
        elif isinstance(source, bytearray):
            self._parts.append(DataChunk(bytes(source)))
        elif isinstance(source, Streamable) or hasattr(source, "read"):
            self._parts.append(source)
        else:
            raise TypeError(f"Cannot stream {type(source).__name__}")
        return self

    def close(self) -> "ChunkBuffer":
        """Freeze the buffer, no more parts may be appended."""
        self._closed = True
        return self

    def chunks(self) -> Iterator[Chunk]:
        if self._consumed:
            raise StreamConsumedFault()
        self._consumed = True
        return self._iterate()

    def _iterate(self) -> Iterator[Chunk]:
        pending = list(self._parts)
        try:
            while pending:
                part = pending.pop(0)
                if isinstance(part, DataChunk):
                    if part.data:
                        yield part
                elif isinstance(part, Streamable):
                    yield from part.chunks()
                else:
                    try:
                        while True:
                            block = part.read(self.block_size)
                            if not block:
                                break
                            yield DataChunk(block)
                    finally:
                        part.close()
        finally:
            for part in pending:
                if not isinstance(part, (DataChunk, Streamable)):
                    part.close()

    @classmethod
    def of(cls, source: Any) -> "ChunkBuffer":
        """Buffer a single source."""
        return cls().append(source).close()


# ============================================================================
# OutputStream
# ============================================================================

class OutputStream:
    """
    Stream adapter writing data chunks to a binary sink.

    Text is encoded with ``charset``; property chunks go to ``on_property``
    (ignored when not provided).
    """

    def __init__(
        self,
        charset: str,
        sink: BinaryIO,
        on_property: Optional[Callable[[PropertyChunk], None]] = None,
    ):
        self.charset = charset
        self.sink = sink
        self.on_property = on_property
        self.error: Optional[BaseException] = None
        self.closed = False

    def provide(self, chunk: Chunk) -> None:
        if self.closed:
            raise ValueError("Stream is closed")
        if isinstance(chunk, PropertyChunk):
            if self.on_property is not None:
                self.on_property(chunk)
        elif chunk.is_text:
            self.sink.write(chunk.data.encode(self.charset))
        else:
            self.sink.write(chunk.data)

    def close(self, error: Optional[BaseException] = None) -> None:
        if self.closed:
            return
        self.closed = True
        self.error = error
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()
