"""Incremental extraction of frames from a raw byte stream."""

from __future__ import annotations

import struct
from typing import Iterator

from .protocol import (
    FRAME_HEADER,
    HEADER_SIZE,
    TAIL_SIZE,
    Frame,
    FrameError,
    Lidar2DPointData,
    decode_frame,
)

MIN_FRAME_SIZE = HEADER_SIZE + TAIL_SIZE
MAX_FRAME_SIZE = HEADER_SIZE + Lidar2DPointData.SIZE + TAIL_SIZE

_SIZE_FIELD = struct.Struct("<I")
_SIZE_OFFSET = 8


def _header_prefix_length(buffer: bytearray) -> int:
    """Length of the longest buffer suffix that starts a frame header."""
    for length in range(min(len(FRAME_HEADER) - 1, len(buffer)), 0, -1):
        if buffer[-length:] == FRAME_HEADER[:length]:
            return length
    return 0


class FrameReader:
    """Buffers incoming bytes and yields every complete, valid frame.

    Bytes that do not belong to a valid frame are skipped; the reader
    resynchronises on the next frame header.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.read_size = 0

    def feed(self, data) -> None:
        """Append received bytes to the buffer."""
        chunk = bytes(data)
        self._buffer += chunk
        self.read_size += len(chunk)

    def frames(self) -> Iterator[Frame]:
        """Yield the frames that are complete in the buffer, consuming them."""
        buf = self._buffer
        while True:
            start = buf.find(FRAME_HEADER)
            if start < 0:
                keep = _header_prefix_length(buf)
                del buf[:len(buf) - keep]
                return
            del buf[:start]
            if len(buf) < HEADER_SIZE:
                return
            (size,) = _SIZE_FIELD.unpack_from(buf, _SIZE_OFFSET)
            if size < MIN_FRAME_SIZE or size > MAX_FRAME_SIZE:
                del buf[:1]
                continue
            if len(buf) < size:
                return
            try:
                frame = decode_frame(buf[:size])
            except FrameError:
                del buf[:1]
                continue
            del buf[:size]
            yield frame

    def clear(self) -> None:
        """Drop everything buffered."""
        self._buffer.clear()

    def cached_size(self) -> int:
        """Number of bytes waiting in the buffer."""
        return len(self._buffer)