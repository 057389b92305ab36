"""
JPEG frame boundary scanner

Splits a concatenated MJPEG byte stream (as written by ffmpeg with `-f mjpeg -`)
into individual JPEG images. Bytes arrive in arbitrary chunks; a frame ends at
the first end-of-image marker (FF D9) after the previous frame.

Known limitation: the FF D9 pair is matched anywhere in the stream, so a frame
whose entropy-coded data happens to contain it is split early. Full JPEG
parsing is not attempted.
"""

import logging
from collections import namedtuple

from screen_streamer.errors import StreamDesyncError

EOI_MARKER = b'\xff\xd9'
DEFAULT_MAX_BUFFER_SIZE = 10 * 1024 * 1024

Frame = namedtuple('Frame', ['data', 'sequence'])


class FrameBoundaryScanner:
    def __init__(self, max_buffer_size=DEFAULT_MAX_BUFFER_SIZE, on_desync=None):
        if max_buffer_size <= 0:
            raise ValueError("max_buffer_size must be positive")
        self.max_buffer_size = max_buffer_size
        self.on_desync = on_desync
        self.buffer = bytearray()
        self.sequence = 0
        self.desync_count = 0
        # Offset up to which the buffer has been searched without a match
        self._scanned = 0

    def feed(self, chunk):
        """Append a chunk and return the list of frames it completed, in order."""
        if not chunk:
            return []
        self.buffer.extend(chunk)

        frames = []
        consumed = 0
        # Back up one byte so a marker split across two chunks is still found
        search_from = max(self._scanned - 1, 0)
        while True:
            index = self.buffer.find(EOI_MARKER, search_from)
            if index < 0:
                break
            end = index + len(EOI_MARKER)
            self.sequence += 1
            frames.append(Frame(bytes(self.buffer[consumed:end]), self.sequence))
            consumed = end
            search_from = end

        if consumed:
            del self.buffer[:consumed]
        elif len(self.buffer) > self.max_buffer_size:
            self._desync()
        self._scanned = len(self.buffer)
        return frames

    def _desync(self):
        error = StreamDesyncError(len(self.buffer), self.max_buffer_size)
        self.buffer = bytearray()
        self.desync_count += 1
        if self.on_desync is not None:
            self.on_desync(error)
        else:
            logging.warning(str(error))

    @property
    def pending(self):
        """Number of buffered bytes not yet part of a complete frame."""
        return len(self.buffer)

    async def frames(self, read_chunk):
        """
        Lazily yield frames from an async chunk source.

        `read_chunk` is a coroutine function returning bytes, or None/b'' once
        the stream has ended.
        """
        while True:
            chunk = await read_chunk()
            if not chunk:
                return
            for frame in self.feed(chunk):
                yield frame
