"""Line framing over a byte stream, and length-delimited body reassembly.

The reader splits the incoming stream on CRLF only. Job bodies are binary
and may contain CRLF themselves, so a body can arrive as several frames;
``read_body`` stitches them back together using the declared length::

    RESERVED 7 12\\r\\n        header frame
    line1\\r\\n                body frame 1
    line2\\r\\n                body frame 2 (CRLF here ends the body)

    read_body(reader, 12) == b"line1\\r\\nline2"
"""

import logging
from collections.abc import Callable, Iterator

from .errors import MalformedResponseError, ShortBodyError
from .protocol import DELIMITER, MAX_RECV

logger = logging.getLogger(__name__)


class FrameReader:
    """Yield CRLF-terminated frames from a chunked byte source.

    Args:
        read: Callable returning up to ``n`` bytes, or ``b""`` at end of
            stream. Errors it raises propagate to the caller untouched.
        chunk_size: Bytes requested per read.
    """

    def __init__(
        self,
        read: Callable[[int], bytes],
        chunk_size: int = MAX_RECV,
    ) -> None:
        self._read = read
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        # Offset up to which the buffer is known to hold no delimiter.
        self._scanned = 0
        self._eof = False
        self._truncated = False

    @property
    def buffered(self) -> int:
        """Number of bytes read from the source but not yet returned."""
        return len(self._buffer)

    @property
    def truncated(self) -> bool:
        """True if the last frame was cut off by end of stream, not a delimiter."""
        return self._truncated

    def next_frame(self) -> bytes | None:
        """Return the next frame without its delimiter.

        At end of stream, leftover bytes with no delimiter come back as a
        final frame and ``truncated`` turns True. After that, None.
        """
        while True:
            # Back up one byte: a CR at the end may pair with an LF in the
            # next chunk.
            start = max(self._scanned - 1, 0)
            index = self._buffer.find(DELIMITER, start)
            if index >= 0:
                frame = bytes(self._buffer[:index])
                del self._buffer[: index + len(DELIMITER)]
                self._scanned = 0
                self._truncated = False
                return frame
            self._scanned = len(self._buffer)

            if self._eof:
                break
            chunk = self._read(self._chunk_size)
            if not chunk:
                self._eof = True
                break
            self._buffer += chunk

        if not self._buffer:
            return None

        logger.debug(
            "Stream ended with %d undelimited byte(s)", len(self._buffer)
        )
        frame = bytes(self._buffer)
        self._buffer.clear()
        self._scanned = 0
        self._truncated = True
        return frame

    def __iter__(self) -> Iterator[bytes]:
        while (frame := self.next_frame()) is not None:
            yield frame


def read_body(reader: FrameReader, length: int) -> bytes:
    """Read a body of exactly ``length`` bytes that follows a header.

    Frames are joined with the delimiter they were split on until the
    declared length is reached. The body's own terminating CRLF is consumed
    as the end of the last frame, so a zero-length body still consumes one
    empty frame.

    Raises:
        ShortBodyError: The stream ended first.
        MalformedResponseError: A frame boundary didn't line up with the
            declared length.
    """
    body = bytearray()
    while True:
        frame = reader.next_frame()
        if frame is None:
            # The delimiter re-inserted after the previous frame isn't payload.
            raise ShortBodyError(length, max(len(body) - len(DELIMITER), 0))
        body += frame
        if len(body) == length:
            return bytes(body)
        if len(body) > length:
            raise MalformedResponseError(
                bytes(body[:80]),
                f"body overran declared length {length} ({len(body)} bytes)",
            )
        body += DELIMITER
