"""
Multiplexed stream demultiplexer

Containers started without a TTY send stdout and stderr over one
connection as a sequence of frames:

    +------+---------+----------------+-----------------+
    | type | 0  0  0 | length (BE u32)| payload[length] |
    +------+---------+----------------+-----------------+
      1 B     3 B          4 B

type is 0 (stdin), 1 (stdout) or 2 (stderr).
"""

import enum
import logging
import struct
from typing import BinaryIO, Dict, Iterator, NamedTuple, Optional, Tuple

from .exceptions import StreamConsumedError, TruncatedStreamError, UnknownStreamTypeError

logger = logging.getLogger(__name__)

HEADER_FORMAT = '>BxxxL'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)


class StreamType(enum.IntEnum):
    STDIN = 0
    STDOUT = 1
    STDERR = 2


class Frame(NamedTuple):
    stream_type: StreamType
    length: int
    payload: bytes


class DecodedLine(NamedTuple):
    stream_type: StreamType
    text: str


def parse_header(header: bytes) -> Tuple[StreamType, int]:
    """
    Parse one 8-byte frame header

    Args:
        header: Exactly HEADER_SIZE bytes

    Returns:
        (stream_type, payload_length)

    Raises:
        UnknownStreamTypeError: Type byte is not 0, 1 or 2
    """
    type_byte, length = struct.unpack(HEADER_FORMAT, header)
    try:
        return StreamType(type_byte), length
    except ValueError:
        raise UnknownStreamTypeError(type_byte) from None


def pack_frame(stream_type: int, payload: bytes) -> bytes:
    """Build one frame; used to feed the demultiplexer in tests and tools"""
    return struct.pack(HEADER_FORMAT, stream_type, len(payload)) + payload


class FrameDemultiplexer:
    """
    Decodes one multiplexed byte stream into frames or lines

    The stream only needs read(n); short reads are fine and b'' marks the
    end. One instance consumes its stream once: a second pass raises
    StreamConsumedError. Not safe for concurrent consumers.
    """

    def __init__(self, stream: BinaryIO, encoding: str = 'utf-8'):
        self.stream = stream
        self.encoding = encoding
        self._started = False

    def __iter__(self) -> Iterator[Frame]:
        return self.frames()

    def frames(self) -> Iterator[Frame]:
        """Yield frames in wire order, zero-length frames included"""
        self._claim()
        return self._read_frames()

    def lines(self) -> Iterator[DecodedLine]:
        """
        Yield complete lines per stream type

        Payload bytes are buffered separately for each stream type. A line
        is emitted when its buffer sees '\\n' (the terminator is stripped).
        At the end of the stream leftover bytes are flushed as one last
        unterminated line per stream type.
        """
        self._claim()
        return self._read_lines()

    def payloads(self, stream_type: Optional[StreamType] = None) -> Iterator[bytes]:
        """Yield raw payloads, optionally only those of one stream type"""
        for frame in self.frames():
            if stream_type is None or frame.stream_type == stream_type:
                yield frame.payload

    def collect(self) -> Tuple[bytes, bytes]:
        """Drain the stream and return (stdout, stderr)"""
        chunks = {StreamType.STDOUT: [], StreamType.STDERR: []}
        for frame in self.frames():
            if frame.stream_type in chunks:
                chunks[frame.stream_type].append(frame.payload)
        return b''.join(chunks[StreamType.STDOUT]), b''.join(chunks[StreamType.STDERR])

    def _claim(self):
        if self._started:
            raise StreamConsumedError("Stream has already been consumed")
        self._started = True

    def _read_frames(self) -> Iterator[Frame]:
        while True:
            header = self._read_exact(HEADER_SIZE, allow_eof=True)
            if header is None:
                return
            stream_type, length = parse_header(header)
            payload = self._read_exact(length) if length else b''
            yield Frame(stream_type, length, payload)

    def _read_lines(self) -> Iterator[DecodedLine]:
        buffers: Dict[StreamType, bytearray] = {t: bytearray() for t in StreamType}

        for frame in self._read_frames():
            buffer = buffers[frame.stream_type]
            buffer.extend(frame.payload)
            while True:
                end = buffer.find(b'\n')
                if end < 0:
                    break
                line = bytes(buffer[:end])
                del buffer[:end + 1]
                yield DecodedLine(frame.stream_type, line.decode(self.encoding, errors='replace'))

        for stream_type, buffer in buffers.items():
            if buffer:
                yield DecodedLine(stream_type, bytes(buffer).decode(self.encoding, errors='replace'))

    def _read_exact(self, size: int, allow_eof: bool = False) -> Optional[bytes]:
        data = bytearray()
        while len(data) < size:
            chunk = self.stream.read(size - len(data))
            if not chunk:
                break
            data.extend(chunk)

        if len(data) == size:
            return bytes(data)
        if allow_eof and not data:
            return None

        what = 'header' if allow_eof else 'payload'
        logger.debug(f"Stream ended after {len(data)} of {size} {what} bytes")
        raise TruncatedStreamError(
            f"Stream ended inside frame {what}: expected {size} bytes, got {len(data)}",
            expected=size,
            received=len(data)
        )
