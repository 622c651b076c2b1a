import io
from typing import BinaryIO, Iterator, Optional, Union

CHUNK_SIZE = 64 * 1024  #: Bytes moved per read/write on the underlying stream

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


def iter_chunks(source: ByteSource, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the content of a byte source in chunks.

    :param source: Bytes-like object or readable binary stream.
    :type source: bytes | bytearray | memoryview | BinaryIO
    :param chunk_size: Maximum size of each yielded chunk.
    :type chunk_size: int
    :returns: Iterator over non-empty ``bytes`` chunks, in order.
    :rtype: Iterator[bytes]
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        view = memoryview(source)
        for start in range(0, len(view), chunk_size):
            yield bytes(view[start:start + chunk_size])
        return
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            return
        yield chunk


class BitWriter:
    """Bit-packing writer over a binary stream.

    Accumulates bits MSB first and hands whole bytes to ``stream`` in
    chunks. The final partial byte is zero-padded by :meth:`flush`.

    :ivar stream: Destination stream; an in-memory buffer when none is given.
    :type stream: BinaryIO
    :ivar buffer: Whole bytes not yet handed to ``stream``.
    :type buffer: bytearray
    :ivar bit_buffer: Scratch register for pending bits.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer`` (0-7).
    :type bit_count: int
    :ivar bytes_written: Number of bytes handed to ``stream`` so far.
    :type bytes_written: int
    """

    def __init__(self, stream: Optional[BinaryIO] = None):
        """Create a bit writer.

        :param stream: Writable binary stream. ``None`` writes to a fresh
            :class:`io.BytesIO`, readable afterwards with :meth:`getvalue`.
        :type stream: BinaryIO | None
        :returns: None
        :rtype: None
        """
        self.stream = stream if stream is not None else io.BytesIO()
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bytes_written = 0

    def __enter__(self) -> "BitWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.flush()

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value``, MSB first.

        :param value: Integer whose bits will be written.
        :type value: int
        :param nbits: Number of bits from ``value`` to write. Zero is a no-op.
        :type nbits: int
        :returns: None
        :rtype: None
        """
        if nbits <= 0:
            return
        self.bit_buffer = (self.bit_buffer << nbits) | (value & ((1 << nbits) - 1))
        self.bit_count += nbits
        while self.bit_count >= 8:
            self.bit_count -= 8
            self.buffer.append((self.bit_buffer >> self.bit_count) & 0xFF)
        self.bit_buffer &= (1 << self.bit_count) - 1
        if len(self.buffer) >= CHUNK_SIZE:
            self._drain()

    def write_bit(self, bit: int):
        """Write a single bit (any non-zero ``bit`` writes ``1``).

        :param bit: Bit value.
        :type bit: int
        :returns: None
        :rtype: None
        """
        self.write_bits(1 if bit else 0, 1)

    def flush(self):
        """Pad the pending partial byte with zeros and push everything to ``stream``.

        :returns: None
        :rtype: None
        """
        if self.bit_count > 0:
            self.buffer.append((self.bit_buffer << (8 - self.bit_count)) & 0xFF)
            self.bit_buffer = 0
            self.bit_count = 0
        self._drain()
        self.stream.flush()

    def getvalue(self) -> bytes:
        """Return everything written to an in-memory stream, after flushing.

        :returns: Bytes written so far.
        :rtype: bytes
        :raises TypeError: If the writer wraps a stream without ``getvalue``.
        """
        self.flush()
        if not hasattr(self.stream, "getvalue"):
            raise TypeError("getvalue() needs an in-memory stream")
        return self.stream.getvalue()

    def _drain(self):
        if self.buffer:
            self.stream.write(self.buffer)
            self.bytes_written += len(self.buffer)
            self.buffer = bytearray()


class BitReader:
    """Bit reader over bytes or a readable binary stream.

    End of input is signalled by :class:`EOFError`, never by a bit pattern.

    :ivar stream: Source stream, or ``None`` when reading from a bytes object.
    :type stream: BinaryIO | None
    :ivar data: Current chunk of source bytes.
    :type data: bytes
    :ivar pos: Index of the next unread byte in ``data``.
    :type pos: int
    :ivar bit_buffer: Scratch register holding the current source byte.
    :type bit_buffer: int
    :ivar bit_count: Number of unread bits remaining in ``bit_buffer`` (0-8).
    :type bit_count: int
    :ivar bytes_read: Number of source bytes consumed so far.
    :type bytes_read: int
    """

    def __init__(self, source: ByteSource):
        """Create a bit reader.

        :param source: Bytes-like object or readable binary stream.
        :type source: bytes | bytearray | memoryview | BinaryIO
        :returns: None
        :rtype: None
        """
        if isinstance(source, (bytes, bytearray, memoryview)):
            self.stream = None
            self.data = bytes(source)
        else:
            self.stream = source
            self.data = b""
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0
        self.bytes_read = 0

    def _next_byte(self):
        if self.pos >= len(self.data):
            chunk = self.stream.read(CHUNK_SIZE) if self.stream is not None else b""
            if not chunk:
                raise EOFError("Unexpected end of data")
            self.data = chunk
            self.pos = 0
        self.bit_buffer = self.data[self.pos]
        self.pos += 1
        self.bytes_read += 1
        self.bit_count = 8

    def read_bit(self) -> int:
        """Read one bit.

        :returns: ``0`` or ``1``.
        :rtype: int
        :raises EOFError: If the source is exhausted.
        """
        if self.bit_count == 0:
            self._next_byte()
        self.bit_count -= 1
        return (self.bit_buffer >> self.bit_count) & 1

    def read_bits(self, nbits: int) -> int:
        """Read ``nbits`` bits and return them as an unsigned integer, MSB first.

        :param nbits: Number of bits to read.
        :type nbits: int
        :returns: The integer value composed of the next ``nbits`` bits.
        :rtype: int
        :raises EOFError: If the end of data is reached before reading ``nbits``.
        """
        result = 0
        for _ in range(nbits):
            result = (result << 1) | self.read_bit()
        return result
