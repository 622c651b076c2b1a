import io
import os
import tempfile
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterator, Optional, Tuple

from bitops import BitReader, BitWriter
from errors import IoFailureError
from frequency import create_frequency_map
from huffman import HuffmanTree

ProgressCallback = Callable[[int, int], None]


class ProgressReader:
    """Read-only stream wrapper that reports bytes consumed.

    :ivar stream: Wrapped binary stream.
    :type stream: BinaryIO
    :ivar on_progress: Callback ``on_progress(done, total)``.
    :type on_progress: Callable[[int, int], None]
    :ivar done: Bytes reported so far, starting at ``base``.
    :type done: int
    :ivar total: Value passed as ``total`` to every callback.
    :type total: int
    """

    def __init__(
        self,
        stream: BinaryIO,
        on_progress: ProgressCallback,
        total: int,
        base: int = 0,
    ) -> None:
        self.stream = stream
        self.on_progress = on_progress
        self.total = total
        self.done = base

    def read(self, size: int = -1) -> bytes:
        chunk = self.stream.read(size)
        if chunk:
            self.done += len(chunk)
            self.on_progress(self.done, self.total)
        return chunk


def _wrap(
    stream: BinaryIO,
    on_progress: Optional[ProgressCallback],
    total: int,
    base: int = 0,
):
    if on_progress is None:
        return stream
    return ProgressReader(stream, on_progress, total, base)


@contextmanager
def _open_input(path: str) -> Iterator[BinaryIO]:
    try:
        f = open(path, "rb")
    except OSError as e:
        raise IoFailureError(f"Cannot read {path}: {e.strerror or e}") from e
    with f:
        yield f


@contextmanager
def _io_failures(infile: str, outfile: str) -> Iterator[None]:
    try:
        yield
    except IoFailureError:
        raise
    except OSError as e:
        raise IoFailureError(
            f"I/O failure between {infile} and {outfile}: {e.strerror or e}"
        ) from e


def _new_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@contextmanager
def _atomic_output(path: str) -> Iterator[BinaryIO]:
    """Open a temporary file next to ``path`` and move it into place on success.

    On any error the temporary file is removed and ``path`` is left as it was.

    :param path: Final output path.
    :type path: str
    :returns: Context manager yielding the writable temporary file.
    :rtype: Iterator[BinaryIO]
    :raises IoFailureError: If the temporary file cannot be created.
    """
    directory = os.path.dirname(os.path.abspath(path))
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix="." + os.path.basename(path) + ".", suffix=".tmp", dir=directory
        )
    except OSError as e:
        raise IoFailureError(f"Cannot write {path}: {e.strerror or e}") from e
    try:
        with os.fdopen(fd, "wb") as out:
            yield out
        os.chmod(tmp_path, _new_file_mode())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def encode_stream(
    source: BinaryIO,
    sink: BinaryIO,
    on_progress: Optional[ProgressCallback] = None,
    total: int = 0,
) -> HuffmanTree:
    """Compress a seekable binary stream into ``sink``.

    The first pass counts byte frequencies, the stream is rewound and the
    second pass writes the header and codes. Progress covers both passes as
    ``0..2 * total``.

    :param source: Seekable readable binary stream, positioned at its start.
    :type source: BinaryIO
    :param sink: Writable binary stream.
    :type sink: BinaryIO
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :param total: Size of ``source`` in bytes, used for progress only.
    :type total: int
    :returns: The tree used for encoding.
    :rtype: HuffmanTree
    """
    start = source.tell()
    freqs = create_frequency_map(_wrap(source, on_progress, 2 * total))
    tree = HuffmanTree.from_frequencies(freqs)
    source.seek(start)
    with BitWriter(sink) as writer:
        tree.encode(_wrap(source, on_progress, 2 * total, total), writer)
    if on_progress is not None:
        on_progress(2 * total, 2 * total)
    return tree


def decode_stream(
    source: BinaryIO,
    sink: BinaryIO,
    on_progress: Optional[ProgressCallback] = None,
    total: int = 0,
) -> int:
    """Decompress a binary stream into ``sink``.

    :param source: Readable binary stream of compressed data.
    :type source: BinaryIO
    :param sink: Writable binary stream.
    :type sink: BinaryIO
    :param on_progress: Optional callback ``on_progress(done, total)`` over
        compressed bytes consumed.
    :type on_progress: Optional[Callable[[int, int], None]]
    :param total: Size of ``source`` in bytes, used for progress only.
    :type total: int
    :returns: Number of bytes written to ``sink``.
    :rtype: int
    :raises MalformedHeaderError: If the tree header is invalid.
    :raises TruncatedPayloadError: If the data ends before the end-of-stream code.
    """
    reader = BitReader(_wrap(source, on_progress, total))
    _, written = HuffmanTree.decode_stream(reader, sink)
    if on_progress is not None:
        on_progress(total, total)
    return written


def encode(
    infile: str,
    outfile: str,
    on_progress: Optional[ProgressCallback] = None,
) -> Tuple[int, int]:
    """Compress the file ``infile`` into ``outfile``.

    :param infile: Path of the file to compress.
    :type infile: str
    :param outfile: Path of the compressed file to write.
    :type outfile: str
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Tuple ``(input_size, output_size)`` in bytes.
    :rtype: Tuple[int, int]
    :raises IoFailureError: If either file cannot be accessed.
    """
    with _io_failures(infile, outfile), _open_input(infile) as src:
        size = os.fstat(src.fileno()).st_size
        with _atomic_output(outfile) as out:
            encode_stream(src, out, on_progress, size)
    return size, os.path.getsize(outfile)


def decode(
    infile: str,
    outfile: str,
    on_progress: Optional[ProgressCallback] = None,
) -> Tuple[int, int]:
    """Decompress the file ``infile`` into ``outfile``.

    :param infile: Path of the compressed file.
    :type infile: str
    :param outfile: Path of the decompressed file to write.
    :type outfile: str
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Tuple ``(input_size, output_size)`` in bytes.
    :rtype: Tuple[int, int]
    :raises IoFailureError: If either file cannot be accessed.
    :raises MalformedHeaderError: If the tree header is invalid.
    :raises TruncatedPayloadError: If the data ends before the end-of-stream code.
    """
    with _io_failures(infile, outfile), _open_input(infile) as src:
        size = os.fstat(src.fileno()).st_size
        with _atomic_output(outfile) as out:
            written = decode_stream(src, out, on_progress, size)
    return size, written


def compress(data: bytes, on_progress: Optional[ProgressCallback] = None) -> bytes:
    """Compress ``data`` in memory.

    :param data: Input bytes.
    :type data: bytes
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Compressed bytes.
    :rtype: bytes
    """
    out = io.BytesIO()
    encode_stream(io.BytesIO(data), out, on_progress, len(data))
    return out.getvalue()


def decompress(data: bytes, on_progress: Optional[ProgressCallback] = None) -> bytes:
    """Decompress data produced by :func:`compress`.

    :param data: Compressed bytes.
    :type data: bytes
    :param on_progress: Optional callback ``on_progress(done, total)``.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Original bytes.
    :rtype: bytes
    :raises MalformedHeaderError: If the tree header is invalid.
    :raises TruncatedPayloadError: If the data ends before the end-of-stream code.
    """
    out = io.BytesIO()
    decode_stream(io.BytesIO(data), out, on_progress, len(data))
    return out.getvalue()
