from collections import Counter
from typing import Dict

from bitops import ByteSource, iter_chunks


def create_frequency_map(source: ByteSource) -> Dict[int, int]:
    """Count how often each byte value occurs in ``source``.

    Scanning stops at the source's real end of input. Only byte values that
    occur are present in the result, and the end-of-stream symbol is never
    added here.

    :param source: Bytes-like object or readable binary stream.
    :type source: bytes | bytearray | memoryview | BinaryIO
    :returns: Mapping from byte value (0-255) to occurrence count (>= 1).
    :rtype: Dict[int, int]
    """
    counts: Counter = Counter()
    for chunk in iter_chunks(source):
        counts.update(chunk)
    return dict(counts)
