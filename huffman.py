import heapq
from typing import BinaryIO, Dict, List, Set, Tuple

from bitops import CHUNK_SIZE, BitReader, BitWriter, ByteSource, iter_chunks
from errors import MalformedHeaderError, TruncatedPayloadError, UnencodableSymbolError

EOF_SYMBOL = 256  #: End-of-stream symbol, never part of decoded output
SYMBOL_BITS = 9  #: Width of a symbol in the serialized tree
MAX_TREE_DEPTH = EOF_SYMBOL  #: Deepest leaf possible with 257 distinct leaves


class HuffmanNode:
    """Node of a Huffman tree.

    A leaf carries a symbol; an internal node carries exactly two children.
    Nodes are ordered by ``(weight, kind, order)`` where ``kind`` is 0 for
    leaves and 1 for internal nodes, and ``order`` is the symbol of a leaf or
    the creation sequence number of an internal node. This is a total order,
    so tree construction never depends on heap internals.

    :ivar symbol: Symbol stored at a leaf; ``None`` for internal nodes.
    :type symbol: int | None
    :ivar weight: Frequency of the symbol, or sum of the children's weights.
    :type weight: int
    :ivar first: Child reached with bit ``0``.
    :type first: HuffmanNode | None
    :ivar second: Child reached with bit ``1``.
    :type second: HuffmanNode | None
    :ivar order: Tie-break rank among nodes of equal weight and kind.
    :type order: int
    """

    def __init__(self, symbol=None, weight=0, first=None, second=None, order=None):
        """Create a Huffman node.

        :param symbol: Symbol value for leaf nodes; ``None`` for internal nodes.
        :type symbol: int | None
        :param int weight: Weight associated with this node.
        :param first: First child, if any.
        :type first: HuffmanNode | None
        :param second: Second child, if any.
        :type second: HuffmanNode | None
        :param order: Tie-break rank; defaults to ``symbol`` for leaves.
        :type order: int | None
        :returns: None
        :rtype: None
        """
        self.symbol = symbol
        self.weight = weight
        self.first = first
        self.second = second
        if order is None:
            order = symbol if symbol is not None else 0
        self.order = order

    @property
    def is_leaf(self) -> bool:
        return self.first is None and self.second is None

    def sort_key(self) -> Tuple[int, int, int]:
        return self.weight, 0 if self.is_leaf else 1, self.order

    def __lt__(self, other):
        """Order nodes for the construction heap.

        :param other: Another node to compare with.
        :type other: HuffmanNode
        :returns: ``True`` if this node is merged before ``other``.
        :rtype: bool
        """
        return self.sort_key() < other.sort_key()


class HuffmanTree:
    """Huffman tree over byte values plus the end-of-stream symbol.

    The tree is built once, either from a frequency map or from a serialized
    header, and is not modified afterwards. Codes are derived once on
    construction.

    Header format (pre-order): a leaf is bit ``0`` followed by its 9-bit
    symbol; an internal node is bit ``1`` followed by its first and then its
    second subtree.

    :ivar root: Root node.
    :type root: HuffmanNode
    :ivar codes: Mapping from symbol to a tuple ``(code, length)``; the code's
        ``length`` low bits are the root-to-leaf path, MSB first.
    :type codes: Dict[int, Tuple[int, int]]
    """

    def __init__(self, root: HuffmanNode):
        """Wrap an already built tree and derive its code table.

        :param root: Root node of the tree.
        :type root: HuffmanNode
        :returns: None
        :rtype: None
        """
        self.root = root
        self.codes: Dict[int, Tuple[int, int]] = {}
        self._get_codes(root, 0, 0)

    @classmethod
    def from_frequencies(cls, frequencies: Dict[int, int]) -> "HuffmanTree":
        """Build an optimal tree from byte frequencies.

        The end-of-stream symbol is added with weight 1. The two lowest nodes
        are merged repeatedly; the node popped first becomes the first child.
        ``frequencies`` itself is left untouched.

        :param frequencies: Mapping from byte value (0-255) to count (>= 1).
        :type frequencies: Dict[int, int]
        :returns: The constructed tree.
        :rtype: HuffmanTree
        :raises ValueError: If a key is not a byte value or a count is below 1.
        """
        heap: List[HuffmanNode] = []
        for symbol, count in frequencies.items():
            if not isinstance(symbol, int) or not 0 <= symbol < EOF_SYMBOL:
                raise ValueError(f"Not a byte value: {symbol!r}")
            if count < 1:
                raise ValueError(f"Count for symbol {symbol} must be positive, got {count}")
            heap.append(HuffmanNode(symbol=symbol, weight=count))
        heap.append(HuffmanNode(symbol=EOF_SYMBOL, weight=1))
        heapq.heapify(heap)

        sequence = 0
        while len(heap) > 1:
            first = heapq.heappop(heap)
            second = heapq.heappop(heap)
            merged = HuffmanNode(
                weight=first.weight + second.weight,
                first=first,
                second=second,
                order=sequence,
            )
            sequence += 1
            heapq.heappush(heap, merged)

        return cls(heap[0])

    def _get_codes(self, node: HuffmanNode, code: int, depth: int):
        if node.is_leaf:
            self.codes[node.symbol] = (code, depth)
        else:
            self._get_codes(node.first, code << 1, depth + 1)
            self._get_codes(node.second, (code << 1) | 1, depth + 1)

    @property
    def symbols(self) -> List[int]:
        """Sorted list of symbols that have a leaf in this tree."""
        return sorted(self.codes)

    @property
    def leaf_count(self) -> int:
        return len(self.codes)

    def code_for(self, symbol: int) -> Tuple[int, int]:
        """Get the code of a symbol.

        :param symbol: Symbol to look up.
        :type symbol: int
        :returns: Tuple ``(code, length)``.
        :rtype: Tuple[int, int]
        :raises UnencodableSymbolError: If the symbol has no leaf.
        """
        try:
            return self.codes[symbol]
        except KeyError:
            raise UnencodableSymbolError(symbol) from None

    def weighted_path_length(self, frequencies: Dict[int, int]) -> int:
        """Sum of ``count * code length`` over ``frequencies``.

        The end-of-stream symbol counts with weight 1 unless ``frequencies``
        gives it a weight.

        :param frequencies: Mapping from symbol to count.
        :type frequencies: Dict[int, int]
        :returns: Weighted sum of leaf depths.
        :rtype: int
        :raises UnencodableSymbolError: If a counted symbol has no leaf.
        """
        weights = dict(frequencies)
        weights.setdefault(EOF_SYMBOL, 1)
        return sum(count * self.code_for(symbol)[1] for symbol, count in weights.items())

    def serialize(self, writer: BitWriter):
        """Write the tree header to ``writer``.

        :param writer: Destination bit writer.
        :type writer: BitWriter
        :returns: None
        :rtype: None
        """
        self._write_node(self.root, writer)

    def _write_node(self, node: HuffmanNode, writer: BitWriter):
        if node.is_leaf:
            writer.write_bit(0)
            writer.write_bits(node.symbol, SYMBOL_BITS)
        else:
            writer.write_bit(1)
            self._write_node(node.first, writer)
            self._write_node(node.second, writer)

    def to_bytes(self) -> bytes:
        """Serialize the tree header alone, zero-padded to a whole byte."""
        writer = BitWriter()
        self.serialize(writer)
        return writer.getvalue()

    @classmethod
    def deserialize(cls, reader: BitReader) -> "HuffmanTree":
        """Rebuild a tree from a header produced by :meth:`serialize`.

        Node weights are unknown at this point and are set to 0.

        :param reader: Bit reader positioned at the start of the header.
        :type reader: BitReader
        :returns: The reconstructed tree.
        :rtype: HuffmanTree
        :raises MalformedHeaderError: If the header is truncated, nests too
            deeply, repeats a symbol, holds a symbol above 256, or lacks the
            end-of-stream leaf.
        """
        seen: Set[int] = set()
        try:
            root = cls._read_node(reader, 0, seen)
        except EOFError as e:
            raise MalformedHeaderError("Tree header ended unexpectedly") from e
        if EOF_SYMBOL not in seen:
            raise MalformedHeaderError("Tree header has no end-of-stream leaf")
        return cls(root)

    @classmethod
    def _read_node(cls, reader: BitReader, depth: int, seen: Set[int]) -> HuffmanNode:
        if depth > MAX_TREE_DEPTH:
            raise MalformedHeaderError(f"Tree header nests deeper than {MAX_TREE_DEPTH} levels")
        if reader.read_bit() == 0:
            symbol = reader.read_bits(SYMBOL_BITS)
            if symbol > EOF_SYMBOL:
                raise MalformedHeaderError(f"Invalid symbol in tree header: {symbol}")
            if symbol in seen:
                raise MalformedHeaderError(f"Symbol {symbol} appears twice in tree header")
            seen.add(symbol)
            return HuffmanNode(symbol=symbol)
        first = cls._read_node(reader, depth + 1, seen)
        second = cls._read_node(reader, depth + 1, seen)
        return HuffmanNode(first=first, second=second)

    @classmethod
    def from_bytes(cls, data: bytes) -> "HuffmanTree":
        return cls.deserialize(BitReader(data))

    def encode(self, source: ByteSource, writer: BitWriter) -> int:
        """Write the header, the code of every byte of ``source``, then the
        end-of-stream code.

        Padding to a whole byte is left to :meth:`BitWriter.flush`.

        :param source: Bytes-like object or readable binary stream.
        :type source: bytes | bytearray | memoryview | BinaryIO
        :param writer: Destination bit writer.
        :type writer: BitWriter
        :returns: Number of input bytes encoded.
        :rtype: int
        :raises UnencodableSymbolError: If a byte has no leaf in this tree.
        """
        self.serialize(writer)
        codes = self.codes
        write_bits = writer.write_bits
        count = 0
        for chunk in iter_chunks(source):
            for byte in chunk:
                try:
                    code, length = codes[byte]
                except KeyError:
                    raise UnencodableSymbolError(byte) from None
                write_bits(code, length)
            count += len(chunk)
        code, length = self.code_for(EOF_SYMBOL)
        write_bits(code, length)
        return count

    def decode(self, reader: BitReader, sink: BinaryIO) -> int:
        """Decode payload bits from ``reader`` into ``sink`` until the
        end-of-stream leaf is reached.

        :param reader: Bit reader positioned right after the tree header.
        :type reader: BitReader
        :param sink: Writable binary stream receiving the decoded bytes.
        :type sink: BinaryIO
        :returns: Number of bytes written to ``sink``.
        :rtype: int
        :raises TruncatedPayloadError: If input ends before the end-of-stream leaf.
        :raises ValueError: If the tree is a single leaf other than end-of-stream.
        """
        root = self.root
        if root.is_leaf and root.symbol != EOF_SYMBOL:
            raise ValueError("A single-leaf tree must hold the end-of-stream symbol")

        out = bytearray()
        written = 0
        node = root
        while True:
            if not node.is_leaf:
                try:
                    bit = reader.read_bit()
                except EOFError as e:
                    raise TruncatedPayloadError(
                        f"Compressed data ended after {written + len(out)} decoded bytes "
                        "without an end-of-stream code"
                    ) from e
                node = node.second if bit else node.first
                continue
            if node.symbol == EOF_SYMBOL:
                break
            out.append(node.symbol)
            node = root
            if len(out) >= CHUNK_SIZE:
                sink.write(out)
                written += len(out)
                out = bytearray()
        if out:
            sink.write(out)
            written += len(out)
        return written

    @classmethod
    def decode_stream(cls, reader: BitReader, sink: BinaryIO) -> Tuple["HuffmanTree", int]:
        """Read the tree header, then decode the payload that follows it.

        :param reader: Bit reader positioned at the start of compressed data.
        :type reader: BitReader
        :param sink: Writable binary stream receiving the decoded bytes.
        :type sink: BinaryIO
        :returns: Tuple ``(tree, bytes_written)``.
        :rtype: Tuple[HuffmanTree, int]
        :raises MalformedHeaderError: If the header is invalid.
        :raises TruncatedPayloadError: If the payload is cut short.
        """
        tree = cls.deserialize(reader)
        return tree, tree.decode(reader, sink)
