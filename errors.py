class GrinError(Exception):
    """Base class for all errors raised while encoding or decoding."""


class IoFailureError(GrinError, OSError):
    """Reading the input file or writing the output file failed."""


class MalformedHeaderError(GrinError, ValueError):
    """The serialized tree at the start of a compressed stream is invalid."""


class TruncatedPayloadError(GrinError, EOFError):
    """The compressed payload ended before the end-of-stream symbol."""


class UnencodableSymbolError(GrinError, ValueError):
    """A byte to encode has no leaf in the Huffman tree.

    :ivar symbol: The offending byte value.
    :type symbol: int
    """

    def __init__(self, symbol: int):
        super().__init__(f"Symbol {symbol} has no code in the Huffman tree")
        self.symbol = symbol
