import argparse
import sys

import grin
from errors import GrinError


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="grin",
        description="Huffman coding compressor for single files",
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    encode = subparsers.add_parser(
        "encode", aliases=["e"], help="Compress a file"
    )
    encode.add_argument("infile", help="File to compress")
    encode.add_argument("outfile", help="Compressed file to write")

    decode = subparsers.add_parser(
        "decode", aliases=["d"], help="Decompress a file"
    )
    decode.add_argument("infile", help="Compressed file to read")
    decode.add_argument("outfile", help="Decompressed file to write")

    for sub in (encode, decode):
        sub.add_argument(
            "-P",
            "--no-progress",
            action="store_true",
            help="Hide the progress line",
        )

    return parser


def _print_progress(line: str) -> None:
    """Render and flush a single progress line in-place (carriage return).

    :param line: The textual progress line to display.
    :type line: str
    :returns: None
    :rtype: None
    """
    sys.stdout.write("\r" + line)
    sys.stdout.flush()


def _fmt_pct(done: int, total: int) -> str:
    """Format a completion percentage string like ``12.34%``.

    :param done: Units completed.
    :type done: int
    :param total: Total units to complete.
    :type total: int
    :returns: Percentage.
    :rtype: str
    """
    if total <= 0:
        return "0%"
    pct = 100.0 * (done / float(total))
    return f"{pct:6.2f}%"


def _fmt_bytes(n: int) -> str:
    """Format a byte count into a human-readable string.

    :param n: Number of bytes.
    :type n: int
    :returns: Human-readable string.
    :rtype: str
    """
    for unit in ['', 'Ki', 'Mi', 'Gi', 'Ti']:
        if abs(n) < 1024:
            return f"{n:.2f} {unit}B"
        n /= 1024
    return f"{n:.2f} PiB"


class ProgressLine:
    """Callable progress reporter redrawing one line per whole percent.

    :ivar label: Action label (e.g. "Encoding" or "Decoding").
    :type label: str
    :ivar path: File name displayed next to the label.
    :type path: str
    """

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        self._last_reported = -1

    def __call__(self, done: int, total: int) -> None:
        """Update the progress display.

        :param done: Units processed so far.
        :type done: int
        :param total: Total units.
        :type total: int
        :returns: None
        :rtype: None
        """
        if total <= 0:
            return
        percent_bucket = int((done * 100) / total)
        if percent_bucket == self._last_reported:
            return
        self._last_reported = percent_bucket
        _print_progress(f"{self.label} {self.path}  {_fmt_pct(done, total)}")


def run(cmd: str, infile: str, outfile: str, hide_progress: bool) -> int:
    """Run one encode or decode command and report the result.

    :param cmd: ``"encode"`` or ``"decode"`` (or their aliases).
    :type cmd: str
    :param infile: Input file path.
    :type infile: str
    :param outfile: Output file path.
    :type outfile: str
    :param hide_progress: Whether to suppress the progress line.
    :type hide_progress: bool
    :returns: Process exit status.
    :rtype: int
    """
    encoding = cmd in ("encode", "e")
    operation = grin.encode if encoding else grin.decode
    on_prog = None
    if not hide_progress:
        on_prog = ProgressLine("Encoding" if encoding else "Decoding", infile)
    try:
        in_size, out_size = operation(infile, outfile, on_progress=on_prog)
    except GrinError as e:
        if on_prog is not None:
            sys.stdout.write("\n")
        print(f"[!] {e}")
        return 1
    if on_prog is not None:
        sys.stdout.write("\n")
        sys.stdout.flush()
    raw, packed = (in_size, out_size) if encoding else (out_size, in_size)
    print("Size before compression: ", _fmt_bytes(raw))
    print("Size after compression: ", _fmt_bytes(packed))
    if packed:
        print(f"Compression ratio: {raw / packed:.2f}")
    return 0


def main(argv=None) -> int:
    """Entry point for the CLI tool.

    :param argv: Argument list; ``sys.argv[1:]`` when ``None``.
    :type argv: list[str] | None
    :returns: Process exit status.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)
    return run(
        args.cmd, args.infile, args.outfile, getattr(args, "no_progress", False)
    )


if __name__ == "__main__":
    sys.exit(main())
