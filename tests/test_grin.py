import os
import random

import pytest

import grin
from errors import (
    GrinError,
    IoFailureError,
    MalformedHeaderError,
    TruncatedPayloadError,
)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"x",
        b"I oo   ",
        bytes(range(256)) * 3,
        b"The quick brown fox jumps over the lazy dog. " * 40,
    ],
    ids=["empty", "one-byte", "text", "all-bytes", "sentence"],
)
def test_roundtrip(data):
    assert grin.decompress(grin.compress(data)) == data


def test_roundtrip_random_bytes():
    rng = random.Random(42)
    data = bytes(rng.getrandbits(8) for _ in range(10 * 1024))
    assert grin.decompress(grin.compress(data)) == data


def test_empty_input_is_header_and_padding_only():
    comp = grin.compress(b"")
    assert comp == bytes([0b01000000, 0b00000000])
    assert grin.decompress(comp) == b""


def test_repeated_byte_uses_one_bit_codes():
    data = b"A" * 1000
    comp = grin.compress(data)
    # 21 header bits + 1000 payload bits + 1 end-of-stream bit
    assert len(comp) == 128
    assert grin.decompress(comp) == data


def test_compression_is_deterministic():
    data = b"mississippi river banks " * 20
    assert grin.compress(data) == grin.compress(data)


def test_flipped_payload_bit_is_not_silent():
    data = b"I oo   "
    comp = bytearray(grin.compress(data))
    header_bits = 43
    comp[header_bits // 8] ^= 0x80 >> (header_bits % 8)
    try:
        out = grin.decompress(bytes(comp))
    except TruncatedPayloadError:
        return
    assert out != data


def test_truncated_payload_raises():
    comp = grin.compress(b"hello world, hello huffman")
    with pytest.raises(TruncatedPayloadError):
        grin.decompress(comp[:-1])


def test_garbage_header_raises():
    with pytest.raises(MalformedHeaderError):
        grin.decompress(b"\x80")


def test_progress_reports_both_passes(progress_recorder):
    data = b"abcabcabc" * 10
    on_prog, calls = progress_recorder
    comp = grin.compress(data, on_progress=on_prog)
    assert calls[-1] == (2 * len(data), 2 * len(data))
    assert all(t == 2 * len(data) for _, t in calls)
    assert [d for d, _ in calls] == sorted(d for d, _ in calls)

    calls.clear()
    assert grin.decompress(comp, on_progress=on_prog) == data
    assert calls[-1] == (len(comp), len(comp))


def test_file_roundtrip(sample_file, tmp_path):
    packed = tmp_path / "sample.grin"
    restored = tmp_path / "restored.txt"
    in_size, out_size = grin.encode(str(sample_file), str(packed))
    assert in_size == sample_file.stat().st_size
    assert out_size == packed.stat().st_size

    in_size, out_size = grin.decode(str(packed), str(restored))
    assert in_size == packed.stat().st_size
    assert restored.read_bytes() == sample_file.read_bytes()
    assert out_size == len(restored.read_bytes())


def test_missing_input_raises_io_failure(tmp_path):
    out = tmp_path / "out.grin"
    with pytest.raises(IoFailureError):
        grin.encode(str(tmp_path / "nope.txt"), str(out))
    assert not out.exists()
    assert issubclass(IoFailureError, OSError)


def test_unwritable_output_raises_io_failure(sample_file, tmp_path):
    with pytest.raises(IoFailureError):
        grin.encode(str(sample_file), str(tmp_path / "missing-dir" / "out.grin"))


def test_failed_decode_leaves_no_output(tmp_path):
    bad = tmp_path / "bad.grin"
    bad.write_bytes(grin.compress(b"some text to shorten")[:-1])
    out = tmp_path / "out.txt"
    with pytest.raises(TruncatedPayloadError):
        grin.decode(str(bad), str(out))
    assert not out.exists()
    assert sorted(os.listdir(tmp_path)) == ["bad.grin"]


def test_failed_decode_keeps_existing_output(tmp_path):
    bad = tmp_path / "bad.grin"
    bad.write_bytes(b"\xff\xff")
    out = tmp_path / "out.txt"
    out.write_bytes(b"previous")
    with pytest.raises(GrinError):
        grin.decode(str(bad), str(out))
    assert out.read_bytes() == b"previous"
