import io
import random

from frequency import create_frequency_map


def test_scenario_text_counts():
    freqs = create_frequency_map(b"I oo   ")
    assert freqs == {ord('I'): 1, ord('o'): 2, ord(' '): 4}


def test_empty_input_yields_empty_map():
    assert create_frequency_map(b"") == {}
    assert create_frequency_map(io.BytesIO()) == {}


def test_counts_sum_to_length_and_are_positive():
    rng = random.Random(1234)
    data = bytes(rng.getrandbits(8) for _ in range(5000))
    freqs = create_frequency_map(io.BytesIO(data))
    assert sum(freqs.values()) == len(data)
    assert all(count >= 1 for count in freqs.values())
    assert set(freqs) == set(data)


def test_byte_255_is_counted_not_treated_as_end():
    freqs = create_frequency_map(b"\xff\x00\xff")
    assert freqs == {255: 2, 0: 1}
    assert 256 not in freqs
