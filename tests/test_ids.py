import os

import pytest

from tokenvm.ids import EMPTY_ID, ID_LEN, decode_id, encode_id


def test_empty_id_text_form():
    assert encode_id(EMPTY_ID) == "11111111111111111111111111111111LpoYY"


@pytest.mark.parametrize("seed", range(5))
def test_round_trip(seed):
    raw = bytes([seed]) + os.urandom(ID_LEN - 1)
    assert decode_id(encode_id(raw)) == raw


def test_encode_rejects_wrong_length():
    with pytest.raises(ValueError):
        encode_id(b"\x01" * 31)


def test_decode_rejects_bad_checksum():
    text = encode_id(b"\x07" * ID_LEN)
    corrupted = text[:-1] + ("2" if text[-1] != "2" else "3")
    with pytest.raises(ValueError):
        decode_id(corrupted)


def test_decode_rejects_invalid_character():
    with pytest.raises(ValueError):
        decode_id("0OIl")


def test_decode_rejects_short_input():
    with pytest.raises(ValueError):
        decode_id("1")