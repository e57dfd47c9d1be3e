"""
Tests for the EVT 2.0 word codec: bit layout of CD and TimeHigh words.
"""

import pytest

from dvsraw.formats.evt2 import (
    Evt2Type,
    RawCD,
    RawOther,
    RawTimeHigh,
    decode_word,
    encode_word,
    pack_word,
    unpack_word,
)


def test_cd_on_bit_layout():
    word = encode_word(RawCD(timestamp_low=3, x=5, y=10, polarity=1))
    value = int.from_bytes(word, "little")

    assert len(word) == 4
    assert value >> 28 == Evt2Type.CD_ON
    assert (value >> 22) & 0x3F == 3
    assert (value >> 11) & 0x7FF == 5
    assert value & 0x7FF == 10


def test_cd_off_type_nibble():
    word = encode_word(RawCD(timestamp_low=0, x=0, y=0, polarity=0))
    assert word == b"\x00\x00\x00\x00"


def test_decode_cd_fields():
    raw = decode_word(pack_word(Evt2Type.CD_ON, (63 << 22) | (2047 << 11) | 2047))

    assert raw == RawCD(timestamp_low=63, x=2047, y=2047, polarity=1)


def test_time_high_payload_is_28_bits():
    word = encode_word(RawTimeHigh((1 << 28) + 5))
    event_type, payload = unpack_word(word)

    assert event_type == Evt2Type.EVT_TIME_HIGH
    assert payload == 5


def test_time_high_round_trip():
    raw = RawTimeHigh(0x0ABCDEF)
    assert decode_word(encode_word(raw)) == raw


def test_trigger_and_unknown_words_are_other():
    assert isinstance(decode_word(pack_word(Evt2Type.EXT_TRIGGER, 1)), RawOther)
    assert decode_word(pack_word(0x5, 42)) == RawOther(0x5, 42)


def test_little_endian_byte_order():
    # TimeHigh 1: type nibble in the most significant byte, which comes last
    assert encode_word(RawTimeHigh(1)) == bytes([0x01, 0x00, 0x00, 0x80])


@pytest.mark.parametrize(
    "raw",
    [
        RawCD(timestamp_low=64, x=0, y=0, polarity=1),
        RawCD(timestamp_low=0, x=2048, y=0, polarity=0),
        RawCD(timestamp_low=0, x=0, y=-1, polarity=0),
    ],
)
def test_cd_out_of_range_fields_rejected(raw):
    with pytest.raises(ValueError):
        encode_word(raw)
