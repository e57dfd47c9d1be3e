"""
Tests for extension-based decoder/encoder selection.
"""

import pytest

from dvsraw.errors import (
    IncompatibleVersionError,
    MalformedHeaderError,
    StreamIOError,
    UnsupportedFormatError,
)
from dvsraw.formats import DatDecoder, Evt2Decoder, Evt2Encoder, Evt3Decoder
from dvsraw.formats.dispatch import detect_format, open_decoder, open_encoder
from stream_helpers import EVT2_HEADER, EVT3_HEADER, evt2_time_high, evt3_word


def test_evt2_raw(write_recording):
    path = write_recording("a.raw", EVT2_HEADER, evt2_time_high(0))
    with open_decoder(path) as decoder:
        assert isinstance(decoder, Evt2Decoder)
        assert decoder.header.version == "2.0"


def test_evt3_fallback(write_recording):
    path = write_recording("b.raw", EVT3_HEADER, evt3_word(0x8, 0))
    with open_decoder(path) as decoder:
        assert isinstance(decoder, Evt3Decoder)


def test_uppercase_extension(write_recording):
    path = write_recording("c.RAW", EVT2_HEADER, evt2_time_high(0))
    assert detect_format(path) == "EVT2"


def test_dat(write_recording):
    path = write_recording("d.dat", "% Height 480\n% Width 640\n", b"\x00\x08")
    with open_decoder(path) as decoder:
        assert isinstance(decoder, DatDecoder)
    assert detect_format(path) == "DAT"


def test_unsupported_extension(write_recording):
    path = write_recording("e.aedat", EVT2_HEADER)
    with pytest.raises(UnsupportedFormatError):
        open_decoder(path)


def test_unsupported_is_value_error(write_recording):
    path = write_recording("f.txt", "")
    with pytest.raises(ValueError):
        open_decoder(path)


def test_rejected_by_both_decoders(write_recording):
    path = write_recording("g.raw", "% evt 4.0\n% end\n")
    with pytest.raises(IncompatibleVersionError):
        open_decoder(path)


def test_malformed_header_after_fallback(write_recording):
    path = write_recording("h.raw", "% geometry big\n% end\n")
    with pytest.raises(MalformedHeaderError):
        open_decoder(path)


def test_missing_file(temp_dir):
    with pytest.raises(StreamIOError):
        open_decoder(temp_dir / "missing.raw")


def test_open_encoder_truncates(temp_dir):
    path = temp_dir / "out.raw"
    path.write_bytes(b"old content that must go")

    with open_encoder(path) as encoder:
        assert isinstance(encoder, Evt2Encoder)

    assert path.read_bytes() == b""


def test_open_encoder_unknown_format(temp_dir):
    with pytest.raises(UnsupportedFormatError):
        open_encoder(temp_dir / "out.raw", fmt="EVT3")
