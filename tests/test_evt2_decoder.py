"""
Tests for the EVT 2.0 decoder: header handling, time base reconstruction,
rollover and end of stream.
"""

import io
import logging

import pytest

from dvsraw.errors import IncompatibleVersionError, MalformedHeaderError, UnexpectedEndOfStreamError
from dvsraw.events import SensorEvent, TimeSyncMarker
from dvsraw.formats.evt2 import Evt2Decoder
from stream_helpers import EVT2_HEADER, evt2_cd, evt2_time_high, evt2_word


def make_decoder(body, header=EVT2_HEADER):
    return Evt2Decoder(io.BytesIO(header.encode("ascii") + body))


class TestEvt2Header:
    def test_header_lines_and_geometry(self):
        decoder = make_decoder(evt2_time_high(0))
        lines = decoder.read_header()

        assert lines == ["% evt 2.0", "% format EVT2;height=480;width=640", "% geometry 640x480", "% end"]
        assert (decoder.width, decoder.height) == (640, 480)

    def test_evt3_header_rejected(self):
        decoder = make_decoder(b"", header="% evt 3.0\n% end\n")
        with pytest.raises(IncompatibleVersionError):
            decoder.read_header()

    def test_format_name_mismatch_rejected(self):
        decoder = make_decoder(b"", header="% format EVT3;width=10;height=10\n% end\n")
        with pytest.raises(IncompatibleVersionError):
            decoder.read_header()

    def test_malformed_geometry(self):
        decoder = make_decoder(b"", header="% geometry 640by480\n% end\n")
        with pytest.raises(MalformedHeaderError):
            decoder.read_header()

    def test_headerless_stream(self):
        decoder = Evt2Decoder(io.BytesIO(evt2_time_high(0) + evt2_cd(1, 2, 3, 1)))
        assert decoder.read_header() == []
        assert decoder.read_event() == TimeSyncMarker(0)
        assert decoder.read_event() == SensorEvent(1, 2, 3, 1)


class TestEvt2Decoding:
    def test_time_sync_then_cd_scenario(self):
        decoder = make_decoder(evt2_time_high(0) + evt2_cd(3, 5, 10, 1))
        decoder.read_header()

        assert list(decoder) == [TimeSyncMarker(0), SensorEvent(timestamp=3, x=5, y=10, polarity=1)]

    def test_time_base_applies_to_cd(self):
        decoder = make_decoder(evt2_time_high(0) + evt2_time_high(2) + evt2_cd(7, 1, 1, 0))
        items = list(decoder)

        assert items[-1] == SensorEvent(timestamp=2 * 64 + 7, x=1, y=1, polarity=0)
        assert items[1].time_base == 128

    def test_words_before_first_time_high_are_dropped(self):
        body = evt2_cd(1, 1, 1, 1) + evt2_cd(2, 2, 2, 1) + evt2_time_high(4) + evt2_cd(5, 3, 3, 0)
        items = list(make_decoder(body))

        assert items == [TimeSyncMarker(4), SensorEvent(4 * 64 + 5, 3, 3, 0)]

    def test_trigger_words_skipped(self):
        body = evt2_time_high(0) + evt2_word(0xA, 0x123) + evt2_cd(1, 1, 1, 1)
        items = list(make_decoder(body))

        assert items == [TimeSyncMarker(0), SensorEvent(1, 1, 1, 1)]

    def test_read_event_raises_at_end_of_stream(self):
        decoder = make_decoder(evt2_time_high(0))
        decoder.read_header()
        decoder.read_event()

        with pytest.raises(UnexpectedEndOfStreamError) as exc_info:
            decoder.read_event()
        assert exc_info.value.remaining == 0

    def test_trailing_partial_word_logged(self, caplog):
        decoder = make_decoder(evt2_time_high(0) + evt2_cd(1, 1, 1, 1) + b"\x01\x02")

        with caplog.at_level(logging.WARNING):
            items = list(decoder)

        assert len(items) == 2
        assert "2 trailing bytes" in caplog.text

    def test_no_time_high_yields_nothing(self):
        decoder = make_decoder(evt2_cd(1, 1, 1, 1))
        assert list(decoder) == []

    def test_read_header_resets_state(self):
        decoder = make_decoder(evt2_time_high(0) + evt2_time_high(5) + evt2_cd(1, 1, 1, 1))
        first = list(decoder)
        decoder.read_header()
        second = [decoder.read_event() for _ in range(3)]

        assert first == second


class TestEvt2Rollover:
    def test_rollover_keeps_timestamps_monotonic(self):
        max_payload = (1 << 28) - 1
        body = (
            evt2_time_high(max_payload - 1)
            + evt2_cd(10, 1, 1, 1)
            + evt2_time_high(max_payload)
            + evt2_cd(20, 1, 1, 1)
            + evt2_time_high(0)
            + evt2_cd(30, 1, 1, 1)
            + evt2_time_high(1)
            + evt2_cd(40, 1, 1, 1)
        )
        decoder = make_decoder(body)
        timestamps = [item.timestamp for item in decoder if isinstance(item, SensorEvent)]

        loop = 1 << 34
        assert timestamps == [
            (max_payload - 1) * 64 + 10,
            max_payload * 64 + 20,
            loop + 30,
            loop + 64 + 40,
        ]
        assert timestamps == sorted(timestamps)
        assert decoder.rollover_count == 1

    def test_small_backward_jump_is_not_rollover(self):
        body = evt2_time_high(100) + evt2_time_high(95) + evt2_cd(0, 0, 0, 0)
        decoder = make_decoder(body)
        items = list(decoder)

        assert decoder.rollover_count == 0
        assert items[-1].timestamp == 95 * 64
