"""
End-to-end tests for decode, encode, transcode and loss simulation on files.
"""

import pytest

from dvsraw.config import LossPolicy, ShapingConfig
from dvsraw.events import SensorEvent, TimeSyncMarker
from dvsraw.formats.dispatch import detect_format
from dvsraw.formats.header import parse_raw_header
from dvsraw.pipeline import (
    BitrateStats,
    compute_bitrate_stats,
    decode_events,
    encode_events,
    load_events,
    simulate_loss,
    transcode,
)
from stream_helpers import EVT2_HEADER, evt2_cd, evt2_time_high
from validation_helpers import validate_events


def test_decode_evt2(evt2_recording):
    items, header = decode_events(evt2_recording)

    assert items == [
        TimeSyncMarker(0),
        SensorEvent(3, 5, 10, 1),
        TimeSyncMarker(1),
        SensorEvent(70, 6, 11, 0),
    ]
    assert header.geometry == (640, 480)


def test_transcode_evt3_to_evt2(evt3_recording, temp_dir):
    output = temp_dir / "out.raw"
    decoded, written = transcode(evt3_recording, output)

    assert (decoded, written) == (2, 2)
    assert detect_format(output) == "EVT2"

    items, header = decode_events(output)
    assert [item for item in items if isinstance(item, SensorEvent)] == [
        SensorEvent(0x123456, 640, 360, 1),
        SensorEvent(0x123567, 100, 200, 0),
    ]
    assert header.geometry == (1280, 720)


def test_transcode_dat_writes_header_only(write_recording, temp_dir):
    source = write_recording("in.dat", "% Height 240\n% Width 304\n", b"\x0c\x08" + b"\x00" * 8)
    output = temp_dir / "out.raw"

    assert transcode(source, output) == (0, 0)
    items, header = decode_events(output)
    assert items == []
    assert header.geometry == (304, 240)


def test_encode_returns_event_count(temp_dir):
    header = parse_raw_header(["% evt 2.0", "% geometry 640x480", "% end"])
    items = [TimeSyncMarker(0), SensorEvent(1, 1, 1, 1), SensorEvent(200, 2, 2, 0)]

    assert encode_events(temp_dir / "x.raw", items, header) == 2


def test_load_events_lazyframe(evt2_recording):
    lf = load_events(evt2_recording)
    df = lf.collect()

    assert df["x"].to_list() == [5, 6]
    assert validate_events(df, width=640, height=480, monotonic=True)["valid"]


class TestBitrateStats:
    def test_counts_and_rates(self):
        original = [TimeSyncMarker(0)] + [SensorEvent(t, 0, 0, 1) for t in range(0, 1_000_001, 250_000)]
        shaped = original[:3]
        stats = compute_bitrate_stats(original, shaped)

        assert stats.first_timestamp == 0
        assert stats.last_timestamp == 1_000_000
        assert stats.duration_s == 1.0
        assert stats.original_mbits == pytest.approx(6 * 32 / 1e6)
        assert stats.shaped_mbits == pytest.approx(3 * 32 / 1e6)
        assert stats.original_mbps == pytest.approx(6 * 32 / 1e6)

    def test_zero_duration(self):
        stats = BitrateStats(first_timestamp=5, last_timestamp=5, original_items=1, shaped_items=1)
        assert stats.original_mbps == 0.0
        assert stats.shaped_mbps == 0.0

    def test_no_events(self):
        stats = compute_bitrate_stats([TimeSyncMarker(0)], [])
        assert (stats.first_timestamp, stats.last_timestamp) == (0, 0)


@pytest.mark.integration
class TestSimulateLoss:
    @pytest.fixture
    def busy_recording(self, write_recording):
        # 20 events per 64us TimeHigh period, over 10 periods
        body = b""
        for period in range(10):
            body += evt2_time_high(period)
            for i in range(20):
                body += evt2_cd(i, i, period, i % 2)
        return write_recording("busy.raw", EVT2_HEADER, body)

    @pytest.mark.parametrize("policy", [LossPolicy.TAIL_DROP, LossPolicy.UNIFORM_THIN])
    def test_capacity_respected(self, busy_recording, temp_dir, policy):
        # 64us chunks at 1.5 Mbps: 96 bits per chunk, 3 events
        config = ShapingConfig(chunk_duration_ms=0.064, bandwidth_mbps=1.5, policy=policy)
        output = temp_dir / "loss.raw"
        stats = simulate_loss(busy_recording, output, config)

        items, _ = decode_events(output)
        events = [item for item in items if isinstance(item, SensorEvent)]

        assert config.max_events_per_chunk == 3
        assert len(events) == 30
        assert stats.original_items == 210
        assert stats.shaped_items == 40
        assert sum(isinstance(item, TimeSyncMarker) for item in items) == 10

    def test_tail_drop_keeps_chunk_heads(self, busy_recording, temp_dir):
        config = ShapingConfig(chunk_duration_ms=0.064, bandwidth_mbps=1.5, policy=LossPolicy.TAIL_DROP)
        output = temp_dir / "loss.raw"
        simulate_loss(busy_recording, output, config)

        items, _ = decode_events(output)
        lows = [item.timestamp % 64 for item in items if isinstance(item, SensorEvent)]
        assert lows == [0, 1, 2] * 10
