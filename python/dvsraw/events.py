"""
Decoded event types and conversions to DataFrame / array views.

Decoders produce an ordered stream of two kinds of items:

- ``SensorEvent``: a change-detection (CD) event from one pixel.
- ``TimeSyncMarker``: a periodic clock-base update (an EVT2 TimeHigh word).

Markers are structural, they carry no pixel, but every stream transform must
keep them so the re-encoded stream stays synchronized.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

import numpy as np
import polars as pl


@dataclass(frozen=True)
class SensorEvent:
    """One CD event.

    Attributes:
        timestamp: Absolute time in microseconds
        x, y: Pixel coordinates
        polarity: 1 for ON (brightness increase), 0 for OFF
    """

    timestamp: int
    x: int
    y: int
    polarity: int


@dataclass(frozen=True)
class TimeSyncMarker:
    """A time-base update taken from a TimeHigh wire word.

    ``timestamp`` is the raw wire payload. ``time_base`` is the reconstructed
    base in microseconds (rollovers included) when the decoder knows it; it is
    informational and not part of equality.
    """

    timestamp: int
    time_base: Optional[int] = field(default=None, compare=False)


StreamItem = Union[SensorEvent, TimeSyncMarker]

# Column layout of to_dataframe and load_events frames
EVENT_SCHEMA = {
    "x": pl.Int16,
    "y": pl.Int16,
    "timestamp": pl.Duration(time_unit="us"),
    "polarity": pl.Int8,
}

NUMPY_EVENT_DTYPE = np.dtype([("t", "<u8"), ("x", "<u2"), ("y", "<u2"), ("p", "u1")])


def sensor_events(items: Iterable[StreamItem]) -> List[SensorEvent]:
    """Return only the CD events of a stream, in order."""
    return [item for item in items if isinstance(item, SensorEvent)]


def to_dataframe(items: Iterable[StreamItem]) -> pl.DataFrame:
    """
    Convert a decoded stream into a Polars DataFrame.

    Markers are dropped. Timestamps become a ``Duration("us")`` column so the
    frame can be filtered the same way as frames from ``load_events``.

    Args:
        items: Decoded stream items

    Returns:
        DataFrame with columns x, y, timestamp, polarity
    """
    events = sensor_events(items)
    return pl.DataFrame(
        {
            "x": [ev.x for ev in events],
            "y": [ev.y for ev in events],
            "timestamp": pl.Series([ev.timestamp for ev in events], dtype=pl.Int64).cast(
                pl.Duration(time_unit="us")
            ),
            "polarity": [ev.polarity for ev in events],
        },
        schema=EVENT_SCHEMA,
    )


def to_numpy(items: Iterable[StreamItem]) -> np.ndarray:
    """
    Convert a decoded stream into a structured array with fields ``t, x, y, p``.

    Args:
        items: Decoded stream items

    Returns:
        numpy structured array, one record per CD event
    """
    events = sensor_events(items)
    array = np.zeros(len(events), dtype=NUMPY_EVENT_DTYPE)
    if events:
        array["t"] = [ev.timestamp for ev in events]
        array["x"] = [ev.x for ev in events]
        array["y"] = [ev.y for ev in events]
        array["p"] = [ev.polarity for ev in events]
    return array


def from_dataframe(df: Union[pl.DataFrame, pl.LazyFrame]) -> List[SensorEvent]:
    """Build SensorEvents back from a frame produced by ``to_dataframe``."""
    if isinstance(df, pl.LazyFrame):
        df = df.collect()

    timestamps_us = df["timestamp"].dt.total_microseconds()
    return [
        SensorEvent(timestamp=int(t), x=int(x), y=int(y), polarity=int(p))
        for t, x, y, p in zip(timestamps_us, df["x"], df["y"], df["polarity"])
    ]


__all__ = [
    "SensorEvent",
    "TimeSyncMarker",
    "StreamItem",
    "EVENT_SCHEMA",
    "NUMPY_EVENT_DTYPE",
    "sensor_events",
    "to_dataframe",
    "to_numpy",
    "from_dataframe",
]
