"""
dvsraw: Event Camera RAW Stream Codec

Decode and encode Prophesee event camera recordings and simulate a
bandwidth-limited, lossy transmission channel over them.

## Core Features

- **EVT 2.0 / EVT 3.0 decoding**: Bit-exact decoding with timestamp rollover handling
- **EVT 2.0 encoding**: TimeHigh words regenerated from event timestamps
- **Automatic Format Detection**: ``.raw`` files are tried as EVT2, then EVT3
- **Bandwidth Shaping**: Tail-drop or uniform thinning per fixed-duration chunk
- **Polars DataFrame Support**: Decoded recordings as LazyFrames

## Quick Start

### Polars LazyFrames
```python
import dvsraw
import polars as pl

lf = dvsraw.load_events("path/to/recording.raw")
on_events = lf.filter(pl.col("polarity") == 1).collect()
```

### Streams and shaping
```python
import dvsraw

items, header = dvsraw.decode_events("recording.raw")
shaped = dvsraw.shape_events(items, dvsraw.ShapingConfig(bandwidth_mbps=10.0))
dvsraw.encode_events("recording_loss.raw", shaped, header)
```

## Available Functions

- `load_events()`: Decode a recording into a Polars LazyFrame
- `decode_events()` / `encode_events()`: Stream-level decode and EVT2 encode
- `open_decoder()` / `open_encoder()` / `detect_format()`: Format dispatch
- `apply_loss()` / `shape_events()`: Bandwidth shaping
- `transcode()` / `simulate_loss()`: File-to-file pipelines
"""

from . import formats
from .config import LossPolicy, ShapingConfig
from .errors import (
    DvsRawError,
    IncompatibleVersionError,
    MalformedHeaderError,
    RecoverableFormatError,
    StreamIOError,
    UnexpectedEndOfStreamError,
    UnsupportedFormatError,
)
from .events import SensorEvent, StreamItem, TimeSyncMarker, to_dataframe, to_numpy
from .formats import detect_format, open_decoder, open_encoder
from .pipeline import (
    BitrateStats,
    compute_bitrate_stats,
    decode_events,
    encode_events,
    load_events,
    simulate_loss,
    transcode,
)
from .shaping import apply_loss, chunk_counts, shape_events

__version__ = "0.1.0"

__all__ = [
    "formats",
    "LossPolicy",
    "ShapingConfig",
    "DvsRawError",
    "UnsupportedFormatError",
    "RecoverableFormatError",
    "IncompatibleVersionError",
    "MalformedHeaderError",
    "UnexpectedEndOfStreamError",
    "StreamIOError",
    "SensorEvent",
    "TimeSyncMarker",
    "StreamItem",
    "to_dataframe",
    "to_numpy",
    "open_decoder",
    "open_encoder",
    "detect_format",
    "decode_events",
    "encode_events",
    "load_events",
    "BitrateStats",
    "compute_bitrate_stats",
    "transcode",
    "simulate_loss",
    "apply_loss",
    "shape_events",
    "chunk_counts",
]
