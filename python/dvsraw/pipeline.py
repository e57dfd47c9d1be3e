"""
File-level operations: decode a recording, shape it, write it back as EVT2.

Decoded streams are materialized as lists; a recording is decoded fully before
it is shaped or written.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import polars as pl

from .config import ShapingConfig
from .events import SensorEvent, StreamItem, to_dataframe
from .formats.dispatch import open_decoder, open_encoder
from .formats.header import HeaderInfo
from .shaping import shape_events

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def decode_events(path: PathLike) -> Tuple[List[StreamItem], HeaderInfo]:
    """
    Decode every event and marker of a recording.

    Args:
        path: A ``.raw`` (EVT2/EVT3) or ``.dat`` file

    Returns:
        (items, header) with items in stream order

    Raises:
        UnsupportedFormatError, IncompatibleVersionError, MalformedHeaderError,
        StreamIOError: see ``open_decoder``
    """
    logger.info(f"Creating decoder for {path}")
    with open_decoder(path) as decoder:
        items = list(decoder)
        header = decoder.header
        logger.info(f"Collected {len(items)} items from {decoder.format_name} stream")
    return items, header


def encode_events(path: PathLike, items: Sequence[StreamItem], header: HeaderInfo, fmt: str = "EVT2") -> int:
    """
    Write a stream to ``path`` as EVT2, header first.

    The header is rewritten to describe an EVT2 stream; the geometry of the
    source header is kept.

    Returns:
        Number of SensorEvents written
    """
    logger.info(f"Writing {len(items)} items to {path}")
    written = 0
    with open_encoder(path, fmt) as encoder:
        encoder.write_header(header.lines, header.geometry)
        words = 0
        for item in items:
            words += encoder.write_event(item)
            if isinstance(item, SensorEvent):
                written += 1
    logger.info(f"Wrote {written} events ({words} words) to {path}")
    return written


def load_events(path: PathLike) -> pl.LazyFrame:
    """
    Load a recording as a Polars LazyFrame.

    Columns are ``x``, ``y``, ``timestamp`` (``Duration("us")``) and
    ``polarity``; time-sync markers are not included.

    Example:
        >>> lf = load_events("recording.raw")
        >>> on_events = lf.filter(pl.col("polarity") == 1).collect()
    """
    items, _ = decode_events(path)
    return to_dataframe(items).lazy()


@dataclass
class BitrateStats:
    """Sizes and average bitrates of a stream before and after shaping.

    Sizes count every stream item (markers included) at ``bits_per_event``.
    Averages are 0.0 when the recording has no duration.
    """

    first_timestamp: int
    last_timestamp: int
    original_items: int
    shaped_items: int
    bits_per_event: int = 32

    @property
    def duration_s(self) -> float:
        return (self.last_timestamp - self.first_timestamp) / 1_000_000

    @property
    def original_mbits(self) -> float:
        return self.original_items / 1_000_000 * self.bits_per_event

    @property
    def shaped_mbits(self) -> float:
        return self.shaped_items / 1_000_000 * self.bits_per_event

    @property
    def original_mbps(self) -> float:
        return self.original_mbits / self.duration_s if self.duration_s > 0 else 0.0

    @property
    def shaped_mbps(self) -> float:
        return self.shaped_mbits / self.duration_s if self.duration_s > 0 else 0.0


def _cd_timestamp(items: Sequence[StreamItem], reverse: bool = False) -> int:
    ordered = reversed(items) if reverse else items
    return next((item.timestamp for item in ordered if isinstance(item, SensorEvent)), 0)


def compute_bitrate_stats(
    original: Sequence[StreamItem], shaped: Sequence[StreamItem], bits_per_event: int = 32
) -> BitrateStats:
    """Compare a stream with its shaped version; timestamps come from the original's CD events."""
    return BitrateStats(
        first_timestamp=_cd_timestamp(original),
        last_timestamp=_cd_timestamp(original, reverse=True),
        original_items=len(original),
        shaped_items=len(shaped),
        bits_per_event=bits_per_event,
    )


def transcode(input_path: PathLike, output_path: PathLike) -> Tuple[int, int]:
    """
    Decode a recording and write it back as EVT2.

    Returns:
        (items decoded, events written)
    """
    items, header = decode_events(input_path)
    written = encode_events(output_path, items, header)
    return len(items), written


def simulate_loss(
    input_path: PathLike, output_path: PathLike, config: Optional[ShapingConfig] = None
) -> BitrateStats:
    """
    Decode a recording, shape it to the configured bandwidth and write the result as EVT2.

    Returns:
        BitrateStats of the original and shaped streams
    """
    config = (config or ShapingConfig()).validate()
    items, header = decode_events(input_path)
    shaped = shape_events(items, config)
    logger.info(f"Shaping kept {len(shaped)} of {len(items)} items")

    stats = compute_bitrate_stats(items, shaped, config.bits_per_event)
    encode_events(output_path, shaped, header)
    return stats


__all__ = [
    "decode_events",
    "encode_events",
    "load_events",
    "BitrateStats",
    "compute_bitrate_stats",
    "transcode",
    "simulate_loss",
]
