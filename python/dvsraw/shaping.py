"""
Bandwidth shaping: simulate a rate-limited, lossy channel over a decoded stream.

The stream is cut into fixed-duration chunks. Each chunk may carry at most
``capacity`` SensorEvents, where capacity is what the channel bandwidth allows
for one chunk at a fixed cost per event. Chunks over capacity lose events
according to a ``LossPolicy``:

- TAIL_DROP: keep the first ``capacity`` events of the chunk, drop the rest.
  Streamed, no buffering.
- UNIFORM_THIN: buffer the chunk and drop events evenly spread over it, so the
  kept events still cover the whole chunk duration.

TimeSyncMarkers are never dropped and keep their place in the stream.

Chunking: the first chunk starts at the first SensorEvent's timestamp. An
event at or past the end of the current chunk starts a new chunk aligned to a
multiple of the chunk duration.
"""

import logging
from typing import Iterable, Iterator, List, Optional

import polars as pl

from .config import LossPolicy, ShapingConfig
from .events import SensorEvent, StreamItem

logger = logging.getLogger(__name__)

DEFAULT_BITS_PER_EVENT = 32


def chunk_capacity(
    target_bandwidth_bps: float, chunk_duration_us: int, bits_per_event: int = DEFAULT_BITS_PER_EVENT
) -> int:
    """Number of events the channel carries in one chunk (rounded down)."""
    return int(target_bandwidth_bps * chunk_duration_us // (1_000_000 * bits_per_event))


class _Chunker:
    """Tracks the chunk window for a stream of SensorEvents."""

    def __init__(self, chunk_duration_us: int):
        if chunk_duration_us <= 0:
            raise ValueError(f"chunk_duration_us must be positive, got {chunk_duration_us}")
        self.duration = chunk_duration_us
        self.start: Optional[int] = None

    def starts_new_chunk(self, timestamp: int) -> bool:
        """Advance the window for ``timestamp``; True when a new chunk begins."""
        if self.start is None:
            self.start = timestamp
            return True
        if timestamp >= self.start + self.duration:
            self.start = timestamp - timestamp % self.duration
            return True
        return False


def tail_drop(items: Iterable[StreamItem], chunk_duration_us: int, capacity: int) -> Iterator[StreamItem]:
    """
    Pass the first ``capacity`` SensorEvents of each chunk, drop the rest.

    Args:
        items: Ordered stream items
        chunk_duration_us: Chunk length in microseconds
        capacity: Maximum SensorEvents kept per chunk

    Yields:
        The kept items, markers included, in input order
    """
    chunker = _Chunker(chunk_duration_us)
    count = 0
    dropped = 0

    for item in items:
        if not isinstance(item, SensorEvent):
            yield item
            continue

        if chunker.starts_new_chunk(item.timestamp):
            if dropped:
                logger.debug(f"Tail drop: {dropped} events dropped from previous chunk")
            count = 0
            dropped = 0

        if count < capacity:
            count += 1
            yield item
        else:
            dropped += 1

    if dropped:
        logger.debug(f"Tail drop: {dropped} events dropped from last chunk")


def _thin_chunk(chunk: List[StreamItem], capacity: int) -> Iterator[StreamItem]:
    n = sum(1 for item in chunk if isinstance(item, SensorEvent))
    to_remove = max(n - capacity, 0)
    if to_remove:
        logger.debug(f"Uniform thin: removing {to_remove} of {n} events from chunk")

    removed = 0
    i = 0
    for item in chunk:
        if not isinstance(item, SensorEvent):
            yield item
            continue
        i += 1
        # removed / i < to_remove / n, cross-multiplied to stay exact
        if removed * n < to_remove * i:
            removed += 1
        else:
            yield item


def uniform_thin(items: Iterable[StreamItem], chunk_duration_us: int, capacity: int) -> Iterator[StreamItem]:
    """
    Thin each chunk down to ``capacity`` SensorEvents, spreading the drops evenly.

    The i-th event of a chunk of n events (1-indexed) is dropped when the
    fraction removed so far is below the fraction that must go,
    ``num_removed / i < num_to_remove / n``. Exactly ``max(n - capacity, 0)``
    events are removed per chunk.

    Args:
        items: Ordered stream items
        chunk_duration_us: Chunk length in microseconds
        capacity: Maximum SensorEvents kept per chunk

    Yields:
        The kept items, markers included, in input order
    """
    chunker = _Chunker(chunk_duration_us)
    chunk: List[StreamItem] = []

    for item in items:
        if isinstance(item, SensorEvent):
            if chunker.starts_new_chunk(item.timestamp):
                yield from _thin_chunk(chunk, capacity)
                chunk = []
            chunk.append(item)
        elif chunker.start is None:
            # No chunk open yet
            yield item
        else:
            chunk.append(item)

    yield from _thin_chunk(chunk, capacity)


def apply_loss(
    items: Iterable[StreamItem],
    chunk_duration_us: int,
    target_bandwidth_bps: float,
    policy: LossPolicy = LossPolicy.TAIL_DROP,
    bits_per_event: int = DEFAULT_BITS_PER_EVENT,
) -> List[StreamItem]:
    """
    Shape a stream to a target bandwidth.

    Args:
        items: Ordered stream items
        chunk_duration_us: Chunk length in microseconds
        target_bandwidth_bps: Channel bandwidth in bits per second
        policy: LossPolicy (or its numeric code / name)
        bits_per_event: Wire cost of one event

    Returns:
        The shaped stream, order preserved
    """
    policy = LossPolicy.parse(policy)
    capacity = chunk_capacity(target_bandwidth_bps, chunk_duration_us, bits_per_event)
    logger.info(
        f"Shaping with {policy.name} at {target_bandwidth_bps / 1e6:.3f} Mbps, "
        f"{chunk_duration_us}us chunks, {capacity} events per chunk"
    )

    if policy is LossPolicy.UNIFORM_THIN:
        return list(uniform_thin(items, chunk_duration_us, capacity))
    return list(tail_drop(items, chunk_duration_us, capacity))


def shape_events(items: Iterable[StreamItem], config: ShapingConfig) -> List[StreamItem]:
    """Shape a stream with the parameters of a ``ShapingConfig``."""
    config.validate()
    return apply_loss(
        items,
        config.chunk_duration_us,
        config.target_bandwidth_bps,
        config.policy,
        config.bits_per_event,
    )


def chunk_counts(items: Iterable[StreamItem], chunk_duration_us: int) -> pl.DataFrame:
    """
    Count SensorEvents per shaping chunk.

    Returns:
        DataFrame with columns ``chunk_start`` (us) and ``events``, one row per
        chunk in stream order
    """
    chunker = _Chunker(chunk_duration_us)
    starts = []
    for item in items:
        if isinstance(item, SensorEvent):
            chunker.starts_new_chunk(item.timestamp)
            starts.append(chunker.start)

    df = pl.DataFrame({"chunk_start": pl.Series(starts, dtype=pl.Int64)})
    return df.group_by("chunk_start", maintain_order=True).agg(pl.len().cast(pl.Int64).alias("events"))


__all__ = [
    "chunk_capacity",
    "tail_drop",
    "uniform_thin",
    "apply_loss",
    "shape_events",
    "chunk_counts",
]
