#!/usr/bin/env python3
"""
Bandwidth Loss Simulation Example

This example shapes a recording to a target bandwidth with both loss
policies and compares how many events survive in each chunk.
"""

import sys
from pathlib import Path

import polars as pl

import dvsraw


def shape_with_policy(items, policy, bandwidth_mbps=10.0, chunk_duration_ms=20.0):
    """
    Shape a decoded stream and report the reduction.

    Args:
        items: Decoded stream items
        policy: dvsraw.LossPolicy
        bandwidth_mbps: Channel bandwidth in Mbps
        chunk_duration_ms: Chunk duration in milliseconds

    Returns:
        The shaped stream
    """
    config = dvsraw.ShapingConfig(
        chunk_duration_ms=chunk_duration_ms, bandwidth_mbps=bandwidth_mbps, policy=policy
    ).validate()
    shaped = dvsraw.shape_events(items, config)

    original = dvsraw.to_dataframe(items)
    reduced = dvsraw.to_dataframe(shaped)
    print(f"Policy: {policy.name}")
    print(f"  Capacity: {config.max_events_per_chunk:,} events per {chunk_duration_ms}ms chunk")
    print(f"  Original events: {len(original):,}")
    print(f"  After shaping: {len(reduced):,}")
    if len(original):
        print(f"  Reduction: {100 * (1 - len(reduced) / len(original)):.1f}%")

    return shaped


def compare_chunk_counts(items, shaped_by_policy, chunk_duration_us):
    """Per-chunk event counts of the original and each shaped stream, side by side."""
    table = dvsraw.chunk_counts(items, chunk_duration_us).rename({"events": "original"})
    for name, shaped in shaped_by_policy.items():
        counts = dvsraw.chunk_counts(shaped, chunk_duration_us).rename({"events": name})
        table = table.join(counts, on="chunk_start", how="left")
    return table.with_columns(pl.exclude("chunk_start").fill_null(0))


def main():
    """
    Demonstrate tail drop and uniform thinning on one recording.
    """
    print("Bandwidth Loss Simulation")
    print("=" * 40)

    data_file = sys.argv[1] if len(sys.argv) > 1 else "data/prophersee/samples/evt3/pedestrians.raw"

    if not Path(data_file).exists():
        print(f"Data file {data_file} not found.")
        print("Usage: python examples/bandwidth_loss_demo.py <recording.raw>")
        return

    print(f"Dataset: {data_file} ({dvsraw.detect_format(data_file)})")
    items, header = dvsraw.decode_events(data_file)
    print(f"Geometry: {header.width}x{header.height}")
    print()

    shaped_by_policy = {}
    for policy in dvsraw.LossPolicy:
        shaped_by_policy[policy.name.lower()] = shape_with_policy(items, policy)
        print()

    table = compare_chunk_counts(items, shaped_by_policy, chunk_duration_us=20_000)
    print("Events per 20ms chunk:")
    print(table.head(10))
    print()

    stats = dvsraw.compute_bitrate_stats(items, shaped_by_policy["uniform_thin"])
    print(f"Duration: {stats.duration_s:.3f}s")
    print(f"Original average bitrate: {stats.original_mbps:.2f} Mbps")
    print(f"Shaped average bitrate: {stats.shaped_mbps:.2f} Mbps")

    output = Path(data_file).with_name(Path(data_file).stem + "_loss.raw")
    written = dvsraw.encode_events(output, shaped_by_policy["uniform_thin"], header)
    print(f"Wrote {written:,} events to {output}")


if __name__ == "__main__":
    main()
