#!/usr/bin/env python3
"""
Command-line tools for event camera RAW recordings.

dvsraw-transcode decodes a recording (EVT2/EVT3 .raw, DAT header) and writes
it back as EVT2. dvsraw-loss additionally shapes the stream to a target
bandwidth before writing it, and reports the bitrate before and after.

Example usage:
    dvsraw-transcode -f recording.raw -o recording_evt2.raw
    dvsraw-loss -f recording.raw -o recording_loss.raw --loss-type 2 --bandwidth 10 --chunk-size 20
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import ShapingConfig
from .errors import DvsRawError
from .pipeline import decode_events, encode_events, simulate_loss
from .shaping import chunk_counts


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")
    return logging.getLogger(__name__)


def _add_io_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--file", "-f", dest="input", required=True, type=str, help="Input event file (.raw EVT2/EVT3, or .dat)"
    )
    parser.add_argument("--output", "-o", required=True, type=str, help="Output EVT2 .raw file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")


def _check_input(path: str, logger: logging.Logger) -> bool:
    if not Path(path).exists():
        logger.error(f"Input file does not exist: {path}")
        return False
    return True


def transcode_main(argv: Optional[List[str]] = None) -> int:
    """Entry point of ``dvsraw-transcode``; returns the exit status."""
    parser = argparse.ArgumentParser(
        description="Decode an event camera recording and re-encode it as EVT 2.0",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dvsraw-transcode -f recording_evt3.raw -o recording_evt2.raw
  dvsraw-transcode -f recording.dat -o recording.raw --verbose
        """,
    )
    _add_io_arguments(parser)
    args = parser.parse_args(argv)

    logger = setup_logging(args.verbose)
    if not _check_input(args.input, logger):
        return 1

    start = time.time()
    try:
        items, header = decode_events(args.input)
        written = encode_events(args.output, items, header)
    except DvsRawError as e:
        logger.error(f"Transcoding failed: {e}")
        return 1

    print(f"Collected {len(items)} events")
    print(f"Wrote {written} events to file {args.output}")
    logger.info(f"Done in {time.time() - start:.2f}s")
    return 0


def loss_main(argv: Optional[List[str]] = None) -> int:
    """Entry point of ``dvsraw-loss``; returns the exit status."""
    parser = argparse.ArgumentParser(
        description="Simulate a bandwidth-limited lossy channel over an event camera recording",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Loss types:
  1  tail drop: keep the first events of each chunk up to capacity
  2  uniform thinning: drop events evenly across each chunk

Examples:
  dvsraw-loss -f recording.raw -o recording_loss.raw
  dvsraw-loss -f recording.raw -o recording_loss.raw -l 2 -b 10 -c 20
        """,
    )
    _add_io_arguments(parser)
    parser.add_argument(
        "--loss-type", "-l", type=int, choices=[1, 2], default=1, help="Loss policy: 1 tail drop, 2 uniform (default: 1)"
    )
    parser.add_argument(
        "--bandwidth", "-b", type=float, default=25.0, help="Target bandwidth in Mbps (default: 25)"
    )
    parser.add_argument(
        "--chunk-size", "-c", type=float, default=50.0, help="Chunk duration in milliseconds (default: 50)"
    )
    args = parser.parse_args(argv)

    logger = setup_logging(args.verbose)
    if not _check_input(args.input, logger):
        return 1

    try:
        config = ShapingConfig.from_dict(
            {"chunk_duration_ms": args.chunk_size, "bandwidth_mbps": args.bandwidth, "policy": args.loss_type}
        )
    except ValueError as e:
        logger.error(f"Invalid shaping parameters: {e}")
        return 1

    try:
        stats = simulate_loss(args.input, args.output, config)
    except DvsRawError as e:
        logger.error(f"Loss simulation failed: {e}")
        return 1

    print(f"First timestamp: {stats.first_timestamp}")
    print(f"Last timestamp: {stats.last_timestamp}")
    print(f"The file lasts for {stats.duration_s} seconds")
    print(f"Size of original file in Mbits: {stats.original_mbits}")
    print(f"Size of loss file in Mbits: {stats.shaped_mbits}")
    print(
        f"The selected maximum bandwidth was {config.bandwidth_mbps} Mbps, "
        f"the original average bitrate was {stats.original_mbps} Mbps, "
        f"and the lossy average bitrate was {stats.shaped_mbps} Mbps"
    )

    if args.verbose:
        items, _ = decode_events(args.output)
        counts = chunk_counts(items, config.chunk_duration_us)
        logger.debug(f"Events per chunk in output (capacity {config.max_events_per_chunk}):\n{counts}")

    return 0


if __name__ == "__main__":
    sys.exit(loss_main())
