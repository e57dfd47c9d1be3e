"""
Prophesee EVT 2.0 codec, decoder and encoder.

EVT2 words are 32-bit little-endian. The 4 most significant bits hold the
event type, the remaining 28 bits the payload::

    CD_OFF / CD_ON   [31:28] type | [27:22] timestamp LSB | [21:11] x | [10:0] y
    EVT_TIME_HIGH    [31:28] type | [27:0]  timestamp MSB (time >> 6)
    EXT_TRIGGER      [31:28] type | [27:0]  trigger data (ignored)

An absolute CD timestamp is the current TimeHigh base (``payload << 6``) plus
the 6-bit LSB of the CD word.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple, Union

from ..events import SensorEvent, StreamItem, TimeSyncMarker
from ..errors import UnexpectedEndOfStreamError
from .base import RawDecoder, RawEncoder, advance_time_base
from .header import END_DIRECTIVE, parse_raw_header, read_header_lines

logger = logging.getLogger(__name__)

WORD_SIZE = 4
TYPE_SHIFT = 28
PAYLOAD_MASK = (1 << 28) - 1
COORD_MASK = 0x7FF
TIMESTAMP_LSB_BITS = 6
TIMESTAMP_LSB_MASK = (1 << TIMESTAMP_LSB_BITS) - 1
TIME_HIGH_BITS = 28
TIME_HIGH_STEP = 1 << TIMESTAMP_LSB_BITS


class Evt2Type(IntEnum):
    CD_OFF = 0x0
    CD_ON = 0x1
    EVT_TIME_HIGH = 0x8
    EXT_TRIGGER = 0xA


@dataclass(frozen=True)
class RawCD:
    timestamp_low: int
    x: int
    y: int
    polarity: int

    @classmethod
    def from_payload(cls, event_type: int, payload: int) -> "RawCD":
        return cls(
            timestamp_low=payload >> 22,
            x=(payload >> 11) & COORD_MASK,
            y=payload & COORD_MASK,
            polarity=1 if event_type == Evt2Type.CD_ON else 0,
        )

    @property
    def event_type(self) -> int:
        return Evt2Type.CD_ON if self.polarity else Evt2Type.CD_OFF

    @property
    def payload(self) -> int:
        if not 0 <= self.timestamp_low <= TIMESTAMP_LSB_MASK:
            raise ValueError(f"CD timestamp LSB out of range: {self.timestamp_low}")
        if not (0 <= self.x <= COORD_MASK and 0 <= self.y <= COORD_MASK):
            raise ValueError(f"CD coordinates out of range: ({self.x}, {self.y})")
        return (self.timestamp_low << 22) | (self.x << 11) | self.y


@dataclass(frozen=True)
class RawTimeHigh:
    timestamp: int

    event_type = Evt2Type.EVT_TIME_HIGH

    @property
    def payload(self) -> int:
        return self.timestamp & PAYLOAD_MASK


@dataclass(frozen=True)
class RawOther:
    """Any word the decoder skips (external triggers, unknown types)."""

    event_type: int
    payload: int


RawEvt2Event = Union[RawCD, RawTimeHigh, RawOther]


def unpack_word(data: bytes) -> Tuple[int, int]:
    """Split a 4-byte word into (event_type, payload)."""
    value = int.from_bytes(data[:WORD_SIZE], "little")
    return value >> TYPE_SHIFT, value & PAYLOAD_MASK


def pack_word(event_type: int, payload: int) -> bytes:
    """Build a 4-byte word from a 4-bit type and a 28-bit payload."""
    return (((event_type & 0xF) << TYPE_SHIFT) | (payload & PAYLOAD_MASK)).to_bytes(WORD_SIZE, "little")


def decode_word(data: bytes) -> RawEvt2Event:
    event_type, payload = unpack_word(data)
    if event_type in (Evt2Type.CD_OFF, Evt2Type.CD_ON):
        return RawCD.from_payload(event_type, payload)
    if event_type == Evt2Type.EVT_TIME_HIGH:
        return RawTimeHigh(payload)
    return RawOther(event_type, payload)


def encode_word(raw: RawEvt2Event) -> bytes:
    return pack_word(raw.event_type, raw.payload)


class Evt2Decoder(RawDecoder):
    """Decoder for EVT 2.0 RAW streams.

    ``read_event`` returns a ``SensorEvent`` for each CD word and a
    ``TimeSyncMarker`` for each TimeHigh word; trigger and unknown words are
    skipped.
    """

    format_name = "EVT2"
    version = "2.0"
    word_size = WORD_SIZE

    def __init__(self, reader):
        super().__init__(reader)
        self._reset_state()

    def _reset_state(self) -> None:
        self.current_time_base = 0
        self.rollover_count = 0
        self.first_time_base_set = False

    def read_header(self) -> List[str]:
        """
        Parse the header and seed the time base from the first TimeHigh word.

        Words preceding the first TimeHigh cannot be timestamped and are
        dropped. The TimeHigh word itself stays in the stream, so the first
        ``read_event`` returns its marker.

        Raises:
            IncompatibleVersionError: the header declares another format
            MalformedHeaderError: a header directive cannot be parsed
        """
        self._seek(0)
        self._reset_state()

        lines = read_header_lines(self._reader, terminated=True)
        info = parse_raw_header(lines)
        info.check_compatible(self.format_name, self.version)
        self.header = info
        if info.geometry is not None:
            logger.info(f"EVT2 geometry: {info.width}x{info.height}")

        self._seed_time_base()
        self._header_read = True
        return lines

    def _seed_time_base(self) -> None:
        skipped = 0
        while True:
            try:
                data = self._read_word()
            except UnexpectedEndOfStreamError:
                logger.warning("EVT2 stream has no TimeHigh word, no events can be decoded")
                return

            raw = decode_word(data)
            if isinstance(raw, RawTimeHigh):
                self.current_time_base = raw.timestamp << TIMESTAMP_LSB_BITS
                self.first_time_base_set = True
                self._seek(self._tell() - WORD_SIZE)
                break
            skipped += 1

        if skipped:
            logger.debug(f"Skipped {skipped} EVT2 words before the first TimeHigh")

    def read_event(self) -> Optional[StreamItem]:
        while True:
            raw = decode_word(self._read_word())

            if isinstance(raw, RawCD):
                return SensorEvent(
                    timestamp=self.current_time_base + raw.timestamp_low,
                    x=raw.x,
                    y=raw.y,
                    polarity=raw.polarity,
                )

            if isinstance(raw, RawTimeHigh):
                self.current_time_base, self.rollover_count = advance_time_base(
                    self.current_time_base,
                    raw.timestamp,
                    self.rollover_count,
                    TIME_HIGH_BITS,
                    TIMESTAMP_LSB_BITS,
                )
                return TimeSyncMarker(raw.timestamp, time_base=self.current_time_base)

            # Triggers and unknown types are not decoded


def evt2_header_lines(lines: List[str], geometry: Optional[Tuple[int, int]] = None) -> List[str]:
    """
    Rewrite header lines so they describe an EVT 2.0 stream.

    ``evt`` and ``format`` directives are switched to EVT2, a missing ``evt``
    directive is added, and the header is closed with ``% end``. When
    ``geometry`` is given and the header has no geometry of its own (DAT
    headers), a ``geometry`` directive is added.
    """
    out = []
    has_evt = False
    has_geometry = parse_raw_header([line for line in lines if line.startswith("%")]).geometry is not None

    for line in lines:
        body = line[1:].strip() if line.startswith("%") else line.strip()
        keyword, _, value = body.partition(" ")
        if not body or keyword == END_DIRECTIVE:
            continue
        if keyword == "evt":
            line = "% evt 2.0"
            has_evt = True
        elif keyword == "format":
            _, sep, options = value.partition(";")
            line = f"% format EVT2{sep}{options}"
        elif not line.startswith("%"):
            line = f"% {body}"
        out.append(line)

    if not has_evt:
        out.insert(0, "% evt 2.0")
    if geometry is not None and not has_geometry:
        out.append(f"% geometry {geometry[0]}x{geometry[1]}")
    out.append("% end")
    return out


class Evt2Encoder(RawEncoder):
    """Encoder writing SensorEvents as EVT 2.0 words.

    TimeHigh words are generated from the CD timestamps: before each CD word
    the encoder makes sure the last TimeHigh written covers the event, writing
    one TimeHigh per 64us step when timestamps jump ahead.
    """

    format_name = "EVT2"

    def __init__(self, writer):
        super().__init__(writer)
        self.last_time_sync_base = 0
        self.time_sync_emitted = False

    def write_header(self, header: List[str], geometry: Optional[Tuple[int, int]] = None) -> None:
        lines = evt2_header_lines(header, geometry)
        self._write(("\n".join(lines) + "\n").encode("ascii"))

    def _write_time_high(self) -> None:
        self._write(encode_word(RawTimeHigh(self.last_time_sync_base >> TIMESTAMP_LSB_BITS)))

    def write_event(self, event: StreamItem) -> int:
        """
        Encode one item.

        TimeSyncMarkers write nothing since TimeHigh words are derived from the
        CD timestamps.

        Returns:
            Number of words written (TimeHigh words plus the CD word)
        """
        if isinstance(event, TimeSyncMarker):
            return 0

        words_written = 0
        masked = event.timestamp & ~TIMESTAMP_LSB_MASK

        if not self.time_sync_emitted:
            self.time_sync_emitted = True
            self.last_time_sync_base = masked
            self._write_time_high()
            words_written += 1
        elif masked < self.last_time_sync_base:
            logger.debug(f"Out of order event at {event.timestamp}us, rewinding time base")
            self.last_time_sync_base = masked
            self._write_time_high()
            words_written += 1
        else:
            while self.last_time_sync_base < masked:
                self.last_time_sync_base += TIME_HIGH_STEP
                self._write_time_high()
                words_written += 1

        raw_cd = RawCD(
            timestamp_low=event.timestamp & TIMESTAMP_LSB_MASK,
            x=event.x,
            y=event.y,
            polarity=1 if event.polarity else 0,
        )
        self._write(encode_word(raw_cd))
        words_written += 1

        return words_written


__all__ = [
    "Evt2Type",
    "RawCD",
    "RawTimeHigh",
    "RawOther",
    "unpack_word",
    "pack_word",
    "decode_word",
    "encode_word",
    "Evt2Decoder",
    "Evt2Encoder",
    "evt2_header_lines",
]
