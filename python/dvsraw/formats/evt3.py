"""
Prophesee EVT 3.0 codec and decoder.

EVT3 words are 16-bit little-endian: the 4 most significant bits hold the
event type and the low 12 bits the payload. Most words only update decoder
state (current y, time, vector base); CD events are produced by EVT_ADDR_X
words and by the VECT_12 / VECT_8 validity masks, which describe up to 12 or 8
consecutive pixels on the current row.

Timestamps are 24 bits on the wire: TIME_HIGH carries bits 23..12 and
TIME_LOW bits 11..0.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Deque, List, Optional, Tuple, Union

from ..events import SensorEvent, StreamItem
from ..errors import UnexpectedEndOfStreamError
from .base import RawDecoder, advance_time_base
from .header import parse_raw_header, read_header_lines

logger = logging.getLogger(__name__)

WORD_SIZE = 2
TYPE_SHIFT = 12
PAYLOAD_MASK = (1 << 12) - 1
COORD_MASK = 0x7FF
FLAG_BIT = 11
TIME_BITS = 12

DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720


class Evt3Type(IntEnum):
    EVT_ADDR_Y = 0x0
    EVT_ADDR_X = 0x2
    VECT_BASE_X = 0x3
    VECT_12 = 0x4
    VECT_8 = 0x5
    EVT_TIME_LOW = 0x6
    CONTINUED_4 = 0x7
    EVT_TIME_HIGH = 0x8
    EXT_TRIGGER = 0xA
    OTHERS = 0xE
    CONTINUED_12 = 0xF


@dataclass(frozen=True)
class RawAddrY:
    y: int
    system_type: int = 0

    event_type = Evt3Type.EVT_ADDR_Y

    @property
    def payload(self) -> int:
        return (self.system_type & 1) << FLAG_BIT | (self.y & COORD_MASK)


@dataclass(frozen=True)
class RawAddrX:
    x: int
    polarity: int

    event_type = Evt3Type.EVT_ADDR_X

    @property
    def payload(self) -> int:
        return (self.polarity & 1) << FLAG_BIT | (self.x & COORD_MASK)


@dataclass(frozen=True)
class RawVectBaseX:
    x: int
    polarity: int

    event_type = Evt3Type.VECT_BASE_X

    @property
    def payload(self) -> int:
        return (self.polarity & 1) << FLAG_BIT | (self.x & COORD_MASK)


@dataclass(frozen=True)
class RawVect12:
    valid: int

    event_type = Evt3Type.VECT_12
    width = 12

    @property
    def payload(self) -> int:
        return self.valid & 0xFFF


@dataclass(frozen=True)
class RawVect8:
    valid: int

    event_type = Evt3Type.VECT_8
    width = 8

    @property
    def payload(self) -> int:
        return self.valid & 0xFF


@dataclass(frozen=True)
class RawTimeLow:
    time: int

    event_type = Evt3Type.EVT_TIME_LOW

    @property
    def payload(self) -> int:
        return self.time & PAYLOAD_MASK


@dataclass(frozen=True)
class RawTimeHigh:
    time: int

    event_type = Evt3Type.EVT_TIME_HIGH

    @property
    def payload(self) -> int:
        return self.time & PAYLOAD_MASK


@dataclass(frozen=True)
class RawOther:
    """Triggers, continuation words and anything else the decoder skips."""

    event_type: int
    payload: int


RawEvt3Event = Union[RawAddrY, RawAddrX, RawVectBaseX, RawVect12, RawVect8, RawTimeLow, RawTimeHigh, RawOther]


def unpack_word(data: bytes) -> Tuple[int, int]:
    """Split a 2-byte word into (event_type, payload)."""
    return data[1] >> 4, ((data[1] & 0x0F) << 8) | data[0]


def pack_word(event_type: int, payload: int) -> bytes:
    """Build a 2-byte word from a 4-bit type and a 12-bit payload."""
    return (((event_type & 0xF) << TYPE_SHIFT) | (payload & PAYLOAD_MASK)).to_bytes(WORD_SIZE, "little")


def decode_word(data: bytes) -> RawEvt3Event:
    event_type, payload = unpack_word(data)
    flag = (payload >> FLAG_BIT) & 1
    coord = payload & COORD_MASK

    if event_type == Evt3Type.EVT_ADDR_Y:
        return RawAddrY(y=coord, system_type=flag)
    if event_type == Evt3Type.EVT_ADDR_X:
        return RawAddrX(x=coord, polarity=flag)
    if event_type == Evt3Type.VECT_BASE_X:
        return RawVectBaseX(x=coord, polarity=flag)
    if event_type == Evt3Type.VECT_12:
        return RawVect12(valid=payload)
    if event_type == Evt3Type.VECT_8:
        return RawVect8(valid=payload & 0xFF)
    if event_type == Evt3Type.EVT_TIME_LOW:
        return RawTimeLow(time=payload)
    if event_type == Evt3Type.EVT_TIME_HIGH:
        return RawTimeHigh(time=payload)
    return RawOther(event_type, payload)


def encode_word(raw: RawEvt3Event) -> bytes:
    return pack_word(raw.event_type, raw.payload)


class Evt3Decoder(RawDecoder):
    """Decoder for EVT 3.0 RAW streams.

    Vector words can describe several events at once; those are queued and
    handed out one per ``read_event`` call, in ascending x order, before any
    further word is read.
    """

    format_name = "EVT3"
    version = "3.0"
    word_size = WORD_SIZE

    def __init__(self, reader):
        super().__init__(reader)
        self._reset_state()

    def _reset_state(self) -> None:
        self.first_time_base_set = False
        self.current_time_base = 0
        self.current_time = 0
        self.current_y = 0
        self.current_base_x = 0
        self.current_polarity = 0
        self.rollover_count = 0
        self.event_queue: Deque[SensorEvent] = deque()

    def read_header(self) -> List[str]:
        """
        Parse the header and seed the time from the first TimeHigh/TimeLow pair.

        Raises:
            IncompatibleVersionError: the header declares another format
            MalformedHeaderError: a header directive cannot be parsed
        """
        self._seek(0)
        self._reset_state()

        lines = read_header_lines(self._reader, terminated=True)
        info = parse_raw_header(lines)
        info.check_compatible(self.format_name, self.version)
        if info.geometry is None:
            info.width, info.height = DEFAULT_WIDTH, DEFAULT_HEIGHT
        self.header = info
        logger.info(f"EVT3 geometry: {info.width}x{info.height}")

        self._seed_time_base()
        self._header_read = True
        return lines

    def _seed_time_base(self) -> None:
        skipped = 0
        while True:
            try:
                data = self._read_word()
            except UnexpectedEndOfStreamError:
                logger.warning("EVT3 stream has no TimeHigh word, no events can be decoded")
                return

            raw = decode_word(data)
            if isinstance(raw, RawTimeHigh):
                break
            skipped += 1

        time_high_position = self._tell() - WORD_SIZE
        self.current_time_base = raw.time << TIME_BITS
        self.current_time = self.current_time_base
        self.first_time_base_set = True

        # The TimeLow word that follows refines the seed
        try:
            following = decode_word(self._read_word())
        except UnexpectedEndOfStreamError:
            following = None
        if isinstance(following, RawTimeLow):
            self.current_time = self.current_time_base + following.time
        self._seek(time_high_position)

        if skipped:
            logger.debug(f"Skipped {skipped} EVT3 words before the first TimeHigh")

    def _expand_vector(self, valid: int, width: int) -> None:
        for offset in range(width):
            if valid & (1 << offset):
                self.event_queue.append(
                    SensorEvent(
                        timestamp=self.current_time,
                        x=self.current_base_x + offset,
                        y=self.current_y,
                        polarity=self.current_polarity,
                    )
                )
        self.current_base_x += width

    def read_event(self) -> Optional[StreamItem]:
        if self.event_queue:
            return self.event_queue.popleft()

        while True:
            raw = decode_word(self._read_word())

            if isinstance(raw, RawAddrX):
                return SensorEvent(
                    timestamp=self.current_time, x=raw.x, y=self.current_y, polarity=raw.polarity
                )
            elif isinstance(raw, (RawVect12, RawVect8)):
                self._expand_vector(raw.valid, raw.width)
                if self.event_queue:
                    return self.event_queue.popleft()
            elif isinstance(raw, RawAddrY):
                self.current_y = raw.y
            elif isinstance(raw, RawVectBaseX):
                self.current_base_x = raw.x
                self.current_polarity = raw.polarity
            elif isinstance(raw, RawTimeHigh):
                self.current_time_base, self.rollover_count = advance_time_base(
                    self.current_time_base, raw.time, self.rollover_count, TIME_BITS, TIME_BITS
                )
                self.current_time = self.current_time_base
            elif isinstance(raw, RawTimeLow):
                self.current_time = self.current_time_base + raw.time
            # Triggers, continuation and other words are not decoded


__all__ = [
    "Evt3Type",
    "RawAddrY",
    "RawAddrX",
    "RawVectBaseX",
    "RawVect12",
    "RawVect8",
    "RawTimeLow",
    "RawTimeHigh",
    "RawOther",
    "unpack_word",
    "pack_word",
    "decode_word",
    "encode_word",
    "Evt3Decoder",
]
