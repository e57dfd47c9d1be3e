"""
Legacy Prophesee DAT recordings.

Only the header is interpreted: the ``%`` lines, then the two-byte descriptor
(event type, event size in bytes) that precedes the event body. Body decoding
is not implemented, ``read_event`` always returns None.
"""

import logging
from typing import List, Optional

from ..errors import UnexpectedEndOfStreamError
from ..events import StreamItem
from .base import RawDecoder
from .header import parse_dat_header, read_header_lines

logger = logging.getLogger(__name__)

DESCRIPTOR_SIZE = 2


class DatDecoder(RawDecoder):
    """Header-only decoder for DAT files.

    Attributes:
        event_type: Event type byte from the descriptor, None if missing
        event_size: Event record size in bytes, None if missing
    """

    format_name = "DAT"
    word_size = DESCRIPTOR_SIZE

    def __init__(self, reader):
        super().__init__(reader)
        self.event_type: Optional[int] = None
        self.event_size: Optional[int] = None
        self._warned = False

    def read_header(self) -> List[str]:
        """
        Parse the ``%`` lines and the event type/size descriptor.

        Raises:
            MalformedHeaderError: width or height is not an integer
        """
        self._seek(0)
        lines = read_header_lines(self._reader, terminated=False)
        self.header = parse_dat_header(lines)
        if self.header.geometry is not None:
            logger.info(f"DAT geometry: {self.header.width}x{self.header.height}")

        try:
            descriptor = self._read_word()
        except UnexpectedEndOfStreamError:
            logger.warning("DAT file has no event type/size descriptor after its header")
        else:
            self.event_type, self.event_size = descriptor[0], descriptor[1]
            logger.debug(f"DAT event type {self.event_type}, event size {self.event_size} bytes")

        self._header_read = True
        return lines

    def read_event(self) -> Optional[StreamItem]:
        if not self._warned:
            logger.warning("DAT event decoding is not implemented, no events will be produced")
            self._warned = True
        return None


__all__ = ["DatDecoder"]
