"""Base classes shared by all RAW decoders and encoders."""

import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, List, Optional, Tuple

from ..errors import StreamIOError, UnexpectedEndOfStreamError
from ..events import StreamItem
from .header import HeaderInfo

logger = logging.getLogger(__name__)


class RawDecoder(ABC):
    """Abstract base class for event stream decoders.

    A decoder owns its binary stream and its decoding state. Call
    ``read_header()`` once, then ``read_event()`` repeatedly, or simply
    iterate over the decoder::

        with Evt2Decoder(open("recording.raw", "rb")) as decoder:
            decoder.read_header()
            for item in decoder:
                ...
    """

    format_name: str = ""
    word_size: int = 1

    def __init__(self, reader: BinaryIO):
        """Initialize the decoder.

        Args:
            reader: Seekable binary stream positioned anywhere; ``read_header``
                rewinds it to the start.
        """
        self._reader = reader
        self.header = HeaderInfo()
        self._header_read = False

    @abstractmethod
    def read_header(self) -> List[str]:
        """Parse the text header and prepare the stream for ``read_event``.

        Returns:
            The header lines, in file order
        """
        pass

    @abstractmethod
    def read_event(self) -> Optional[StreamItem]:
        """Decode the next event or marker.

        Raises:
            UnexpectedEndOfStreamError: fewer bytes than one word are left
        """
        pass

    @property
    def width(self) -> Optional[int]:
        return self.header.width

    @property
    def height(self) -> Optional[int]:
        return self.header.height

    def __iter__(self) -> Iterator[StreamItem]:
        if not self._header_read:
            self.read_header()
        while True:
            try:
                item = self.read_event()
            except UnexpectedEndOfStreamError as exc:
                if exc.remaining:
                    logger.warning(
                        f"{self.format_name}: ignoring {exc.remaining} trailing bytes (incomplete word)"
                    )
                return
            if item is None:
                return
            yield item

    def _tell(self) -> int:
        try:
            return self._reader.tell()
        except OSError as exc:
            raise StreamIOError(f"Failed to query stream position: {exc}") from exc

    def _seek(self, position: int = 0) -> None:
        try:
            self._reader.seek(position)
        except OSError as exc:
            raise StreamIOError(f"Failed to seek stream: {exc}") from exc

    def _read_word(self) -> bytes:
        try:
            data = self._reader.read(self.word_size)
        except OSError as exc:
            raise StreamIOError(f"Failed to read stream: {exc}") from exc
        if len(data) < self.word_size:
            raise UnexpectedEndOfStreamError(self.word_size, len(data))
        return data

    def close(self) -> None:
        self._reader.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class RawEncoder(ABC):
    """Abstract base class for event stream encoders."""

    format_name: str = ""

    def __init__(self, writer: BinaryIO):
        self._writer = writer

    @abstractmethod
    def write_header(self, header: List[str], geometry: Optional[Tuple[int, int]] = None) -> None:
        """Write the text header lines, adding ``geometry`` when the header lacks one."""
        pass

    @abstractmethod
    def write_event(self, event: StreamItem) -> int:
        """Encode one stream item.

        Returns:
            Number of wire words written
        """
        pass

    def write_events(self, events) -> int:
        """Encode every item of ``events`` and return the number of words written."""
        return sum(self.write_event(event) for event in events)

    def _write(self, data: bytes) -> None:
        try:
            self._writer.write(data)
        except OSError as exc:
            raise StreamIOError(f"Failed to write stream: {exc}") from exc

    def flush(self) -> None:
        try:
            self._writer.flush()
        except OSError as exc:
            raise StreamIOError(f"Failed to flush stream: {exc}") from exc

    def close(self) -> None:
        self.flush()
        self._writer.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def advance_time_base(
    current_time_base: int, time_high: int, rollover_count: int, time_high_bits: int, shift: int
) -> Tuple[int, int]:
    """
    Compute the absolute time base announced by a TimeHigh word.

    The TimeHigh field is ``time_high_bits`` wide and wraps around. A new base
    that lands far enough behind the current one (more than the loop length
    minus a jitter threshold of 10 TimeHigh units) is taken as a wraparound
    and bumps the rollover count.

    Args:
        current_time_base: Base in effect before this word, in microseconds
        time_high: Raw TimeHigh payload
        rollover_count: Wraparounds seen so far
        time_high_bits: Width of the TimeHigh field (28 for EVT2, 12 for EVT3)
        shift: Position of the TimeHigh field in the timestamp (6 for EVT2, 12 for EVT3)

    Returns:
        (new_time_base, new_rollover_count)
    """
    max_timestamp_base = ((1 << time_high_bits) - 1) << shift
    time_loop = max_timestamp_base + (1 << shift)
    loop_threshold = 10 << shift

    new_time_base = (time_high << shift) + rollover_count * time_loop
    if current_time_base > new_time_base and current_time_base - new_time_base >= time_loop - loop_threshold:
        rollover_count += 1
        new_time_base += time_loop
        logger.debug(f"TimeHigh rollover #{rollover_count}, time base now {new_time_base}us")

    return new_time_base, rollover_count
