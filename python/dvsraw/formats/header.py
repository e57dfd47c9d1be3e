"""
Text header parsing for Prophesee RAW (EVT2/EVT3) and DAT recordings.

Both formats start with ASCII lines prefixed by ``%``::

    % evt 3.0
    % format EVT3;height=720;width=1280
    % geometry 1280x720
    % end

RAW headers end with ``% end`` (or, for files that omit it, with the first
line that does not start with ``%``). DAT headers have no terminator and end
with the first unprefixed byte, followed by a two-byte event type/size
descriptor.

Detecting the end of a header needs a one-byte lookahead; the reader is moved
back one byte so the next read starts on the first event byte.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Tuple

from ..errors import IncompatibleVersionError, MalformedHeaderError, StreamIOError

logger = logging.getLogger(__name__)

HEADER_MARKER = b"%"
END_DIRECTIVE = "end"


@dataclass
class HeaderInfo:
    """Metadata extracted from a text header.

    Attributes:
        lines: Header lines in file order, without line terminators
        format_name: Name from the ``format`` directive (e.g. "EVT2")
        version: Version from the ``evt`` directive (e.g. "2.0")
        width, height: Sensor geometry, None when the header does not give it
        options: Extra ``key=value`` options of the ``format`` directive
        fields: Any other ``% key value`` lines
    """

    lines: List[str] = field(default_factory=list)
    format_name: Optional[str] = None
    version: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    options: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def geometry(self) -> Optional[Tuple[int, int]]:
        if self.width is None or self.height is None:
            return None
        return self.width, self.height

    def check_compatible(self, format_name: str, version: str) -> None:
        """
        Raise if the header declares another format or version.

        Headers that declare neither are accepted, matching recordings written
        without a header.

        Raises:
            IncompatibleVersionError: declared format/version differs
        """
        if self.version is not None and self.version != version:
            raise IncompatibleVersionError(f"evt {version}", f"evt {self.version}")
        if self.format_name is not None and self.format_name.upper() != format_name.upper():
            raise IncompatibleVersionError(format_name, self.format_name)


def _decode_line(raw: bytes) -> str:
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError as exc:
        raise MalformedHeaderError(f"Header line is not ASCII text: {raw[:40]!r}") from exc
    return text.rstrip("\r\n")


def read_header_lines(reader: BinaryIO, terminated: bool = True) -> List[str]:
    """
    Consume the ``%``-prefixed lines at the start of a stream.

    Args:
        reader: Seekable binary stream positioned at the start of the header
        terminated: Stop at the ``% end`` line (RAW). When False only the first
            unprefixed line ends the header (DAT).

    Returns:
        Header lines including the ``%`` marker, without line terminators. The
        stream is left on the first byte after the header.
    """
    lines = []
    try:
        while True:
            first = reader.read(1)
            if not first:
                break
            if first != HEADER_MARKER:
                reader.seek(-1, io.SEEK_CUR)
                break

            line = "%" + _decode_line(reader.readline())
            lines.append(line)
            if terminated and line[1:].strip() == END_DIRECTIVE:
                break
    except OSError as exc:
        raise StreamIOError(f"Failed to read header: {exc}") from exc

    return lines


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise MalformedHeaderError(f"Invalid {name} value in header: {value!r}") from exc


def _parse_geometry(value: str) -> Tuple[int, int]:
    parts = value.strip().split("x")
    if len(parts) != 2:
        raise MalformedHeaderError(f"Invalid geometry in header: {value!r}")
    return _parse_int("width", parts[0]), _parse_int("height", parts[1])


def _parse_version(value: str) -> str:
    version = value.strip()
    major, dot, minor = version.partition(".")
    if not dot or not major.isdigit() or not minor.isdigit():
        raise MalformedHeaderError(f"Invalid evt version in header: {value!r}")
    return version


def parse_raw_header(lines: List[str]) -> HeaderInfo:
    """
    Interpret the directives of an EVT2/EVT3 header.

    Recognized directives are ``format NAME;key=value;...``, ``geometry WxH``
    and ``evt MAJOR.MINOR``. Other lines are stored in ``HeaderInfo.fields``.

    Raises:
        MalformedHeaderError: a recognized directive has an unparsable value
    """
    info = HeaderInfo(lines=list(lines))

    for line in lines:
        body = line[1:].strip()
        if not body or body == END_DIRECTIVE:
            continue

        keyword, _, value = body.partition(" ")
        if keyword == "format":
            name, *options = value.split(";")
            info.format_name = name.strip()
            for option in options:
                option = option.strip()
                if not option:
                    continue
                key, eq, opt_value = option.partition("=")
                if not eq:
                    raise MalformedHeaderError(f"Invalid format option in header: {option!r}")
                key = key.strip()
                if key == "width":
                    info.width = _parse_int("width", opt_value)
                elif key == "height":
                    info.height = _parse_int("height", opt_value)
                else:
                    info.options[key] = opt_value.strip()
        elif keyword == "geometry":
            info.width, info.height = _parse_geometry(value)
        elif keyword == "evt":
            info.version = _parse_version(value)
        else:
            info.fields[keyword] = value.strip()

        logger.debug(f"Header directive {keyword!r}: {value.strip()!r}")

    return info


def parse_dat_header(lines: List[str]) -> HeaderInfo:
    """
    Interpret the ``% key value`` lines of a DAT header.

    Only ``width`` and ``height`` are interpreted; ``Height``/``Width`` are
    accepted too since some writers capitalize them.

    Raises:
        MalformedHeaderError: width or height is not an integer
    """
    info = HeaderInfo(lines=list(lines))

    for line in lines:
        keyword, _, value = line[1:].strip().partition(" ")
        key = keyword.lower()
        if key == "width":
            info.width = _parse_int("width", value)
        elif key == "height":
            info.height = _parse_int("height", value)
        elif keyword:
            info.fields[keyword] = value.strip()

    return info


__all__ = [
    "HeaderInfo",
    "HEADER_MARKER",
    "read_header_lines",
    "parse_raw_header",
    "parse_dat_header",
]
