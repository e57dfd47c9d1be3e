"""
Open the right decoder or encoder for a file path.

``.dat`` files get the DAT decoder. ``.raw`` files are tried as EVT2 first;
when the header is rejected the file is reopened and parsed as EVT3.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Union

from ..errors import RecoverableFormatError, StreamIOError, UnsupportedFormatError
from .base import RawDecoder, RawEncoder
from .dat import DatDecoder
from .evt2 import Evt2Decoder, Evt2Encoder
from .evt3 import Evt3Decoder

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

ENCODERS = {"EVT2": Evt2Encoder}


def _open(path: PathLike, mode: str) -> BinaryIO:
    try:
        return open(path, mode)
    except OSError as exc:
        raise StreamIOError(f"Cannot open {path}: {exc}") from exc


def _try_decoder(decoder_cls, path: PathLike) -> RawDecoder:
    decoder = decoder_cls(_open(path, "rb"))
    try:
        decoder.read_header()
    except Exception:
        decoder.close()
        raise
    return decoder


def open_decoder(path: PathLike) -> RawDecoder:
    """
    Open ``path`` and return a decoder whose header has been read.

    Args:
        path: A ``.dat`` or ``.raw`` file

    Returns:
        DatDecoder, Evt2Decoder or Evt3Decoder, ready for ``read_event``

    Raises:
        UnsupportedFormatError: the extension is neither .dat nor .raw
        IncompatibleVersionError, MalformedHeaderError: the header is rejected
            by both RAW decoders
        StreamIOError: the file cannot be opened or read
    """
    suffix = Path(path).suffix.lower()

    if suffix == ".dat":
        return _try_decoder(DatDecoder, path)

    if suffix == ".raw":
        try:
            return _try_decoder(Evt2Decoder, path)
        except RecoverableFormatError as exc:
            logger.info(f"Not an EVT2 stream ({exc}), retrying as EVT3")
        return _try_decoder(Evt3Decoder, path)

    raise UnsupportedFormatError(f"Unsupported file format {suffix!r}. Please provide a .dat or .raw file.")


def detect_format(path: PathLike) -> str:
    """Return the name of the format ``open_decoder`` picks for ``path``."""
    with open_decoder(path) as decoder:
        return decoder.format_name


def open_encoder(path: PathLike, fmt: str = "EVT2") -> RawEncoder:
    """
    Create (or truncate) ``path`` and return an encoder writing to it.

    Raises:
        UnsupportedFormatError: no encoder exists for ``fmt``
        StreamIOError: the file cannot be created
    """
    encoder_cls = ENCODERS.get(fmt.upper())
    if encoder_cls is None:
        raise UnsupportedFormatError(f"No encoder for format {fmt!r}; available: {', '.join(ENCODERS)}")
    return encoder_cls(_open(path, "wb"))


__all__ = ["open_decoder", "open_encoder", "detect_format"]
