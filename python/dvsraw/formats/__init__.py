"""Wire formats: header parsing, EVT2/EVT3/DAT decoders and the EVT2 encoder."""

from .base import RawDecoder, RawEncoder, advance_time_base
from .dat import DatDecoder
from .dispatch import detect_format, open_decoder, open_encoder
from .evt2 import Evt2Decoder, Evt2Encoder
from .evt3 import Evt3Decoder
from .header import HeaderInfo, parse_dat_header, parse_raw_header, read_header_lines

__all__ = [
    "RawDecoder",
    "RawEncoder",
    "advance_time_base",
    "DatDecoder",
    "Evt2Decoder",
    "Evt2Encoder",
    "Evt3Decoder",
    "HeaderInfo",
    "parse_raw_header",
    "parse_dat_header",
    "read_header_lines",
    "open_decoder",
    "open_encoder",
    "detect_format",
]
