"""Exception hierarchy shared by the decoders, encoders and the dispatcher."""


class DvsRawError(Exception):
    """Base class for all dvsraw errors."""


class UnsupportedFormatError(DvsRawError, ValueError):
    """The file extension or requested format has no decoder/encoder."""


class RecoverableFormatError(DvsRawError, ValueError):
    """A header was rejected by one decoder but may be accepted by another.

    The dispatcher catches this to retry a ``.raw`` file as EVT3 after an
    EVT2 attempt fails.
    """


class IncompatibleVersionError(RecoverableFormatError):
    """The header declares a format or version the decoder does not handle."""

    def __init__(self, expected: str, found: str):
        super().__init__(f"Incompatible event format: expected {expected}, found {found}")
        self.expected = expected
        self.found = found


class MalformedHeaderError(RecoverableFormatError):
    """A header directive is missing or its value cannot be parsed."""


class UnexpectedEndOfStreamError(DvsRawError, EOFError):
    """Fewer bytes than one wire word were left when an event was expected."""

    def __init__(self, word_size: int, remaining: int = 0):
        super().__init__(f"End of stream: needed {word_size} bytes, {remaining} left")
        self.word_size = word_size
        self.remaining = remaining


class StreamIOError(DvsRawError, OSError):
    """Reading, seeking or writing the underlying file failed."""


__all__ = [
    "DvsRawError",
    "UnsupportedFormatError",
    "RecoverableFormatError",
    "IncompatibleVersionError",
    "MalformedHeaderError",
    "UnexpectedEndOfStreamError",
    "StreamIOError",
]
