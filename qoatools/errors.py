"""Errors raised while parsing a QOA stream. All of them end the decode."""


class QoaError(ValueError):
    """Base class for malformed QOA input."""


class InvalidMagicError(QoaError):
    def __init__(self, found):
        self.found = bytes(found)
        super().__init__(f"Not a QOA file: expected magic b'qoaf', got {self.found!r}")


class TruncatedInputError(QoaError):
    """The stream ended before a fixed-size field (or the declared audio) was complete."""

    def __init__(self, message, offset=None, wanted=None, available=None):
        self.offset = offset
        self.wanted = wanted
        self.available = available
        super().__init__(message)


class ChannelCountMismatchError(QoaError):
    def __init__(self, expected, found, frame_index):
        self.expected = expected
        self.found = found
        self.frame_index = frame_index
        super().__init__(
            f"Frame {frame_index} has {found} channels, stream started with {expected}"
        )
