"""QOA (Quite OK Audio) decoding tools."""

from .errors import (
    ChannelCountMismatchError,
    InvalidMagicError,
    QoaError,
    TruncatedInputError,
)
from .qoa import DecodedAudio, QoaDecoder, decode

__all__ = [
    "ChannelCountMismatchError",
    "DecodedAudio",
    "InvalidMagicError",
    "QoaDecoder",
    "QoaError",
    "TruncatedInputError",
    "decode",
]
