"""Shared fixtures and a small QOA stream builder for the decoder tests."""

from __future__ import annotations

import io
import struct

import pytest

ZERO_LMS = ([0, 0, 0, 0], [0, 0, 0, 0])


class TrickleStream(io.RawIOBase):
    """Unbuffered source that returns at most `chunk` bytes per read()."""

    def __init__(self, data: bytes, chunk: int = 3) -> None:
        self._data = data
        self._pos = 0
        self._chunk = chunk

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        n = min(len(buffer), self._chunk, len(self._data) - self._pos)
        buffer[:n] = self._data[self._pos:self._pos + n]
        self._pos += n
        return n


# ---------------------------------------------------------------------------
# Stream builder
# ---------------------------------------------------------------------------


def pack_slice(sf_quant: int, codes) -> int:
    """Packs a scale factor index and up to 20 residual codes into a u64."""
    codes = list(codes) + [0] * (20 - len(codes))
    value = sf_quant
    for code in codes:
        value = value << 3 | code
    return value


def pack_file_header(total_sample_frames: int, magic: bytes = b"qoaf") -> bytes:
    return magic + struct.pack(">I", total_sample_frames)


def pack_frame(sample_rate: int, sample_count: int, lms, slices, byte_size=None) -> bytes:
    """
    lms: one (history, weights) pair per channel.
    slices: one list of u64 slice values per channel.
    """
    channels = len(lms)
    n_slices = (sample_count + 19) // 20
    if byte_size is None:
        byte_size = 8 + channels * (16 + n_slices * 8)
    out = bytearray()
    out += struct.pack(">B", channels)
    out += struct.pack(">I", sample_rate)[1:]
    out += struct.pack(">HH", sample_count, byte_size)
    for history, weights in lms:
        out += struct.pack(">4h", *history)
        out += struct.pack(">4h", *weights)
    for i in range(n_slices):
        for ch in range(channels):
            out += struct.pack(">Q", slices[ch][i])
    return bytes(out)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mono_zero_stream() -> bytes:
    """1 channel, 1 frame, 20 samples, zero LMS state, all-zero slice."""
    return pack_file_header(20) + pack_frame(44100, 20, [ZERO_LMS], [[0]])


@pytest.fixture()
def two_frame_stream() -> bytes:
    """1 channel, frames of 40 and 20 samples."""
    return (
        pack_file_header(60)
        + pack_frame(44100, 40, [ZERO_LMS], [[0, pack_slice(0, [2] * 20)]])
        + pack_frame(44100, 20, [ZERO_LMS], [[pack_slice(1, [0] * 20)]])
    )


@pytest.fixture()
def stereo_stream() -> bytes:
    """2 channels, 20 samples: channel 0 decodes to 1s, channel 1 to 3s."""
    return pack_file_header(20) + pack_frame(
        22050, 20, [ZERO_LMS, ZERO_LMS], [[0], [pack_slice(0, [2] * 20)]]
    )
