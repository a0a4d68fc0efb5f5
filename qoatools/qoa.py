"""
QOA ("Quite OK Audio") Decoder

Decodes a QOA byte stream into interleaved signed 16-bit PCM.

Format reference:
  - https://qoaformat.org/ (qoa.h by Dominic Szablewski, the canonical tables).

Layout (big-endian throughout):
  File header (8 bytes):
    +0x00: magic "qoaf"
    +0x04: u32 total sample frames (samples per channel, whole file)
  Frame, repeated until the end of the stream:
    +0x00: u8  channel count
    +0x01: u24 sample rate
    +0x04: u16 sample frames in this frame (multiple of 20 except the last frame)
    +0x06: u16 frame size in bytes (advisory)
    LMS block per channel: 4 x i16 history, 4 x i16 weights
    Slices: ceil(sample frames / 20) groups, each one u64 per channel
  Slice (u64):
    bits[63:60] scale factor index
    bits[59:0]  20 x 3-bit residual codes, first sample in the top bits

Frames are read until the source is exhausted, not until the declared sample
count is reached. Bytes after the last frame are parsed as another frame, so
trailing data fails with TruncatedInputError (or ChannelCountMismatchError
once it is long enough to hold a frame header). Callers holding a container
with extra data must pass only the QOA stream.
"""

import logging
import math

import numpy as np

from .common.bigendian import ByteReader
from .errors import ChannelCountMismatchError, InvalidMagicError, TruncatedInputError

logger = logging.getLogger(__name__)

MAGIC = b'qoaf'
SLICE_SAMPLES = 20
FRAME_SLICES = 256
FRAME_SAMPLES = SLICE_SAMPLES * FRAME_SLICES
MAX_CHANNELS = 8
LMS_LEN = 4

# qoa.h: qoa_scalefactor_tab. Do not replace with round(pow(s + 1, 2.75)).
SCALE_FACTORS = (
    1, 7, 21, 45, 84, 138, 211, 304,
    421, 562, 731, 928, 1157, 1419, 1715, 2048,
)

# qoa.h: qoa_dequant_tab before scaling
DEQUANT_RESIDUALS = (0.75, -0.75, 2.5, -2.5, 4.5, -4.5, 7.0, -7.0)


def round_half_away(value):
    """Round to nearest integer, ties away from zero."""
    if value < 0:
        return int(math.ceil(value - 0.5))
    return int(math.floor(value + 0.5))


def dequantize(code, scale_factor):
    return round_half_away(scale_factor * DEQUANT_RESIDUALS[code])


# DEQUANT_TABLE[sf_quant][code] -> scaled residual
DEQUANT_TABLE = tuple(
    tuple(dequantize(code, sf) for code in range(8)) for sf in SCALE_FACTORS
)


def frame_count_for(total_sample_frames):
    """
    Expected number of frames for a declared sample frame count.

    Round-half-up of total / 5120 + 0.5, which is one more than the exact
    frame count when total is a multiple of 5120.
    """
    return int(math.floor(total_sample_frames / FRAME_SAMPLES + 0.5 + 0.5))


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

class FileHeader:
    def __init__(self, total_sample_frames):
        self.total_sample_frames = total_sample_frames
        self.frame_count = frame_count_for(total_sample_frames)

    @classmethod
    def parse(cls, reader):
        magic = reader.read_bytes(4)
        if magic != MAGIC:
            raise InvalidMagicError(magic)
        return cls(reader.read_u32())

    def __repr__(self):
        return (f"FileHeader(total_sample_frames={self.total_sample_frames}, "
                f"frame_count={self.frame_count})")


class FrameHeader:
    def __init__(self, channel_count, sample_rate, sample_frame_count, byte_size):
        self.channel_count = channel_count
        self.sample_rate = sample_rate
        self.sample_frame_count = sample_frame_count
        self.byte_size = byte_size

    @classmethod
    def parse(cls, reader):
        channel_count = reader.read_u8()
        sample_rate = reader.read_u24()
        sample_frame_count = reader.read_u16()
        byte_size = reader.read_u16()
        return cls(channel_count, sample_rate, sample_frame_count, byte_size)

    @property
    def slice_count(self):
        return (self.sample_frame_count + SLICE_SAMPLES - 1) // SLICE_SAMPLES

    @property
    def expected_size(self):
        return 8 + self.channel_count * (16 + self.slice_count * 8)

    def __repr__(self):
        return (f"FrameHeader(channels={self.channel_count}, rate={self.sample_rate}, "
                f"samples={self.sample_frame_count}, size={self.byte_size})")


# ---------------------------------------------------------------------------
# LMS predictor
# ---------------------------------------------------------------------------

class LmsState:
    """Sign-sign LMS predictor for one channel."""

    def __init__(self, history=None, weights=None):
        self.history = list(history) if history is not None else [0] * LMS_LEN
        self.weights = list(weights) if weights is not None else [0] * LMS_LEN

    @classmethod
    def parse(cls, reader):
        history = reader.read_i16_array(LMS_LEN)
        weights = reader.read_i16_array(LMS_LEN)
        return cls(history, weights)

    def predict(self):
        h = self.history
        w = self.weights
        return (h[0] * w[0] + h[1] * w[1] + h[2] * w[2] + h[3] * w[3]) >> 13

    def update(self, sample, residual):
        delta = residual >> 4
        for j in range(LMS_LEN):
            self.weights[j] += -delta if self.history[j] < 0 else delta
        self.history[0] = self.history[1]
        self.history[1] = self.history[2]
        self.history[2] = self.history[3]
        self.history[3] = sample

    def __repr__(self):
        return f"LmsState(history={self.history}, weights={self.weights})"


def clamp_s16(value):
    if value > 32767:
        return 32767
    if value < -32768:
        return -32768
    return value


def decode_slice(slice_value, lms):
    """
    Decodes one 64-bit slice into 20 samples, updating lms in place.
    """
    dequant = DEQUANT_TABLE[slice_value >> 60]
    samples = []
    # Residual codes from bit 57 down to bit 0
    for shift in range(57, -1, -3):
        residual = dequant[(slice_value >> shift) & 7]
        sample = clamp_s16(lms.predict() + residual)
        lms.update(sample, residual)
        samples.append(sample)
    return samples


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def assemble_channels(channels):
    """Interleaves per-channel sample lists as ch0, ch1, ..., ch0, ch1, ..."""
    if not channels:
        return np.zeros(0, dtype=np.int16)
    planes = [np.asarray(c, dtype=np.int16) for c in channels]
    return np.stack(planes, axis=1).reshape(-1)


class DecodedAudio:
    def __init__(self, sample_rate, channel_count, samples):
        self.sample_rate = sample_rate
        self.channel_count = channel_count
        self.samples = samples

    @property
    def sample_frames(self):
        """Samples per channel."""
        if not self.channel_count:
            return 0
        return len(self.samples) // self.channel_count

    @property
    def duration(self):
        if not self.sample_rate:
            return 0.0
        return self.sample_frames / self.sample_rate

    def channel(self, index):
        if not 0 <= index < self.channel_count:
            raise IndexError(f"Channel {index} out of range (0..{self.channel_count - 1})")
        return self.samples[index::self.channel_count]

    def to_pcm_bytes(self):
        """Headerless little-endian signed 16-bit PCM."""
        return self.samples.astype('<i2').tobytes()

    def __repr__(self):
        return (f"DecodedAudio(sample_rate={self.sample_rate}, "
                f"channel_count={self.channel_count}, sample_frames={self.sample_frames})")


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

class QoaDecoder:
    def __init__(self, source):
        self.reader = source if isinstance(source, ByteReader) else ByteReader(source)
        self.file_header = None
        self.last_frame = None
        self.channel_count = None
        self.frames_read = 0
        self.sample_frames_read = 0

    def read_file_header(self):
        self.file_header = FileHeader.parse(self.reader)
        logger.info("File contains %d samples across %d frames",
                    self.file_header.total_sample_frames, self.file_header.frame_count)
        return self.file_header

    def read_frame(self):
        """
        Decodes the next frame.

        Returns one list of samples per channel, or None if the stream ended
        cleanly at a frame boundary.
        """
        if self.file_header is None:
            self.read_file_header()
        if self.reader.at_end():
            return None

        offset = self.reader.tell()
        header = FrameHeader.parse(self.reader)
        frame_index = self.frames_read
        logger.debug("Frame %d at 0x%X: %r", frame_index, offset, header)

        if self.channel_count is None:
            self.channel_count = header.channel_count
            if header.channel_count > MAX_CHANNELS:
                logger.warning("Stream declares %d channels, QOA allows at most %d",
                               header.channel_count, MAX_CHANNELS)
        elif header.channel_count != self.channel_count:
            raise ChannelCountMismatchError(self.channel_count, header.channel_count, frame_index)

        if self.last_frame is not None and header.sample_rate != self.last_frame.sample_rate:
            logger.warning("Sample rate changes from %d to %d at frame %d",
                           self.last_frame.sample_rate, header.sample_rate, frame_index)
        if header.byte_size != header.expected_size:
            logger.debug("Frame %d declares %d bytes, layout implies %d",
                         frame_index, header.byte_size, header.expected_size)

        # LMS state is re-sent with every frame and replaces the previous one
        lms = [LmsState.parse(self.reader) for _ in range(header.channel_count)]

        output = [[] for _ in range(header.channel_count)]
        for _ in range(header.slice_count):
            for ch in range(header.channel_count):
                output[ch].extend(decode_slice(self.reader.read_u64(), lms[ch]))

        # The last slice group is padded to 20 samples
        for ch in range(header.channel_count):
            del output[ch][header.sample_frame_count:]

        self.last_frame = header
        self.frames_read += 1
        self.sample_frames_read += header.sample_frame_count
        return output

    def decode(self):
        """Decodes the whole stream. Raises a QoaError subclass on malformed input."""
        if self.file_header is None:
            self.read_file_header()

        channels = []
        while True:
            frame = self.read_frame()
            if frame is None:
                break
            if not channels:
                channels = [[] for _ in frame]
            for out, samples in zip(channels, frame):
                out.extend(samples)

        total = self.file_header.total_sample_frames
        if self.sample_frames_read < total:
            raise TruncatedInputError(
                f"Stream ended after {self.sample_frames_read} of {total} sample frames",
                offset=self.reader.tell(),
            )
        if self.sample_frames_read > total:
            logger.warning("Decoded %d sample frames, header declares %d",
                           self.sample_frames_read, total)
        if self.frames_read > self.file_header.frame_count:
            logger.warning("Decoded %d frames, header implies at most %d",
                           self.frames_read, self.file_header.frame_count)

        samples = assemble_channels(channels)
        logger.info("Samples read: %d", len(samples))

        if self.last_frame is None:
            return DecodedAudio(0, 0, samples)
        return DecodedAudio(self.last_frame.sample_rate, self.last_frame.channel_count, samples)


def decode(source):
    """Decodes a complete QOA stream from bytes or a binary file object."""
    return QoaDecoder(source).decode()
