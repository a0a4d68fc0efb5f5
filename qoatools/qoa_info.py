#!/usr/bin/env python3
"""
QOA file inspector.

Decodes a .qoa file, prints its stream parameters and optionally writes the
decoded samples as headerless little-endian 16-bit PCM.

Usage:
    python -m qoatools.qoa_info <file.qoa>
    python -m qoatools.qoa_info <file.qoa> --raw-output out.pcm
    python -m qoatools.qoa_info <file.qoa> --dump-header 64 --log-level DEBUG
"""

import argparse
import logging
import os
import sys

from .errors import QoaError
from .qoa import decode

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Decode and inspect a QOA audio file.")
    parser.add_argument("input", help="Path to the .qoa file")
    parser.add_argument("--raw-output", help="Write decoded samples as raw s16le PCM to this path")
    parser.add_argument("--dump-header", type=int, default=0, metavar="N",
                        help="Hex dump the first N bytes of the file")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: WARNING)")
    return parser.parse_args(argv)


def hex_dump(data):
    for i in range(0, len(data), 16):
        chunk = data[i:i+16]
        hex_str = ' '.join(f'{b:02X}' for b in chunk)
        ascii_str = ''.join((chr(b) if 32 <= b < 127 else '.') for b in chunk)
        print(f'{i:04X}: {hex_str:<48} | {ascii_str}')


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if not os.path.exists(args.input):
        print(f"Error: File not found: {args.input}")
        return 1

    with open(args.input, 'rb') as f:
        if args.dump_header > 0:
            hex_dump(f.read(args.dump_header))
            f.seek(0)
        try:
            audio = decode(f)
        except QoaError as e:
            print(f"Error: {args.input}: {e}")
            return 1

    print(f"Channels:      {audio.channel_count}")
    print(f"Sample rate:   {audio.sample_rate} Hz")
    print(f"Sample frames: {audio.sample_frames}")
    print(f"Duration:      {audio.duration:.3f} s")

    if args.raw_output:
        out_dir = os.path.dirname(args.raw_output)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        with open(args.raw_output, 'wb') as out:
            out.write(audio.to_pcm_bytes())
        logger.info("Wrote %d samples to %s", len(audio.samples), args.raw_output)
        print(f"Saved to {args.raw_output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
