"""
Forward-only big-endian reader over a byte source.

Accepts a binary file object (anything with read(n)) or a bytes-like buffer.
Every read either returns the full field or raises TruncatedInputError; the
source is never rewound.
"""

import io
import struct

from ..errors import TruncatedInputError

U8 = struct.Struct('>B')
U16 = struct.Struct('>H')
U32 = struct.Struct('>I')
U64 = struct.Struct('>Q')


class ByteReader:
    def __init__(self, source):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self.f = source
        self.offset = 0
        self._pending = b''  # one byte held back by at_end()

    def tell(self):
        """Number of bytes consumed so far."""
        return self.offset

    def at_end(self):
        """True when no more bytes are available. Does not consume anything."""
        if self._pending:
            return False
        self._pending = self.f.read(1) or b''
        return not self._pending

    def read_bytes(self, n):
        data = self._pending[:n]
        self._pending = self._pending[n:]
        # Raw streams and pipes may return fewer bytes than asked before EOF
        while len(data) < n:
            chunk = self.f.read(n - len(data))
            if not chunk:
                break
            data += chunk
        if len(data) < n:
            raise TruncatedInputError(
                f"Unexpected end of input at offset {self.offset}: "
                f"wanted {n} bytes, got {len(data)}",
                offset=self.offset, wanted=n, available=len(data),
            )
        self.offset += n
        return data

    def read_u8(self):
        return U8.unpack(self.read_bytes(1))[0]

    def read_u16(self):
        return U16.unpack(self.read_bytes(2))[0]

    def read_u24(self):
        # Widened to 32 bits with the top byte zero
        return U32.unpack(b'\x00' + self.read_bytes(3))[0]

    def read_u32(self):
        return U32.unpack(self.read_bytes(4))[0]

    def read_u64(self):
        return U64.unpack(self.read_bytes(8))[0]

    def read_i16_array(self, count):
        return list(struct.unpack(f'>{count}h', self.read_bytes(2 * count)))
