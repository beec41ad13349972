"""
Positioned Binary Reader
=========================

A small cursor over an in-memory image.  Every read is bounds-checked and
reports failure with ``None`` instead of raising, because the symbol
table search probes millions of offsets that mostly hold something other
than a symbol entry.

Word reads honour a settable default byte order; the flags word of a
VxWorks symbol entry is always big-endian and has its own accessor.
"""

from __future__ import annotations

import struct
from typing import Optional

from sextant.core.models import ByteOrder

_U32 = {order: struct.Struct(order.struct_prefix + "I") for order in ByteOrder}


class BinaryReader:
    """Random-access reader over an immutable byte buffer.

    Args:
        data: The image bytes.
        byte_order: Default order for :meth:`try_read_u32`.
    """

    def __init__(self, data: bytes, byte_order: ByteOrder = ByteOrder.BIG) -> None:
        self._data = bytes(data)
        self._pos = 0
        self.byte_order = byte_order

    # ------------------------------------------------------------------ #
    #  Cursor
    # ------------------------------------------------------------------ #

    def seek(self, offset: int) -> None:
        """Move the cursor.  Out-of-range offsets are allowed; reads there fail."""
        self._pos = offset

    def tell(self) -> int:
        return self._pos

    @property
    def length(self) -> int:
        return len(self._data)

    @property
    def data(self) -> bytes:
        return self._data

    def is_offset_backed(self, offset: int) -> bool:
        """Whether *offset* lies inside the buffer."""
        return 0 <= offset < len(self._data)

    # ------------------------------------------------------------------ #
    #  Reads
    # ------------------------------------------------------------------ #

    def try_read_u32(self, byte_order: Optional[ByteOrder] = None) -> Optional[int]:
        """Read a 32-bit unsigned word and advance past it.

        Uses *byte_order* if given, else the reader's default order.
        Returns ``None`` (cursor unchanged) when fewer than 4 bytes remain.
        """
        order = byte_order or self.byte_order
        codec = _U32[order]
        pos = self._pos
        if pos < 0 or pos + 4 > len(self._data):
            return None
        (value,) = codec.unpack_from(self._data, pos)
        self._pos = pos + 4
        return value

    def try_read_u32_be(self) -> Optional[int]:
        """Read a big-endian 32-bit word regardless of the default order."""
        return self.try_read_u32(ByteOrder.BIG)

    def read_cstring(self, max_length: int) -> str:
        """Read a NUL-terminated string of at most *max_length* bytes.

        Bytes are decoded as Latin-1 so that every byte value survives and
        callers can reject non-ASCII names.  An out-of-range cursor yields
        an empty string.
        """
        pos = self._pos
        if pos < 0 or pos >= len(self._data):
            return ""
        window = self._data[pos:pos + max_length]
        nul = window.find(b"\x00")
        raw = window if nul < 0 else window[:nul]
        self._pos = pos + len(raw) + (0 if nul < 0 else 1)
        return raw.decode("latin-1")
