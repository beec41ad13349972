"""Shared fixtures: synthetic VxWorks images with a known layout."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional

import pytest

from shared.config import SextantConfig
from shared.logger import SextantLogger

from sextant.core.models import ByteOrder, SymbolKind, SymbolTableVersion

FILLER = 0xFFFFFFFF
GAP = 64
PADDING = 64
SIGNATURE = b"VxWorks 5.5.1\x00"


@dataclass
class SyntheticImage:
    """A generated image plus everything a test needs to know about it."""

    data: bytes
    version: SymbolTableVersion
    byte_order: ByteOrder
    image_base: int
    text_base: int
    data_base: int
    extern_base: int
    table_offset: int
    count: int
    header_size: int
    sys_init_address: Optional[int]
    names: list[str] = field(default_factory=list)
    kinds: list[SymbolKind] = field(default_factory=list)
    values: list[int] = field(default_factory=list)
    bad_indices: tuple[int, ...] = ()

    @property
    def table_end(self) -> int:
        return self.table_offset + self.count * self.version.entry_size


def _kind_for(index: int) -> SymbolKind:
    slot = index % 8
    if slot < 6:
        return SymbolKind.FUNCTION
    if slot == 6:
        return SymbolKind.DATA
    return SymbolKind.IMPORT_ADDRESS


def build_image(
    version: SymbolTableVersion = SymbolTableVersion.V5,
    byte_order: ByteOrder = ByteOrder.BIG,
    count: int = 1200,
    text_base: int = 0x10000,
    header_size: int = 0,
    header_word: Optional[int] = None,
    same_low_byte: bool = False,
    bad_name_indices: tuple[int, ...] = (),
    duplicate_name: Optional[tuple[int, int]] = None,
    include_sys_init: bool = True,
    signature: bool = True,
) -> SyntheticImage:
    """Lay out header, code, data, externs, strings and the symbol table.

    File layout::

        [header][code][data][extern][strings][gap][symbol table][padding]

    Every global function address lies in the code region; the lowest is
    *text_base*.  With ``same_low_byte`` all function addresses share their
    low byte, otherwise exactly one in every ten has its low bit set.
    """
    prefix = ">" if byte_order is ByteOrder.BIG else "<"
    types = version.symbol_types
    image_base = text_base - header_size

    kinds = [_kind_for(i) for i in range(count)]
    n_text = kinds.count(SymbolKind.FUNCTION)
    n_data = kinds.count(SymbolKind.DATA)
    n_ext = kinds.count(SymbolKind.IMPORT_ADDRESS)

    text_stride = 0x100 if same_low_byte else 0x40
    code_off = header_size
    code_size = (n_text + 1) * text_stride
    data_off = code_off + code_size
    ext_off = data_off + (n_data + 1) * 8
    str_off = ext_off + (n_ext + 1) * 8

    data_base = image_base + data_off
    extern_base = image_base + ext_off

    # Strings
    strings = bytearray(SIGNATURE if signature else b"")
    names: list[str] = []
    name_addresses: list[int] = []
    for i in range(count):
        if i == 0 and include_sys_init:
            name = "sysInit"
        else:
            name = f"sym_{i:04d}"
        names.append(name)
        name_addresses.append(image_base + str_off + len(strings))
        raw = name.encode("ascii")
        if i in bad_name_indices:
            raw = b"\xff\xfe" + raw
        strings += raw + b"\x00"

    if duplicate_name is not None:
        target, source = duplicate_name
        name_addresses[target] = name_addresses[source]

    # Values and type codes
    values: list[int] = []
    codes: list[int] = []
    g = d = e = 0
    for kind in kinds:
        if kind is SymbolKind.FUNCTION:
            tweak = 1 if (not same_low_byte and g % 10 == 1) else 0
            values.append(text_base + g * text_stride + tweak)
            codes.append(int(types["GLOBAL_TEXT"]))
            g += 1
        elif kind is SymbolKind.DATA:
            values.append(data_base + d * 8)
            codes.append(int(types["GLOBAL_DATA"]))
            d += 1
        else:
            values.append(extern_base + e * 8)
            codes.append(int(types["GLOBAL_EXTERNAL"]))
            e += 1

    body = bytearray(str_off)
    if header_size:
        body[0:4] = struct.pack(prefix + "I", header_size)
    elif header_word is not None:
        body[0:4] = struct.pack(prefix + "I", header_word)
    body += strings
    while len(body) % 4:
        body.append(0)
    body += bytes(GAP)

    table_offset = len(body)
    for i in range(count):
        body += struct.pack(prefix + "I", FILLER)
        body += struct.pack(prefix + "I", name_addresses[i])
        body += struct.pack(prefix + "I", values[i])
        if version is SymbolTableVersion.V6:
            body += struct.pack(prefix + "I", FILLER)
        body += struct.pack(">I", codes[i] << 8)
    body += bytes(PADDING)

    return SyntheticImage(
        data=bytes(body),
        version=version,
        byte_order=byte_order,
        image_base=image_base,
        text_base=text_base,
        data_base=data_base,
        extern_base=extern_base,
        table_offset=table_offset,
        count=count,
        header_size=header_size,
        sys_init_address=values[0] if include_sys_init else None,
        names=names,
        kinds=kinds,
        values=values,
        bad_indices=tuple(bad_name_indices),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def logger() -> SextantLogger:
    """Logger without handlers so records reach pytest's caplog."""
    return SextantLogger("test", log_level="DEBUG", console_output=False)


@pytest.fixture
def config() -> SextantConfig:
    return SextantConfig()


@pytest.fixture(scope="session")
def v5_be_image() -> SyntheticImage:
    return build_image(SymbolTableVersion.V5, ByteOrder.BIG)


@pytest.fixture(scope="session")
def v5_le_image() -> SyntheticImage:
    return build_image(SymbolTableVersion.V5, ByteOrder.LITTLE)


@pytest.fixture(scope="session")
def v6_le_image() -> SyntheticImage:
    return build_image(SymbolTableVersion.V6, ByteOrder.LITTLE)


@pytest.fixture(scope="session")
def v6_be_image() -> SyntheticImage:
    return build_image(SymbolTableVersion.V6, ByteOrder.BIG)


@pytest.fixture(scope="session")
def no_table_image() -> bytes:
    """Signature present, no symbol table."""
    return b"\x00" * 0x400 + SIGNATURE + b"\x00" * 0x3F2
