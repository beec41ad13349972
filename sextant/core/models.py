"""
Sextant Data Models
====================

Data models for VxWorks firmware recovery.  Two families live here:

* Scan records (:class:`SymbolEntry`, :class:`SymbolTable`,
  :class:`ImageBaseHypothesis` and the per-step result types) are frozen
  slotted dataclasses.  The scanner creates one of them for every
  plausible offset of a multi-megabyte image, so they stay lightweight.
* Everything that ends up in a report (sections, recovered symbols,
  segments, type definitions, the aggregate analysis result) is a
  Pydantic model so it serialises straight to JSON.

VxWorks keeps its symbol table as a flat array of fixed-size records.
Their layout differs between the 5.x and 6.x releases::

    VxWorks 5.x (16 bytes)          VxWorks 6.x (20 bytes)
    +0  u32  unused                 +0  u32  unused
    +4  u32  name pointer           +4  u32  name pointer
    +8  u32  value                  +8  u32  value
    +12 u32  flags (big-endian)     +12 u32  unused
                                    +16 u32  flags (big-endian)

References:
    - Wind River Systems. (1999). VxWorks Reference Manual 5.4, symLib.
    - Wind River Systems. (2006). VxWorks Kernel API Reference 6.3, symLib.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ByteOrder(str, enum.Enum):
    """Byte order of multi-byte words in the image."""
    BIG = "big"
    LITTLE = "little"

    @property
    def struct_prefix(self) -> str:
        """:mod:`struct` format prefix for this byte order."""
        return ">" if self is ByteOrder.BIG else "<"

    @property
    def word_dtype(self) -> str:
        """NumPy dtype string for an unsigned 32-bit word in this order."""
        return ">u4" if self is ByteOrder.BIG else "<u4"


class SymbolTableVersion(str, enum.Enum):
    """VxWorks release family, which fixes the symbol entry layout."""
    V5 = "5"
    V6 = "6"

    @property
    def entry_size(self) -> int:
        return 16 if self is SymbolTableVersion.V5 else 20

    @property
    def flags_offset(self) -> int:
        """Offset of the big-endian flags word inside one entry."""
        return 12 if self is SymbolTableVersion.V5 else 16

    @property
    def symbol_types(self) -> type[VxWorksSymbolType]:
        """The symbol-type enumeration that applies to this release."""
        if self is SymbolTableVersion.V5:
            return VxWorks5SymbolType
        return VxWorks6SymbolType

    @property
    def label(self) -> str:
        return f"VxWorks {self.value}.x"


class SymbolKind(str, enum.Enum):
    """What a recovered symbol names."""
    FUNCTION = "function"
    IMPORT_ADDRESS = "import_address"
    DATA = "data"


class SectionSemantics(str, enum.Enum):
    """Access semantics attached to a synthesised section."""
    READ_ONLY_CODE = "read_only_code"
    READ_WRITE_DATA = "read_write_data"
    EXTERNAL = "external"
    READ_ONLY_DATA = "read_only_data"


class SegmentFlag(enum.IntFlag):
    """Segment permission bits (same values as ELF ``PF_*``)."""
    EXECUTABLE = 0x1
    WRITABLE = 0x2
    READABLE = 0x4


# ---------------------------------------------------------------------------
# Symbol type codes
# ---------------------------------------------------------------------------

_FUNCTION_TYPE_NAMES: frozenset[str] = frozenset(
    {"UNDEFINED", "LOCAL_TEXT", "GLOBAL_TEXT"}
)


class VxWorksSymbolType(enum.IntEnum):
    """Behaviour shared by the per-release symbol type enumerations.

    The type code is bits 8-15 of an entry's flags word.  Members are
    defined by the subclasses; this class only carries the lookups.
    """

    @property
    def kind(self) -> SymbolKind:
        if self.name in _FUNCTION_TYPE_NAMES:
            return SymbolKind.FUNCTION
        if self.name == "GLOBAL_EXTERNAL":
            return SymbolKind.IMPORT_ADDRESS
        return SymbolKind.DATA

    @property
    def is_global_text(self) -> bool:
        return self.name == "GLOBAL_TEXT"

    @classmethod
    def from_code(cls, code: int) -> Optional[VxWorksSymbolType]:
        """Return the member for *code*, or ``None`` for an unknown code."""
        try:
            return cls(code)
        except ValueError:
            return None

    @classmethod
    def codes(cls) -> list[int]:
        return [int(member) for member in cls]


class VxWorks5SymbolType(VxWorksSymbolType):
    """symLib type codes used by VxWorks 5.x."""
    UNDEFINED = 0x00
    GLOBAL_EXTERNAL = 0x01
    LOCAL_ABSOLUTE = 0x02
    GLOBAL_ABSOLUTE = 0x03
    LOCAL_TEXT = 0x04
    GLOBAL_TEXT = 0x05
    LOCAL_DATA = 0x06
    GLOBAL_DATA = 0x07
    LOCAL_BSS = 0x08
    GLOBAL_BSS = 0x09
    LOCAL_COMMON = 0x12
    GLOBAL_COMMON = 0x13
    LOCAL_SDA = 0x40          # PowerPC small data area
    GLOBAL_SDA = 0x41
    LOCAL_SDA2 = 0x80
    GLOBAL_SDA2 = 0x81


class VxWorks6SymbolType(VxWorksSymbolType):
    """symLib type codes used by VxWorks 6.x."""
    UNDEFINED = 0x00
    GLOBAL_EXTERNAL = 0x01
    LOCAL_ABSOLUTE = 0x02
    GLOBAL_ABSOLUTE = 0x03
    LOCAL_TEXT = 0x04
    GLOBAL_TEXT = 0x05
    LOCAL_DATA = 0x08
    GLOBAL_DATA = 0x09
    LOCAL_BSS = 0x10
    GLOBAL_BSS = 0x11
    LOCAL_COMMON = 0x20
    GLOBAL_COMMON = 0x21
    LOCAL_SDA = 0x40
    GLOBAL_SDA = 0x41
    LOCAL_SDA2 = 0x80
    GLOBAL_SDA2 = 0x81


# ---------------------------------------------------------------------------
# Scan records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SymbolEntry:
    """One decoded symbol table entry.

    Attributes:
        name_address: Virtual address of the NUL-terminated symbol name.
        value_address: Symbol value (usually a virtual address).
        flags: Raw flags word, always decoded big-endian.
        raw_offset: File offset of the entry.
    """
    name_address: int
    value_address: int
    flags: int
    raw_offset: int

    @property
    def type_code(self) -> int:
        return (self.flags >> 8) & 0xFF


@dataclass(frozen=True, slots=True)
class SymbolTable:
    """An accepted symbol table: contiguous entries in ascending offset order."""
    version: SymbolTableVersion
    byte_order: ByteOrder
    start_offset: int
    entries: tuple[SymbolEntry, ...]

    @property
    def entry_size(self) -> int:
        return self.version.entry_size

    @property
    def end_offset(self) -> int:
        """File offset one past the last entry."""
        return self.start_offset + len(self.entries) * self.entry_size

    def __len__(self) -> int:
        return len(self.entries)

    def symbol_type(self, entry: SymbolEntry) -> Optional[VxWorksSymbolType]:
        return self.version.symbol_types.from_code(entry.type_code)


@dataclass(frozen=True, slots=True)
class ImageBaseHypothesis:
    """Result of image base resolution.

    Attributes:
        candidate: The proposed load address.
        header_adjusted: ``True`` when a header prefix was subtracted.
        header_size: Size of the subtracted header (0 when not adjusted).
    """
    candidate: int
    header_adjusted: bool = False
    header_size: int = 0


@dataclass(frozen=True, slots=True)
class SymbolTableResult:
    """Outcome of the symbol table search."""
    table: Optional[SymbolTable] = None
    hypotheses_tried: tuple[tuple[SymbolTableVersion, ByteOrder], ...] = ()

    @property
    def found(self) -> bool:
        return self.table is not None


@dataclass(frozen=True, slots=True)
class ImageBaseResult:
    """Outcome of image base resolution."""
    hypothesis: Optional[ImageBaseHypothesis] = None
    reason: str = ""

    @property
    def found(self) -> bool:
        return self.hypothesis is not None


# ---------------------------------------------------------------------------
# Platform
# ---------------------------------------------------------------------------

class Platform(BaseModel):
    """Target architecture the image is loaded for.

    Attributes:
        name: Platform identifier (``ppc32``, ``armv7``, ...).
        address_size: Pointer width in bytes.
        byte_order: Default byte order of the architecture.
    """
    name: str
    address_size: int = 4
    byte_order: ByteOrder = ByteOrder.BIG


KNOWN_PLATFORMS: dict[str, Platform] = {
    p.name: p
    for p in (
        Platform(name="ppc32", address_size=4, byte_order=ByteOrder.BIG),
        Platform(name="ppc32_le", address_size=4, byte_order=ByteOrder.LITTLE),
        Platform(name="armv7", address_size=4, byte_order=ByteOrder.LITTLE),
        Platform(name="armv7eb", address_size=4, byte_order=ByteOrder.BIG),
        Platform(name="thumb2", address_size=4, byte_order=ByteOrder.LITTLE),
        Platform(name="mips32", address_size=4, byte_order=ByteOrder.BIG),
        Platform(name="mipsel32", address_size=4, byte_order=ByteOrder.LITTLE),
        Platform(name="x86", address_size=4, byte_order=ByteOrder.LITTLE),
        Platform(name="sh4", address_size=4, byte_order=ByteOrder.LITTLE),
        Platform(name="aarch64", address_size=8, byte_order=ByteOrder.LITTLE),
    )
}


def get_platform(name: str) -> Optional[Platform]:
    """Look up a known platform by name (case-insensitive)."""
    return KNOWN_PLATFORMS.get(name.strip().lower())


def generic_platform(byte_order: ByteOrder) -> Platform:
    """32-bit placeholder platform used when none is configured."""
    return Platform(name="generic", address_size=4, byte_order=byte_order)


# ---------------------------------------------------------------------------
# Container records
# ---------------------------------------------------------------------------

class SectionInfo(BaseModel):
    """A synthesised section covering ``[start, end)``.

    Attributes:
        name: Section name (``.text``, ``.data``, ``.extern``, ``.symtab``).
        start: First virtual address.
        end: Virtual address one past the section.
        semantics: Access semantics.
        entropy: Shannon entropy of the backing bytes in [0.0, 8.0].
        type_guess: Coarse classification of the contents.
    """
    name: str
    start: int
    end: int
    semantics: SectionSemantics = SectionSemantics.READ_ONLY_CODE
    entropy: float = 0.0
    type_guess: str = ""

    @property
    def length(self) -> int:
        return self.end - self.start


class RecoveredSymbol(BaseModel):
    """A symbol defined on the image container."""
    kind: SymbolKind
    name: str
    address: int


class SegmentInfo(BaseModel):
    """A memory segment mapped from the file."""
    start: int
    length: int
    data_offset: int = 0
    data_length: int = 0
    flags: int = int(SegmentFlag.READABLE | SegmentFlag.WRITABLE | SegmentFlag.EXECUTABLE)

    @property
    def permissions(self) -> str:
        return "".join(
            ch if self.flags & bit else "-"
            for ch, bit in (
                ("r", SegmentFlag.READABLE),
                ("w", SegmentFlag.WRITABLE),
                ("x", SegmentFlag.EXECUTABLE),
            )
        )


class StructMember(BaseModel):
    """A fixed-width integer or pointer member of a structure."""
    name: str
    width: int = 4
    is_pointer: bool = False


class StructType(BaseModel):
    """A named structure type registered on the container."""
    name: str
    members: list[StructMember] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return sum(m.width for m in self.members)


class DataVariable(BaseModel):
    """An array of *count* elements of *type_name* placed at *address*."""
    address: int
    type_name: str
    element_size: int
    count: int = 1

    @property
    def size(self) -> int:
        return self.element_size * self.count


class LoadSettings(BaseModel):
    """Overridable load options for an image, with their help text.

    Attributes:
        platform: Platform the image would be loaded for.
        image_base: Computed (or default) image base.
        entry_point: Computed entry point.
        relocatable: ``False`` once a symbol table pins the base.
        image_base_description: Help text for the image base option.
    """
    platform: str = ""
    image_base: int = 0
    entry_point: int = 0
    relocatable: bool = True
    image_base_description: str = ""


# ---------------------------------------------------------------------------
# Aggregate result
# ---------------------------------------------------------------------------

class ImageInfo(BaseModel):
    """File-level metadata about an analysed image."""
    path: str = ""
    size: int = 0
    md5: str = ""
    sha256: str = ""
    loader: str = ""
    platform: str = ""
    address_size: int = 4
    byte_order: str = ""


class SymbolTableSummary(BaseModel):
    """Where the symbol table was found and what it looks like."""
    version: SymbolTableVersion
    byte_order: ByteOrder
    start_offset: int
    end_offset: int
    entry_size: int
    entry_count: int
    address: int = 0


class ImageAnalysisResult(BaseModel):
    """Complete recovery result for a single VxWorks image.

    Attributes:
        info: File-level metadata.
        state: Last loader state reached.
        success: Whether image initialisation completed.
        symbol_table: Location of the table, ``None`` if not found.
        image_base: Base address the image was loaded at.
        determined_image_base: Base computed from the table, if any.
        header_adjusted: Whether a header prefix was detected.
        header_size: Size of that header prefix.
        entry_point: Entry point queued for analysis.
        sections: Synthesised sections, ascending by start.
        segments: Mapped segments.
        symbols: Symbols defined on the container.
        functions: Function addresses queued for analysis.
        data_variables: Data variables defined on the container.
        bad_symbol_count: Number of entries with unusable names.
        metadata: Additional free-form data.
    """
    info: ImageInfo = Field(default_factory=ImageInfo)
    state: str = "uninitialized"
    success: bool = False
    symbol_table: Optional[SymbolTableSummary] = None
    image_base: int = 0
    determined_image_base: Optional[int] = None
    header_adjusted: bool = False
    header_size: int = 0
    entry_point: int = 0
    sections: list[SectionInfo] = Field(default_factory=list)
    segments: list[SegmentInfo] = Field(default_factory=list)
    symbols: list[RecoveredSymbol] = Field(default_factory=list)
    functions: list[int] = Field(default_factory=list)
    data_variables: list[DataVariable] = Field(default_factory=list)
    bad_symbol_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def symbol_counts(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in SymbolKind}
        for symbol in self.symbols:
            counts[symbol.kind.value] += 1
        return counts
