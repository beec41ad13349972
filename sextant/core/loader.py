"""
VxWorks Image Loader
=====================

Turns a raw VxWorks memory image into a populated
:class:`~sextant.core.container.ImageContainer`.

:class:`VxWorksImage` runs initialisation as a linear sequence of steps::

    UNINITIALIZED -> SCANNING -> TABLE_FOUND | TABLE_NOT_FOUND
                  -> IMAGE_BASE_RESOLVED
                  -> SYMBOLS_EMITTED | SYMBOL_PROCESSING_ABORTED
                  -> SECTIONS_EMITTED -> DONE

Any unexpected exception ends in ``FAILED``.  Not finding a symbol table
is a normal outcome: the image still gets a segment, a default ``.text``
section and an entry point.

:class:`VxWorksLoader` is the stateless loader type registered with
:class:`~sextant.core.registry.LoaderRegistry`: it recognises candidate
data and creates images.
"""

from __future__ import annotations

import enum
from typing import Optional

from shared.config import SextantConfig
from shared.logger import SextantLogger

from sextant.analyzers.image_base import ImageBaseResolver, find_sys_init
from sextant.analyzers.sections import SectionSynthesizer
from sextant.core.container import FirmwareImage, ImageContainer
from sextant.core.models import (
    ByteOrder,
    LoadSettings,
    Platform,
    SectionInfo,
    SegmentFlag,
    StructMember,
    StructType,
    SymbolKind,
    SymbolTable,
    SymbolTableVersion,
    generic_platform,
    get_platform,
)
from sextant.core.reader import BinaryReader
from sextant.parsers.symtab import SymbolTableScanner

VXWORKS_SIGNATURE: bytes = b"VxWorks"
SYMBOL_TABLE_SYMBOL: str = "VxWorksSymbolTable"
SYMBOL_ENTRY_TYPE: str = "VxWorksSymbolEntry"

NOT_RELOCATABLE_MESSAGE: str = (
    "Base address determined from discovered VxWorks symbol table. "
    "This image is not relocatable.\n"
    "   Overriding this value will degrade analysis and is NOT recommended."
)
TABLE_NOT_FOUND_MESSAGE: str = (
    "VxWorks symbol table was not found. Set the base address manually."
)


class LoaderState(str, enum.Enum):
    """Progress of :meth:`VxWorksImage.init`."""
    UNINITIALIZED = "uninitialized"
    SCANNING = "scanning"
    TABLE_FOUND = "table_found"
    TABLE_NOT_FOUND = "table_not_found"
    IMAGE_BASE_RESOLVED = "image_base_resolved"
    SYMBOLS_EMITTED = "symbols_emitted"
    SYMBOL_PROCESSING_ABORTED = "symbol_processing_aborted"
    SECTIONS_EMITTED = "sections_emitted"
    DONE = "done"
    FAILED = "failed"


def symbol_entry_struct(version: SymbolTableVersion) -> StructType:
    """The in-memory layout of one symbol entry as a structure type."""
    if version is SymbolTableVersion.V5:
        members = [
            StructMember(name="unknown", width=4),
            StructMember(name="name", width=4, is_pointer=True),
            StructMember(name="address", width=4, is_pointer=True),
            StructMember(name="flags", width=4),
        ]
    else:
        members = [
            StructMember(name="unknown1", width=4),
            StructMember(name="name", width=4, is_pointer=True),
            StructMember(name="address", width=4, is_pointer=True),
            StructMember(name="unknown2", width=4),
            StructMember(name="flags", width=4),
        ]
    return StructType(name=SYMBOL_ENTRY_TYPE, members=members)


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------

class VxWorksImage:
    """One VxWorks image and the state of its initialisation.

    Usage::

        image = VxWorksImage(data, FirmwareImage(data), config)
        if image.init():
            print(hex(image.image_base), image.state)

    Args:
        data: Raw image bytes.
        container: Receiver of recovered symbols and sections.
        config: Scanner tunables and load overrides.
        logger: Logger instance.  A new one is created if not provided.
        parse_only: Stop after computing the load settings; the container
            is left untouched.
    """

    def __init__(
        self,
        data: bytes,
        container: ImageContainer | None = None,
        config: SextantConfig | None = None,
        logger: SextantLogger | None = None,
        parse_only: bool = False,
    ) -> None:
        self._data = bytes(data)
        self._container: ImageContainer = (
            container if container is not None else FirmwareImage(self._data)
        )
        self._config = config or SextantConfig()
        self._logger = logger or SextantLogger("loader.vxworks")
        self._parse_only = parse_only

        self._scanner = SymbolTableScanner(self._config.scanner, self._logger.child("scanner"))
        self._base_resolver = ImageBaseResolver(self._config.scanner, self._logger.child("image_base"))
        self._synthesizer = SectionSynthesizer(self._logger.child("sections"))

        self._state = LoaderState.UNINITIALIZED
        self._table: Optional[SymbolTable] = None
        self._platform: Optional[Platform] = None
        self._image_base = 0
        self._determined_image_base = 0
        self._header_adjusted = False
        self._header_size = 0
        self._entry_point = 0
        self._sys_init_found = False
        self._symbols_applied = False
        self._bad_symbol_count = 0
        self._symbol_processing_aborted = False
        self._sections: list[SectionInfo] = []

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def container(self) -> ImageContainer:
        return self._container

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def table(self) -> Optional[SymbolTable]:
        return self._table

    @property
    def has_symbol_table(self) -> bool:
        return self._table is not None

    @property
    def platform(self) -> Optional[Platform]:
        return self._platform

    @property
    def image_base(self) -> int:
        return self._image_base

    @property
    def determined_image_base(self) -> int:
        """The base computed from the image, before any user override."""
        return self._determined_image_base

    @property
    def header_adjusted(self) -> bool:
        return self._header_adjusted

    @property
    def header_size(self) -> int:
        return self._header_size

    @property
    def entry_point(self) -> int:
        return self._entry_point

    @property
    def sys_init_found(self) -> bool:
        return self._sys_init_found

    @property
    def relocatable(self) -> bool:
        """An image is relocatable until a symbol table pins its base."""
        return self._table is None

    @property
    def symbols_applied(self) -> bool:
        return self._symbols_applied

    @property
    def bad_symbol_count(self) -> int:
        return self._bad_symbol_count

    @property
    def symbol_processing_aborted(self) -> bool:
        """Whether too many bad names stopped symbol emission early."""
        return self._symbol_processing_aborted

    @property
    def sections(self) -> list[SectionInfo]:
        return list(self._sections)

    # ------------------------------------------------------------------ #
    #  Initialisation
    # ------------------------------------------------------------------ #

    def init(self) -> bool:
        """Recover the table, base and layout and publish them.

        Returns:
            ``True`` on success.  Failures are logged, never raised.
        """
        if self._state is not LoaderState.UNINITIALIZED:
            self._logger.error(f"Image already initialised (state: {self._state.value})")
            return False

        try:
            return self._run()
        except Exception as exc:
            self._state = LoaderState.FAILED
            self._logger.exception(f"Failed to load VxWorks image: {exc}")
            return False

    def _run(self) -> bool:
        loader_config = self._config.loader
        reader = BinaryReader(self._data)
        default_base = loader_config.image_base or 0
        self._image_base = default_base
        self._determined_image_base = default_base

        self._state = LoaderState.SCANNING
        result = self._scanner.find(reader)
        if result.found:
            self._table = result.table
            self._state = LoaderState.TABLE_FOUND
            self._resolve_image_base(reader, result.table)
        else:
            self._state = LoaderState.TABLE_NOT_FOUND
            self._logger.warning("Could not find VxWorks symbol table")
            self._entry_point = self._image_base

        self._state = LoaderState.IMAGE_BASE_RESOLVED

        platform = self._select_platform()
        if platform is None:
            self._state = LoaderState.FAILED
            return False
        self._platform = platform

        if loader_config.image_base is not None:
            self._image_base = loader_config.image_base
        self._entry_point = self._final_entry_point()

        if self._parse_only:
            self._state = LoaderState.DONE
            return True

        self._container.add_auto_segment(
            self._image_base,
            len(self._data),
            0,
            len(self._data),
            SegmentFlag.READABLE | SegmentFlag.WRITABLE | SegmentFlag.EXECUTABLE,
        )

        if self._table is not None:
            if self._image_base != self._determined_image_base:
                self._logger.warning(
                    f"Image base 0x{self._image_base:x} differs from the base recovered "
                    f"from the symbol table (0x{self._determined_image_base:x}); "
                    "symbols will not be applied"
                )
            else:
                self._process_symbol_table(reader, self._table, platform)
            self._define_symbol_table_overlay()

        self._add_sections()
        self._state = LoaderState.SECTIONS_EMITTED

        self._container.add_entry_point_for_analysis(self._platform, self._entry_point)
        self._state = LoaderState.DONE
        return True

    # ------------------------------------------------------------------ #
    #  Steps
    # ------------------------------------------------------------------ #

    def _resolve_image_base(self, reader: BinaryReader, table: SymbolTable) -> None:
        reader.byte_order = table.byte_order

        base_result = self._base_resolver.resolve(reader, table)
        if base_result.found and base_result.hypothesis is not None:
            hypothesis = base_result.hypothesis
            self._determined_image_base = hypothesis.candidate
            self._image_base = hypothesis.candidate
            self._header_adjusted = hypothesis.header_adjusted
            self._header_size = hypothesis.header_size
            self._logger.info(f"Determined image base: 0x{hypothesis.candidate:x}")
        else:
            self._logger.warning(
                f"Could not determine image base ({base_result.reason}); "
                f"using 0x{self._image_base:x}"
            )

        sys_init = find_sys_init(
            reader,
            table.entries,
            self._determined_image_base,
            self._config.scanner.max_symbol_name_length,
        )
        if sys_init is not None:
            self._sys_init_found = True
            self._entry_point = sys_init.value_address
            self._logger.info(f"Found sysInit at 0x{self._entry_point:x}")
        else:
            self._entry_point = self._determined_image_base

    def _select_platform(self) -> Optional[Platform]:
        name = self._config.loader.platform
        if name is None:
            byte_order = self._table.byte_order if self._table is not None else ByteOrder.BIG
            return generic_platform(byte_order)

        platform = get_platform(name)
        if platform is None:
            self._logger.error(f"Failed to get platform: {name}")
        return platform

    def _final_entry_point(self) -> int:
        offset = self._config.loader.entry_point_offset
        if offset is not None:
            return self._image_base + offset
        # The computed entry point moves with a user-supplied base
        return self._entry_point - self._determined_image_base + self._image_base

    def _process_symbol_table(
        self,
        reader: BinaryReader,
        table: SymbolTable,
        platform: Platform,
    ) -> None:
        max_bad = self._config.scanner.max_bad_symbols
        max_name = self._config.scanner.max_symbol_name_length
        image_base = self._image_base

        emitted: list[tuple[SymbolKind, int]] = []
        bad_names = 0
        aborted = False

        with self._logger.operation("process_symbols"):
            for entry in table.entries:
                sym_type = table.symbol_type(entry)
                if sym_type is None:
                    self._logger.warning(
                        f"Unknown symbol type 0x{entry.type_code:x} at 0x{entry.raw_offset:x}"
                    )
                    continue

                reader.seek(entry.name_address - image_base)
                name = reader.read_cstring(max_name)
                if not name or not name.isascii():
                    bad_names += 1
                    self._logger.warning(
                        f"Symbol entry name for 0x{entry.value_address:x} is invalid"
                    )
                    if bad_names >= max_bad:
                        self._logger.warning(
                            f"{max_bad} or more symbols contain invalid names; "
                            "this may not be a symbol table. Aborting symbol processing"
                        )
                        aborted = True
                        break
                    continue

                address = entry.value_address
                if not reader.is_offset_backed(address - image_base):
                    continue

                kind = sym_type.kind
                if kind is SymbolKind.FUNCTION:
                    self._container.add_function_for_analysis(platform, address)
                self._container.define_auto_symbol(kind, name, address)
                emitted.append((kind, address))

        self._bad_symbol_count = bad_names
        self._symbol_processing_aborted = aborted
        self._symbols_applied = True
        self._state = (
            LoaderState.SYMBOL_PROCESSING_ABORTED if aborted else LoaderState.SYMBOLS_EMITTED
        )
        self._logger.info(f"Defined {len(emitted)} symbols from the symbol table")
        self._sections = self._synthesizer.synthesize(
            emitted, table, image_base, len(self._data)
        )

    def _define_symbol_table_overlay(self) -> None:
        table = self._table
        if table is None:
            self._logger.error("VxWorks version is not set; cannot define symbol table type")
            return

        type_name = self._container.define_type(symbol_entry_struct(table.version))
        address = self._image_base + table.start_offset
        self._container.define_data_variable(address, type_name, len(table))
        self._container.define_auto_symbol(SymbolKind.DATA, SYMBOL_TABLE_SYMBOL, address)

    def _add_sections(self) -> None:
        if not self._sections:
            self._logger.warning("Creating default .text section over the whole image")
            self._sections = SectionSynthesizer.default_layout(self._image_base, len(self._data))
        else:
            self._logger.info("Creating sections from VxWorks symbol table entry ranges")

        for section in self._sections:
            self._logger.debug(
                f"Section {section.name}: 0x{section.start:x}-0x{section.end:x}"
            )
            self._container.add_auto_section(
                section.name, section.start, section.length, section.semantics
            )

    # ------------------------------------------------------------------ #
    #  Settings
    # ------------------------------------------------------------------ #

    def load_settings(self) -> LoadSettings:
        """Overridable load options and their help text."""
        return LoadSettings(
            platform=self._platform.name if self._platform is not None else "",
            image_base=self._image_base,
            entry_point=self._entry_point,
            relocatable=self.relocatable,
            image_base_description=(
                TABLE_NOT_FOUND_MESSAGE if self._table is None else NOT_RELOCATABLE_MESSAGE
            ),
        )


# ---------------------------------------------------------------------------
# Loader type
# ---------------------------------------------------------------------------

class VxWorksLoader:
    """Stateless loader type for VxWorks images.

    Args:
        config: Configuration handed to every image this loader creates.
        logger: Parent logger; images log through a child of it.
    """

    name: str = "VxWorks"
    description: str = "VxWorks RTOS memory image"

    def __init__(
        self,
        config: SextantConfig | None = None,
        logger: SextantLogger | None = None,
    ) -> None:
        self._config = config or SextantConfig()
        self._logger = logger or SextantLogger("loader")

    def is_type_valid_for_data(self, data: bytes) -> bool:
        """Whether *data* contains the ``VxWorks`` signature anywhere."""
        return VXWORKS_SIGNATURE in data

    def create(
        self,
        data: bytes,
        container: ImageContainer | None = None,
        parse_only: bool = False,
    ) -> VxWorksImage:
        return VxWorksImage(
            data,
            container,
            self._config,
            self._logger.child("vxworks"),
            parse_only=parse_only,
        )

    def parse(self, data: bytes) -> VxWorksImage:
        """Create and initialise a parse-only image (container left untouched)."""
        image = self.create(data, parse_only=True)
        image.init()
        return image

    def load_settings_for_data(self, data: bytes) -> Optional[LoadSettings]:
        """Compute load settings, or ``None`` if the image cannot be parsed."""
        image = self.parse(data)
        if image.state is not LoaderState.DONE:
            return None
        return image.load_settings()
