"""
Image Base Resolver
====================

Infers the address a headerless VxWorks image was linked to run at.

The lowest global function address in the symbol table is a good first
guess: the image usually begins with the first function.  Some images
carry a small header in front of the code instead.  In that case the
first word of the file is the header size, and the guess is shifted down
by that amount when the shifted base makes ``sysInit`` (the boot entry
point) resolve through its name pointer.
"""

from __future__ import annotations

from typing import Iterable, Optional

from shared.config import ScannerConfig
from shared.logger import SextantLogger

from sextant.analyzers.heuristics import global_text_addresses
from sextant.core.models import (
    ImageBaseHypothesis,
    ImageBaseResult,
    SymbolEntry,
    SymbolTable,
)
from sextant.core.reader import BinaryReader

SYS_INIT_NAMES: frozenset[str] = frozenset({"sysInit", "_sysInit"})


def find_sys_init(
    reader: BinaryReader,
    entries: Iterable[SymbolEntry],
    image_base: int,
    max_name_length: int = 128,
) -> Optional[SymbolEntry]:
    """Return the ``sysInit``/``_sysInit`` entry, resolving names at *image_base*.

    Each entry's name is read at ``name_address - image_base``; names that
    fall outside the file simply do not match.
    """
    for entry in entries:
        reader.seek(entry.name_address - image_base)
        if reader.read_cstring(max_name_length) in SYS_INIT_NAMES:
            return entry
    return None


class ImageBaseResolver:
    """Computes an :class:`~sextant.core.models.ImageBaseHypothesis` for a table.

    Args:
        config: Scanner tunables (header size limit, name length).
        logger: Logger instance.  A new one is created if not provided.
    """

    def __init__(
        self,
        config: ScannerConfig | None = None,
        logger: SextantLogger | None = None,
    ) -> None:
        self._config = config or ScannerConfig()
        self._logger = logger or SextantLogger("image_base")

    def resolve(self, reader: BinaryReader, table: SymbolTable) -> ImageBaseResult:
        """Derive the image base from *table*.

        The reader must already be set to the table's byte order; the
        header-size word is read in that order.
        """
        addresses = global_text_addresses(table.entries, table.version)
        if not addresses:
            return ImageBaseResult(reason="symbol table has no global function symbols")

        candidate = min(addresses)
        self._logger.debug(f"Lowest global function address: 0x{candidate:x}")
        return ImageBaseResult(
            hypothesis=self._adjust_for_header(reader, table, candidate),
            reason="lowest global function address",
        )

    def _adjust_for_header(
        self,
        reader: BinaryReader,
        table: SymbolTable,
        candidate: int,
    ) -> ImageBaseHypothesis:
        reader.seek(0)
        header_size = reader.try_read_u32()
        if header_size is None:
            self._logger.warning("Image too small to hold a header size word")
            return ImageBaseHypothesis(candidate=candidate)

        if not 0 < header_size <= self._config.max_header_size:
            return ImageBaseHypothesis(candidate=candidate)

        adjusted = candidate - header_size
        sys_init = find_sys_init(
            reader, table.entries, adjusted, self._config.max_symbol_name_length
        )
        if sys_init is None:
            return ImageBaseHypothesis(candidate=candidate)

        self._logger.info(
            f"Detected 0x{header_size:x}-byte image header; "
            f"adjusting image base 0x{candidate:x} -> 0x{adjusted:x}"
        )
        return ImageBaseHypothesis(
            candidate=adjusted, header_adjusted=True, header_size=header_size
        )
