"""
VxWorks Symbol Table Scanner
=============================

Locates the flat symbol table of a headerless VxWorks image.

The table sits near the end of the image, so the search walks backward
from the end of the file, one hypothesis at a time::

    (5.x, big-endian) -> (5.x, little-endian) -> (6.x, little-endian) -> (6.x, big-endian)

For each hypothesis a run of consecutive valid entries with distinct name
pointers is accumulated.  When the run breaks (an invalid or duplicate
entry), it is accepted if it holds more than ``min_valid_entries`` entries
and passes :func:`~sextant.analyzers.heuristics.function_addresses_are_valid`;
otherwise it is discarded and the walk resumes four bytes lower.  The
accepted run is then extended forward until the first invalid entry.

Per-offset validity is pre-computed for the whole image with NumPy
(:func:`candidate_mask`) so that the walk only visits offsets where an
entry can actually decode; :func:`try_read_symbol_entry` remains the
authority for every entry that ends up in a table.

References:
    - Wind River Systems. (1999). VxWorks Reference Manual 5.4, symLib.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from shared.config import ScannerConfig
from shared.logger import SextantLogger

from sextant.analyzers.heuristics import function_addresses_are_valid
from sextant.core.models import (
    ByteOrder,
    SymbolEntry,
    SymbolTable,
    SymbolTableResult,
    SymbolTableVersion,
)
from sextant.core.reader import BinaryReader


# ---------------------------------------------------------------------------
# Search order -- first qualifying hypothesis wins
# ---------------------------------------------------------------------------

SCAN_HYPOTHESES: tuple[tuple[SymbolTableVersion, ByteOrder], ...] = (
    (SymbolTableVersion.V5, ByteOrder.BIG),
    (SymbolTableVersion.V5, ByteOrder.LITTLE),
    (SymbolTableVersion.V6, ByteOrder.LITTLE),
    (SymbolTableVersion.V6, ByteOrder.BIG),
)


def align4(value: int) -> int:
    """Round *value* down to a multiple of four."""
    return value & ~3


# ---------------------------------------------------------------------------
# Entry validation
# ---------------------------------------------------------------------------

def try_read_symbol_entry(
    reader: BinaryReader,
    offset: int,
    version: SymbolTableVersion,
) -> Optional[SymbolEntry]:
    """Decode and validate the entry at *offset*.

    Name and value are read in the reader's current byte order, the flags
    word always big-endian.  The entry is rejected when any read runs past
    the buffer, the name pointer is zero, the type code is unknown for
    *version*, or (5.x only) the flags word is zero.
    """
    if offset < 0:
        return None

    reader.seek(offset + 4)
    name_address = reader.try_read_u32()
    value_address = reader.try_read_u32()
    if name_address is None or value_address is None:
        return None

    reader.seek(offset + version.flags_offset)
    flags = reader.try_read_u32_be()
    if flags is None:
        return None

    if name_address == 0:
        return None
    if version.symbol_types.from_code((flags >> 8) & 0xFF) is None:
        return None
    if version is SymbolTableVersion.V5 and flags == 0:
        return None

    return SymbolEntry(
        name_address=name_address,
        value_address=value_address,
        flags=flags,
        raw_offset=offset,
    )


def candidate_mask(
    data: bytes | memoryview,
    version: SymbolTableVersion,
    byte_order: ByteOrder,
) -> NDArray[np.bool_]:
    """Vectorised form of :func:`try_read_symbol_entry` over aligned offsets.

    Element *i* is ``True`` iff an entry of *version* starting at offset
    ``4 * i`` fits in *data* and passes validation in *byte_order*.

    Returns:
        Boolean array with one element per 4-aligned offset at which a
        whole entry fits.
    """
    entry_size = version.entry_size
    if len(data) < entry_size:
        return np.zeros(0, dtype=np.bool_)

    count = (len(data) - entry_size) // 4 + 1
    word_count = len(data) // 4
    words = np.frombuffer(data, dtype=byte_order.word_dtype, count=word_count)
    words_be = np.frombuffer(data, dtype=">u4", count=word_count)

    flags_word = version.flags_offset // 4
    names = words[1:1 + count]
    flags = words_be[flags_word:flags_word + count]

    known = np.zeros(256, dtype=np.bool_)
    known[version.symbol_types.codes()] = True

    mask = (names != 0) & known[(flags >> 8) & 0xFF]
    if version is SymbolTableVersion.V5:
        mask &= flags != 0
    return mask


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

class SymbolTableScanner:
    """Finds the symbol table by trying each layout hypothesis in turn.

    Usage::

        scanner = SymbolTableScanner(config.scanner)
        result = scanner.find(BinaryReader(data))
        if result.found:
            print(len(result.table), result.table.start_offset)

    Args:
        config: Scanner tunables.  Defaults match real VxWorks images.
        logger: Logger instance.  A new one is created if not provided.
    """

    def __init__(
        self,
        config: ScannerConfig | None = None,
        logger: SextantLogger | None = None,
    ) -> None:
        self._config = config or ScannerConfig()
        self._logger = logger or SextantLogger("scanner")

    def find(self, reader: BinaryReader) -> SymbolTableResult:
        """Try every hypothesis in order and return the first accepted table.

        The reader's byte order is left set to the accepted table's order
        (or to that of the last hypothesis tried when nothing is found).
        """
        tried: list[tuple[SymbolTableVersion, ByteOrder]] = []
        with self._logger.timed("symbol table scan"):
            for version, byte_order in SCAN_HYPOTHESES:
                tried.append((version, byte_order))
                with self._logger.operation(f"scan_v{version.value}_{byte_order.value}"):
                    table = self.scan_hypothesis(reader, version, byte_order)
                if table is not None:
                    self._logger.info(
                        f"Found {version.label} symbol table ({byte_order.value}-endian) "
                        f"at 0x{table.start_offset:x} with {len(table)} entries"
                    )
                    return SymbolTableResult(table=table, hypotheses_tried=tuple(tried))

        self._logger.debug("No hypothesis produced an acceptable symbol table")
        return SymbolTableResult(table=None, hypotheses_tried=tuple(tried))

    def scan_hypothesis(
        self,
        reader: BinaryReader,
        version: SymbolTableVersion,
        byte_order: ByteOrder,
    ) -> Optional[SymbolTable]:
        """Backward search for a qualifying run under one hypothesis.

        Returns:
            The accepted, forward-extended table, or ``None``.
        """
        reader.byte_order = byte_order
        length = reader.length
        entry_size = version.entry_size
        region = self._config.max_region_size

        search_pos = align4(length - entry_size)
        lower_bound = align4(length - region) if length > region else 0

        # Mask and candidate indices are relative to the lower bound
        first_word = lower_bound // 4
        mask = candidate_mask(memoryview(reader.data)[lower_bound:], version, byte_order)
        candidates = np.flatnonzero(mask)

        run: list[SymbolEntry] = []
        seen_names: set[int] = set()

        while search_pos >= lower_bound:
            index = search_pos // 4 - first_word
            if index < len(mask) and mask[index]:
                entry = try_read_symbol_entry(reader, search_pos, version)
                if entry is not None and entry.name_address not in seen_names:
                    run.append(entry)
                    seen_names.add(entry.name_address)
                    search_pos -= entry_size
                    continue

            if run:
                if self._qualifies(run, version):
                    return self._accept(reader, run, version, byte_order)
                self._logger.debug(
                    f"Discarding run of {len(run)} entries ending at 0x{search_pos:x}"
                )
                run = []
                seen_names = set()

            # Resume at the next offset below that could hold an entry
            below = int(np.searchsorted(candidates, index, side="left")) - 1
            if below < 0:
                break
            search_pos = (int(candidates[below]) + first_word) * 4

        if run and self._qualifies(run, version):
            return self._accept(reader, run, version, byte_order)
        return None

    def extend_forward(
        self,
        reader: BinaryReader,
        start_offset: int,
        entries: list[SymbolEntry],
        version: SymbolTableVersion,
    ) -> list[SymbolEntry]:
        """Append entries that follow the run until the first invalid one.

        The backward walk stops at the lowest offset of the run; the entries
        found first (at the highest offsets) are the ones the heuristic
        judged.  Anything valid past the run's top still belongs to the
        table.
        """
        extended = list(entries)
        offset = start_offset + len(extended) * version.entry_size
        while True:
            entry = try_read_symbol_entry(reader, offset, version)
            if entry is None:
                break
            extended.append(entry)
            offset += version.entry_size
        return extended

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    def _qualifies(self, run: list[SymbolEntry], version: SymbolTableVersion) -> bool:
        if len(run) <= self._config.min_valid_entries:
            return False
        return function_addresses_are_valid(
            run, version, self._config.endianness_check_count
        )

    def _accept(
        self,
        reader: BinaryReader,
        run: list[SymbolEntry],
        version: SymbolTableVersion,
        byte_order: ByteOrder,
    ) -> SymbolTable:
        ascending = sorted(run, key=lambda e: e.raw_offset)
        start_offset = ascending[0].raw_offset
        entries = self.extend_forward(reader, start_offset, ascending, version)
        self._logger.debug(
            f"Accepted run of {len(run)} entries; "
            f"{len(entries) - len(run)} more found past its end"
        )
        return SymbolTable(
            version=version,
            byte_order=byte_order,
            start_offset=start_offset,
            entries=tuple(entries),
        )
