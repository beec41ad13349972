"""
Section Synthesizer
====================

Builds a section layout for an image that has none.

Recovered symbols are bucketed by kind (functions into ``.text``, data
into ``.data``, import addresses into ``.extern``) and the symbol table
itself into ``.symtab``.  Each bucket's lowest address becomes a section
start.  The sections are then laid end to end from the top of the image
downward: the highest one runs to the end of the image and every other
one runs up to the start of the section above it.  The lowest section is
stretched down to the image base so the layout covers the whole image.

Per-section byte entropy is attached for reporting.
"""

from __future__ import annotations

from typing import Iterable

from shared.logger import SextantLogger
from shared.math_utils import classify_entropy, shannon_entropy

from sextant.core.models import (
    SectionInfo,
    SectionSemantics,
    SymbolKind,
    SymbolTable,
)

SECTION_SEMANTICS: dict[str, SectionSemantics] = {
    ".text": SectionSemantics.READ_ONLY_CODE,
    ".data": SectionSemantics.READ_WRITE_DATA,
    ".extern": SectionSemantics.EXTERNAL,
    ".symtab": SectionSemantics.READ_ONLY_DATA,
}

_KIND_SECTIONS: dict[SymbolKind, str] = {
    SymbolKind.FUNCTION: ".text",
    SymbolKind.DATA: ".data",
    SymbolKind.IMPORT_ADDRESS: ".extern",
}


class SectionSynthesizer:
    """Derives ``.text``/``.data``/``.extern``/``.symtab`` from recovered symbols.

    Usage::

        synth = SectionSynthesizer()
        sections = synth.synthesize(symbols, table, image_base, len(data))
    """

    def __init__(self, logger: SextantLogger | None = None) -> None:
        self._logger = logger or SextantLogger("sections")

    def synthesize(
        self,
        symbols: Iterable[tuple[SymbolKind, int]],
        table: SymbolTable | None,
        image_base: int,
        image_length: int,
    ) -> list[SectionInfo]:
        """Bucket *symbols* and lay the buckets out over the image.

        Args:
            symbols: ``(kind, address)`` of every emitted, file-backed symbol.
            table: The accepted symbol table, or ``None``.
            image_base: Base address the image is loaded at.
            image_length: Size of the image in bytes.

        Returns:
            Sections in ascending start order.  Empty when there is nothing
            to bucket.
        """
        starts: dict[str, int] = {}
        for kind, address in symbols:
            name = _KIND_SECTIONS[kind]
            starts[name] = min(address, starts.get(name, address))

        if table is not None and len(table):
            starts[".symtab"] = image_base + table.start_offset

        return self.layout(
            starts,
            image_base,
            image_length,
        )

    def layout(
        self,
        starts: dict[str, int],
        image_base: int,
        image_length: int,
    ) -> list[SectionInfo]:
        """Lay out sections given their start addresses.

        Sections are visited in descending start order; the first ends at
        ``image_base + image_length`` and each later one ends where the
        previously visited section starts.  Zero-length sections (two
        buckets with the same start) are dropped.
        """
        if not starts:
            return []

        image_end = image_base + image_length
        ordered = sorted(starts.items(), key=lambda item: item[1], reverse=True)

        laid_out: list[SectionInfo] = []
        end = image_end
        for name, start in ordered:
            if start >= end:
                self._logger.debug(f"Dropping empty section {name} at 0x{start:x}")
                continue
            laid_out.append(
                SectionInfo(
                    name=name,
                    start=start,
                    end=end,
                    semantics=SECTION_SEMANTICS[name],
                )
            )
            end = start

        if laid_out and laid_out[-1].start > image_base:
            lowest = laid_out[-1]
            laid_out[-1] = lowest.model_copy(update={"start": image_base})

        laid_out.reverse()
        return laid_out

    @staticmethod
    def default_layout(image_base: int, image_length: int) -> list[SectionInfo]:
        """A single ``.text`` section over the whole image."""
        return [
            SectionInfo(
                name=".text",
                start=image_base,
                end=image_base + image_length,
                semantics=SectionSemantics.READ_ONLY_CODE,
            )
        ]

    @staticmethod
    def with_entropy(
        sections: Iterable[SectionInfo],
        data: bytes,
        image_base: int,
    ) -> list[SectionInfo]:
        """Return copies of *sections* annotated with byte entropy."""
        annotated: list[SectionInfo] = []
        for section in sections:
            lo = max(section.start - image_base, 0)
            hi = max(section.end - image_base, lo)
            entropy = shannon_entropy(data[lo:hi])
            annotated.append(
                section.model_copy(
                    update={
                        "entropy": round(entropy, 4),
                        "type_guess": classify_entropy(entropy),
                    }
                )
            )
        return annotated
