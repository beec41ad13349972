"""Tests for section synthesis from recovered symbols."""

from __future__ import annotations

from sextant.analyzers.sections import SECTION_SEMANTICS, SectionSynthesizer
from sextant.core.models import (
    ByteOrder,
    SectionInfo,
    SectionSemantics,
    SymbolEntry,
    SymbolKind,
    SymbolTable,
    SymbolTableVersion,
)

BASE = 0x10000
LENGTH = 0x10000


def _table(start_offset: int, count: int) -> SymbolTable:
    entries = tuple(
        SymbolEntry(name_address=0x1000 + i, value_address=0, flags=0x500, raw_offset=start_offset + 16 * i)
        for i in range(count)
    )
    return SymbolTable(SymbolTableVersion.V5, ByteOrder.BIG, start_offset, entries)


def _names(sections: list[SectionInfo]) -> list[str]:
    return [s.name for s in sections]


def test_buckets_laid_out_end_to_end(logger):
    symbols = [
        (SymbolKind.FUNCTION, BASE + 0x100),
        (SymbolKind.FUNCTION, BASE + 0x2000),
        (SymbolKind.DATA, BASE + 0x6000),
        (SymbolKind.DATA, BASE + 0x5000),
        (SymbolKind.IMPORT_ADDRESS, BASE + 0x8000),
    ]
    sections = SectionSynthesizer(logger).synthesize(symbols, _table(0xC000, 16), BASE, LENGTH)

    assert _names(sections) == [".text", ".data", ".extern", ".symtab"]
    assert [(s.start, s.end) for s in sections] == [
        (BASE, BASE + 0x5000),
        (BASE + 0x5000, BASE + 0x8000),
        (BASE + 0x8000, BASE + 0xC000),
        (BASE + 0xC000, BASE + LENGTH),
    ]
    assert [s.semantics for s in sections] == [
        SectionSemantics.READ_ONLY_CODE,
        SectionSemantics.READ_WRITE_DATA,
        SectionSemantics.EXTERNAL,
        SectionSemantics.READ_ONLY_DATA,
    ]


def test_sections_partition_the_image(logger):
    symbols = [
        (SymbolKind.DATA, BASE + 0x300),
        (SymbolKind.FUNCTION, BASE + 0x4000),
        (SymbolKind.IMPORT_ADDRESS, BASE + 0x9000),
    ]
    sections = SectionSynthesizer(logger).synthesize(symbols, None, BASE, LENGTH)

    assert sections[0].start == BASE
    assert sections[-1].end == BASE + LENGTH
    for lower, upper in zip(sections, sections[1:]):
        assert lower.end == upper.start
    assert sum(s.length for s in sections) == LENGTH


def test_layout_is_independent_of_symbol_order(logger):
    symbols = [
        (SymbolKind.FUNCTION, BASE + 0x1000),
        (SymbolKind.DATA, BASE + 0x3000),
        (SymbolKind.FUNCTION, BASE + 0x800),
    ]
    synth = SectionSynthesizer(logger)
    assert synth.synthesize(symbols, None, BASE, LENGTH) == synth.synthesize(
        list(reversed(symbols)), None, BASE, LENGTH
    )


def test_lowest_section_stretched_to_image_base(logger):
    symbols = [(SymbolKind.FUNCTION, BASE + 0x400), (SymbolKind.DATA, BASE + 0x800)]
    sections = SectionSynthesizer(logger).synthesize(symbols, None, BASE, LENGTH)
    assert sections[0].name == ".text"
    assert sections[0].start == BASE


def test_bucket_end_is_next_section_start(logger):
    symbols = [
        (SymbolKind.DATA, BASE + 0x9000),
        (SymbolKind.DATA, BASE + 0x5000),
        (SymbolKind.IMPORT_ADDRESS, BASE + 0x8000),
        (SymbolKind.FUNCTION, BASE + 0x100),
    ]
    sections = SectionSynthesizer(logger).synthesize(symbols, _table(0xC000, 4), BASE, LENGTH)

    data = next(s for s in sections if s.name == ".data")
    assert (data.start, data.end) == (BASE + 0x5000, BASE + 0x8000)
    assert sections[-1].start == BASE + 0xC000


def test_coinciding_starts_drop_one_section(logger):
    symbols = [(SymbolKind.FUNCTION, BASE + 0x1000), (SymbolKind.DATA, BASE + 0x1000)]
    sections = SectionSynthesizer(logger).synthesize(symbols, None, BASE, LENGTH)
    assert len(sections) == 1
    assert sections[0].start == BASE
    assert sections[0].end == BASE + LENGTH


def test_nothing_to_bucket(logger):
    assert SectionSynthesizer(logger).synthesize([], None, BASE, LENGTH) == []


def test_symbol_table_alone(logger):
    sections = SectionSynthesizer(logger).synthesize([], _table(0x8000, 4), BASE, LENGTH)
    assert _names(sections) == [".symtab"]
    assert (sections[0].start, sections[0].end) == (BASE, BASE + LENGTH)


def test_layout_from_explicit_starts(logger):
    sections = SectionSynthesizer(logger).layout(
        {".text": BASE + 0x10, ".data": BASE + 0x8000}, BASE, LENGTH
    )
    assert [(s.name, s.start, s.end) for s in sections] == [
        (".text", BASE, BASE + 0x8000),
        (".data", BASE + 0x8000, BASE + LENGTH),
    ]


def test_default_layout():
    (section,) = SectionSynthesizer.default_layout(BASE, LENGTH)
    assert section.name == ".text"
    assert (section.start, section.end) == (BASE, BASE + LENGTH)
    assert section.semantics is SectionSemantics.READ_ONLY_CODE


def test_every_section_name_has_semantics():
    assert set(SECTION_SEMANTICS) == {".text", ".data", ".extern", ".symtab"}


def test_entropy_annotation():
    data = bytes(0x100) + bytes(range(256)) * 4
    sections = [
        SectionInfo(name=".data", start=BASE, end=BASE + 0x100),
        SectionInfo(name=".text", start=BASE + 0x100, end=BASE + 0x500),
    ]
    annotated = SectionSynthesizer.with_entropy(sections, data, BASE)

    assert annotated[0].entropy == 0.0
    assert annotated[0].type_guess == "null/padding"
    assert annotated[1].entropy == 8.0
    assert annotated[1].type_guess == "compressed/encrypted"
    # Inputs are left untouched
    assert sections[1].entropy == 0.0
