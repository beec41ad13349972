"""Tests for the byte-order plausibility heuristic."""

from __future__ import annotations

from sextant.analyzers.heuristics import (
    DEFAULT_CHECK_COUNT,
    function_addresses_are_valid,
    global_text_addresses,
)
from sextant.core.models import SymbolEntry, SymbolTableVersion, VxWorks5SymbolType


def _entry(value: int, code: int = int(VxWorks5SymbolType.GLOBAL_TEXT), offset: int = 0) -> SymbolEntry:
    return SymbolEntry(name_address=0x1000 + offset, value_address=value, flags=code << 8, raw_offset=offset)


def test_collects_only_global_text_in_order():
    entries = [
        _entry(0x100),
        _entry(0x200, int(VxWorks5SymbolType.GLOBAL_DATA)),
        _entry(0x300, int(VxWorks5SymbolType.LOCAL_TEXT)),
        _entry(0x400),
    ]
    assert global_text_addresses(entries, SymbolTableVersion.V5) == [0x100, 0x400]


def test_collection_limit():
    entries = [_entry(0x100 * i) for i in range(20)]
    assert len(global_text_addresses(entries, SymbolTableVersion.V5, limit=5)) == 5


def test_accepts_addresses_with_varied_low_bytes():
    entries = [_entry(0x80010000 + 0x24 * i) for i in range(DEFAULT_CHECK_COUNT)]
    assert function_addresses_are_valid(entries, SymbolTableVersion.V5)


def test_rejects_addresses_sharing_low_byte():
    # Ten addresses with the same low byte cancel out
    entries = [_entry(0x00010080 + (i << 24)) for i in range(DEFAULT_CHECK_COUNT)]
    assert not function_addresses_are_valid(entries, SymbolTableVersion.V5)


def test_rejects_too_few_functions():
    entries = [_entry(0x10001 + i) for i in range(DEFAULT_CHECK_COUNT - 1)]
    entries += [_entry(0x20000, int(VxWorks5SymbolType.GLOBAL_DATA))] * 5
    assert not function_addresses_are_valid(entries, SymbolTableVersion.V5)


def test_only_first_functions_are_checked():
    good = [_entry(0x10000 + 0x24 * i) for i in range(DEFAULT_CHECK_COUNT)]
    bad = [_entry(0x00000100 * (i + 1)) for i in range(DEFAULT_CHECK_COUNT)]
    assert function_addresses_are_valid(good + bad, SymbolTableVersion.V5)
    assert not function_addresses_are_valid(bad + good, SymbolTableVersion.V5)


def test_check_count_is_configurable():
    entries = [_entry(0x10001), _entry(0x10002)]
    assert function_addresses_are_valid(entries, SymbolTableVersion.V5, check_count=2)
    assert not function_addresses_are_valid(entries[:1], SymbolTableVersion.V5, check_count=2)


def test_uses_version_specific_codes():
    # 0x05 is global text on both releases
    entries = [_entry(0x10001 + 0x10 * i) for i in range(DEFAULT_CHECK_COUNT)]
    assert function_addresses_are_valid(entries, SymbolTableVersion.V6)
