"""
Symbol Table Plausibility Heuristic
====================================

Decides whether a run of decoded entries was read with the right byte
order and entry layout.

A genuine table contains global function symbols whose values are code
addresses spread over the image.  When the run was decoded with the wrong
byte order, the decoded values of consecutive functions share their low
byte (it is really the high byte of the address, usually the same for the
whole image), so XOR-ing an even number of them clears the low byte.
"""

from __future__ import annotations

from functools import reduce
from operator import xor
from typing import Iterable

from sextant.core.models import SymbolEntry, SymbolTableVersion

DEFAULT_CHECK_COUNT: int = 10


def global_text_addresses(
    entries: Iterable[SymbolEntry],
    version: SymbolTableVersion,
    limit: int | None = None,
) -> list[int]:
    """Collect ``value_address`` of global text entries in iteration order."""
    types = version.symbol_types
    addresses: list[int] = []
    for entry in entries:
        sym_type = types.from_code(entry.type_code)
        if sym_type is None or not sym_type.is_global_text:
            continue
        addresses.append(entry.value_address)
        if limit is not None and len(addresses) >= limit:
            break
    return addresses


def function_addresses_are_valid(
    entries: Iterable[SymbolEntry],
    version: SymbolTableVersion,
    check_count: int = DEFAULT_CHECK_COUNT,
) -> bool:
    """Accept a run when its first global function addresses look sane.

    Takes the first *check_count* global-text entries in the order given
    (the scanner passes them highest offset first) and accepts iff the
    low byte of their XOR is non-zero.  Fewer than *check_count* such
    entries means rejection.
    """
    addresses = global_text_addresses(entries, version, limit=check_count)
    if len(addresses) < check_count:
        return False
    return (reduce(xor, addresses, 0) & 0xFF) != 0
