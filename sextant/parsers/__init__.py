"""
Sextant Parsers
================

Symbol table location and entry decoding for raw VxWorks images.
"""

from sextant.parsers.symtab import (
    SymbolTableScanner,
    candidate_mask,
    try_read_symbol_entry,
)

__all__ = [
    "SymbolTableScanner",
    "candidate_mask",
    "try_read_symbol_entry",
]
