"""
Sextant Analyzers
==================

Heuristics applied on top of a decoded symbol table: the byte-order
plausibility check, image base inference and section synthesis.
"""

from sextant.analyzers.heuristics import function_addresses_are_valid
from sextant.analyzers.image_base import ImageBaseResolver, find_sys_init
from sextant.analyzers.sections import SectionSynthesizer

__all__ = [
    "ImageBaseResolver",
    "SectionSynthesizer",
    "find_sys_init",
    "function_addresses_are_valid",
]
