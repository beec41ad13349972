"""
Sextant Core Module
====================

Data models, the byte reader and the image container.  The loader,
registry and engine live in their own modules
(:mod:`sextant.core.loader`, :mod:`sextant.core.registry`,
:mod:`sextant.core.engine`).
"""

from sextant.core.container import FirmwareImage, ImageContainer
from sextant.core.models import (
    ByteOrder,
    ImageAnalysisResult,
    SectionInfo,
    SectionSemantics,
    SymbolEntry,
    SymbolKind,
    SymbolTable,
    SymbolTableVersion,
    VxWorks5SymbolType,
    VxWorks6SymbolType,
)
from sextant.core.reader import BinaryReader

__all__ = [
    "BinaryReader",
    "ByteOrder",
    "FirmwareImage",
    "ImageAnalysisResult",
    "ImageContainer",
    "SectionInfo",
    "SectionSemantics",
    "SymbolEntry",
    "SymbolKind",
    "SymbolTable",
    "SymbolTableVersion",
    "VxWorks5SymbolType",
    "VxWorks6SymbolType",
]
