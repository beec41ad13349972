"""
Image Container
================

The capability interface through which the loader publishes what it
recovers.  A container receives symbols, sections, a segment, type and
data variable definitions, and the addresses to queue for analysis.

:class:`FirmwareImage` is the in-process implementation: it records every
call so the result can be rendered, exported or inspected by tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from sextant.core.models import (
    DataVariable,
    Platform,
    RecoveredSymbol,
    SectionInfo,
    SectionSemantics,
    SegmentInfo,
    StructType,
    SymbolKind,
)


class ImageContainer(ABC):
    """Receiver of everything a loader recovers from an image."""

    @abstractmethod
    def define_auto_symbol(self, kind: SymbolKind, name: str, address: int) -> None:
        """Define a symbol *name* of *kind* at *address*."""

    @abstractmethod
    def add_auto_section(
        self,
        name: str,
        start: int,
        length: int,
        semantics: SectionSemantics,
    ) -> None:
        """Add a section covering ``[start, start + length)``."""

    @abstractmethod
    def add_auto_segment(
        self,
        start: int,
        length: int,
        data_offset: int,
        data_length: int,
        flags: int,
    ) -> None:
        """Map ``data_length`` file bytes from ``data_offset`` at *start*."""

    @abstractmethod
    def define_type(self, struct: StructType) -> str:
        """Register *struct* and return the name it is registered under."""

    @abstractmethod
    def define_data_variable(self, address: int, type_name: str, count: int = 1) -> None:
        """Place an array of *count* elements of *type_name* at *address*."""

    @abstractmethod
    def add_function_for_analysis(self, platform: Platform, address: int) -> None:
        """Queue *address* as the start of a function."""

    @abstractmethod
    def add_entry_point_for_analysis(self, platform: Platform, address: int) -> None:
        """Queue *address* as an entry point."""


class FirmwareImage(ImageContainer):
    """Recording container over one raw firmware image.

    Args:
        data: The raw image bytes.
        path: Where the image came from, for reports.
    """

    def __init__(self, data: bytes, path: str = "<memory>") -> None:
        self.data = bytes(data)
        self.path = path
        self.symbols: list[RecoveredSymbol] = []
        self.sections: list[SectionInfo] = []
        self.segments: list[SegmentInfo] = []
        self.types: dict[str, StructType] = {}
        self.data_variables: list[DataVariable] = []
        self.functions: list[int] = []
        self.entry_points: list[int] = []
        self._function_set: set[int] = set()

    def __len__(self) -> int:
        return len(self.data)

    # ------------------------------------------------------------------ #
    #  ImageContainer implementation
    # ------------------------------------------------------------------ #

    def define_auto_symbol(self, kind: SymbolKind, name: str, address: int) -> None:
        self.symbols.append(RecoveredSymbol(kind=kind, name=name, address=address))

    def add_auto_section(
        self,
        name: str,
        start: int,
        length: int,
        semantics: SectionSemantics,
    ) -> None:
        self.sections.append(
            SectionInfo(name=name, start=start, end=start + length, semantics=semantics)
        )

    def add_auto_segment(
        self,
        start: int,
        length: int,
        data_offset: int,
        data_length: int,
        flags: int,
    ) -> None:
        self.segments.append(
            SegmentInfo(
                start=start,
                length=length,
                data_offset=data_offset,
                data_length=data_length,
                flags=int(flags),
            )
        )

    def define_type(self, struct: StructType) -> str:
        self.types[struct.name] = struct
        return struct.name

    def define_data_variable(self, address: int, type_name: str, count: int = 1) -> None:
        struct = self.types.get(type_name)
        if struct is None:
            raise KeyError(f"Unknown type: {type_name}")
        self.data_variables.append(
            DataVariable(
                address=address,
                type_name=type_name,
                element_size=struct.size,
                count=count,
            )
        )

    def add_function_for_analysis(self, platform: Platform, address: int) -> None:
        if address in self._function_set:
            return
        self._function_set.add(address)
        self.functions.append(address)

    def add_entry_point_for_analysis(self, platform: Platform, address: int) -> None:
        self.entry_points.append(address)

    # ------------------------------------------------------------------ #
    #  Queries
    # ------------------------------------------------------------------ #

    def symbol_by_name(self, name: str) -> Optional[RecoveredSymbol]:
        for symbol in self.symbols:
            if symbol.name == name:
                return symbol
        return None

    def symbols_at(self, address: int) -> list[RecoveredSymbol]:
        return [s for s in self.symbols if s.address == address]
