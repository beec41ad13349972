"""Tests for the loader registry and the recording container."""

from __future__ import annotations

import pytest

from sextant.core.container import FirmwareImage
from sextant.core.loader import VxWorksLoader
from sextant.core.models import (
    Platform,
    SectionSemantics,
    StructMember,
    StructType,
    SymbolKind,
)
from sextant.core.registry import LoaderRegistry, build_default_registry


class _NamedLoader(VxWorksLoader):
    def __init__(self, name: str, accepts: bool) -> None:
        super().__init__()
        self.name = name
        self._accepts = accepts

    def is_type_valid_for_data(self, data: bytes) -> bool:
        return self._accepts


class TestLoaderRegistry:

    def test_default_registry_holds_vxworks(self):
        registry = build_default_registry()
        assert registry.names == ["VxWorks"]
        assert "VxWorks" in registry
        assert len(registry) == 1
        assert isinstance(registry.get("VxWorks"), VxWorksLoader)

    def test_registries_are_independent(self):
        first = build_default_registry()
        second = build_default_registry()
        first.register(_NamedLoader("Other", accepts=False))
        assert "Other" in first
        assert "Other" not in second

    def test_duplicate_name_rejected(self):
        registry = LoaderRegistry()
        registry.register(VxWorksLoader())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(VxWorksLoader())

    def test_detect_uses_registration_order(self):
        registry = LoaderRegistry()
        registry.register(_NamedLoader("Never", accepts=False))
        registry.register(_NamedLoader("First", accepts=True))
        registry.register(_NamedLoader("Second", accepts=True))
        assert registry.detect(b"anything").name == "First"
        assert [loader.name for loader in registry] == ["Never", "First", "Second"]

    def test_detect_by_signature(self):
        registry = build_default_registry()
        assert registry.detect(b"..VxWorks..") is registry.get("VxWorks")
        assert registry.detect(b"linux kernel") is None

    def test_unknown_name(self):
        assert LoaderRegistry().get("VxWorks") is None


class TestFirmwareImage:

    def test_function_queue_deduplicates(self):
        container = FirmwareImage(b"\x00" * 16)
        platform = Platform(name="ppc32")
        for address in (0x100, 0x200, 0x100):
            container.add_function_for_analysis(platform, address)
        assert container.functions == [0x100, 0x200]

    def test_data_variable_needs_registered_type(self):
        container = FirmwareImage(b"")
        with pytest.raises(KeyError):
            container.define_data_variable(0x1000, "missing")

        struct = StructType(name="pair", members=[StructMember(name="a"), StructMember(name="b")])
        assert container.define_type(struct) == "pair"
        container.define_data_variable(0x1000, "pair", count=3)
        (variable,) = container.data_variables
        assert variable.size == 24

    def test_symbol_queries(self):
        container = FirmwareImage(b"")
        container.define_auto_symbol(SymbolKind.FUNCTION, "usrRoot", 0x1000)
        container.define_auto_symbol(SymbolKind.DATA, "usrRootAlias", 0x1000)
        assert container.symbol_by_name("usrRoot").address == 0x1000
        assert container.symbol_by_name("missing") is None
        assert len(container.symbols_at(0x1000)) == 2

    def test_section_and_segment_records(self):
        container = FirmwareImage(b"\x00" * 32)
        container.add_auto_section(".text", 0x1000, 0x20, SectionSemantics.READ_ONLY_CODE)
        container.add_auto_segment(0x1000, 0x20, 0, 0x20, 0x5)
        assert container.sections[0].end == 0x1020
        assert container.segments[0].permissions == "r-x"
        assert len(container) == 32
