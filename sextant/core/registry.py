"""
Loader Registry
================

An explicit, ordered collection of loader types.  The CLI and the engine
build one at startup with :func:`build_default_registry`; nothing is
registered as an import side effect.
"""

from __future__ import annotations

from typing import Iterator, Optional, Protocol

from shared.config import SextantConfig
from shared.logger import SextantLogger

from sextant.core.container import ImageContainer
from sextant.core.loader import VxWorksImage, VxWorksLoader
from sextant.core.models import LoadSettings


class Loader(Protocol):
    """What the registry needs from a loader type."""

    name: str
    description: str

    def is_type_valid_for_data(self, data: bytes) -> bool: ...

    def create(
        self,
        data: bytes,
        container: ImageContainer | None = None,
        parse_only: bool = False,
    ) -> VxWorksImage: ...

    def load_settings_for_data(self, data: bytes) -> Optional[LoadSettings]: ...


class LoaderRegistry:
    """Name-keyed loader types, consulted in registration order."""

    def __init__(self) -> None:
        self._loaders: dict[str, Loader] = {}

    def register(self, loader: Loader) -> None:
        """Add *loader*.

        Raises:
            ValueError: If a loader with the same name is already registered.
        """
        if loader.name in self._loaders:
            raise ValueError(f"Loader already registered: {loader.name}")
        self._loaders[loader.name] = loader

    def get(self, name: str) -> Optional[Loader]:
        return self._loaders.get(name)

    def detect(self, data: bytes) -> Optional[Loader]:
        """Return the first registered loader that accepts *data*."""
        for loader in self._loaders.values():
            if loader.is_type_valid_for_data(data):
                return loader
        return None

    @property
    def names(self) -> list[str]:
        return list(self._loaders)

    def __iter__(self) -> Iterator[Loader]:
        return iter(self._loaders.values())

    def __len__(self) -> int:
        return len(self._loaders)

    def __contains__(self, name: object) -> bool:
        return name in self._loaders


def build_default_registry(
    config: SextantConfig | None = None,
    logger: SextantLogger | None = None,
) -> LoaderRegistry:
    """Registry holding every loader type Sextant ships."""
    registry = LoaderRegistry()
    registry.register(VxWorksLoader(config, logger))
    return registry
