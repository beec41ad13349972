"""
Sextant Configuration Management
=================================

Centralized configuration for the Sextant firmware recovery toolkit using
Python dataclasses and TOML-based persistence.

Three sections are recognised in the TOML file::

    [global]    logging, output directory, debug switch
    [scanner]   symbol-table search tunables
    [loader]    user overrides for platform, image base and entry point

References:
    - Wiggins, A. (2011). The Twelve-Factor App. https://12factor.net/
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


class SextantError(Exception):
    """Base class for errors Sextant raises to its callers."""


class ConfigError(SextantError):
    """Raised when a configuration file or override cannot be used."""


# ========================== Tool-Specific Configs ==========================


@dataclass(frozen=False, slots=True)
class ScannerConfig:
    """Tunables for the VxWorks symbol-table search.

    The defaults reproduce the values observed on real VxWorks 5.x and
    6.x images; lowering ``min_valid_entries`` makes false positives on
    random data much more likely.
    """

    max_region_size: int = 0x2000000  # 32 MiB searched back from EOF
    min_valid_entries: int = 1000
    max_symbol_name_length: int = 128
    max_bad_symbols: int = 10
    max_header_size: int = 1024
    endianness_check_count: int = 10


@dataclass(frozen=False, slots=True)
class LoaderConfig:
    """User-supplied load overrides.

    Any value left as ``None`` is computed from the image.  When
    *image_base* disagrees with the base recovered from the symbol table,
    symbols are not applied.
    """

    platform: Optional[str] = None
    image_base: Optional[int] = None
    entry_point_offset: Optional[int] = None
    max_file_size: int = 268_435_456  # 256 MiB


# =========================== Global Settings ===============================


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Global settings: logging verbosity, log file and output location."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False
    output_dir: str = "output"
    debug: bool = False
    version: str = "1.0.0"


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class SextantConfig:
    """Master configuration aggregating all sections.

    Usage:
        >>> config = SextantConfig.load()                  # from default path
        >>> config = SextantConfig.load("custom.toml")     # from custom path
        >>> config.scanner.min_valid_entries
        1000
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)

    # ------------------------------------------------------------------ #
    #  TOML Loading
    # ------------------------------------------------------------------ #

    @classmethod
    def load(cls, path: str | Path | None = None) -> SextantConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``config.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Args:
            path: Filesystem path to a TOML configuration file.

        Returns:
            A fully-populated :class:`SextantConfig` instance.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
            ConfigError: If the file is not valid TOML.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        try:
            with open(config_path, "rb") as fh:
                raw: dict[str, Any] = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid configuration file {config_path}: {exc}") from exc

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            scanner=cls._build_section(ScannerConfig, raw.get("scanner", {})),
            loader=cls._build_section(LoaderConfig, raw.get("loader", {})),
        )

    # ------------------------------------------------------------------ #
    #  Serialisation helpers
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entire configuration tree to a plain dictionary."""
        return asdict(self)

    # ------------------------------------------------------------------ #
    #  Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are silently ignored so that
        forward-compatible config files do not break older code.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)
