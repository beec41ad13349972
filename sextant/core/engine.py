"""
Sextant Analysis Engine
========================

Orchestrates recovery of a single firmware image:

    1. Read the file (size-limited) and compute hashes
    2. Select a loader -- signature detection, or forced VxWorks
    3. Initialise the image: symbol table scan, image base resolution,
       symbol emission and section synthesis
    4. Annotate sections with byte entropy
    5. Turn the outcome into findings

The engine never raises for an unrecognised or unparseable image; the
outcome is reported through :class:`~shared.models.ScanResult` findings.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from shared.config import SextantConfig
from shared.logger import SextantLogger
from shared.models import Finding, ScanResult, Severity

from sextant.analyzers.sections import SectionSynthesizer
from sextant.core.container import FirmwareImage
from sextant.core.loader import LoaderState, VxWorksImage, VxWorksLoader
from sextant.core.models import (
    ImageAnalysisResult,
    ImageInfo,
    SymbolTableSummary,
)
from sextant.core.registry import LoaderRegistry, build_default_registry


class SextantEngine:
    """Runs the recovery pipeline and produces findings.

    Usage::

        engine = SextantEngine()
        scan = engine.analyze("/path/to/vxworks.bin")
        print(scan.summary)

    Or on bytes already in memory::

        result = engine.analyze_data(data)
        print(hex(result.image_base))
    """

    def __init__(
        self,
        config: SextantConfig | None = None,
        logger: SextantLogger | None = None,
        registry: LoaderRegistry | None = None,
    ) -> None:
        """Initialise the engine.

        Args:
            config: Sextant configuration.  Defaults are used if not provided.
            logger: Logger instance.  A new one is created if not provided.
            registry: Loader registry.  The default registry is built if not
                provided.
        """
        self._config: SextantConfig = config or SextantConfig()
        self._logger: SextantLogger = logger or SextantLogger("engine")
        self._registry: LoaderRegistry = (
            registry
            if registry is not None
            else build_default_registry(self._config, self._logger.child("loader"))
        )

    @property
    def registry(self) -> LoaderRegistry:
        return self._registry

    # ------------------------------------------------------------------ #
    #  Entry points
    # ------------------------------------------------------------------ #

    def analyze(
        self,
        file_path: str | Path,
        force: bool = False,
        parse_only: bool = False,
    ) -> ScanResult:
        """Recover one image file.

        Args:
            file_path: Path to the raw firmware image.
            force: Skip signature detection and use the VxWorks loader.
            parse_only: Compute load settings without populating a container.

        Returns:
            ScanResult with findings; the full :class:`ImageAnalysisResult`
            is stored under ``metadata["image_analysis"]``.
        """
        path = Path(file_path)
        self._logger.info(f"Starting analysis of {path}")
        scan = ScanResult(target=str(path))

        try:
            if not path.is_file():
                scan.summary = f"File not found: {path}"
                self._logger.error(scan.summary)
                return scan.finalize(scan.summary)

            file_size = path.stat().st_size
            max_size = self._config.loader.max_file_size
            if file_size > max_size:
                scan.summary = (
                    f"File too large: {file_size:,} bytes (max: {max_size:,} bytes)"
                )
                self._logger.error(scan.summary)
                return scan.finalize(scan.summary)

            data = path.read_bytes()
            result = self.analyze_data(
                data, str(path.resolve()), force=force, parse_only=parse_only
            )

            for finding in self._generate_findings(result):
                scan.add_finding(finding)

            scan.success = result.success
            scan.metadata = {"image_analysis": result.model_dump(mode="json")}
            scan.finalize(self._summarize(result))
            self._logger.info(scan.summary)

        except Exception as exc:
            scan.success = False
            scan.finalize(f"Analysis failed: {exc}")
            self._logger.exception(scan.summary)

        return scan

    def analyze_data(
        self,
        data: bytes,
        file_path: str = "<memory>",
        force: bool = False,
        parse_only: bool = False,
    ) -> ImageAnalysisResult:
        """Recover an image already in memory.

        Args:
            data: Raw image bytes.
            file_path: Display path for the result.
            force: Skip signature detection and use the VxWorks loader.
            parse_only: Compute load settings without populating a container.
        """
        result = ImageAnalysisResult(
            info=ImageInfo(
                path=file_path,
                size=len(data),
                md5=hashlib.md5(data).hexdigest(),
                sha256=hashlib.sha256(data).hexdigest(),
            )
        )

        loader = (
            self._registry.get(VxWorksLoader.name)
            if force
            else self._registry.detect(data)
        )
        if loader is None:
            self._logger.warning("No loader recognised the image (missing 'VxWorks' signature)")
            result.metadata["detected"] = False
            return result

        result.metadata["detected"] = True
        result.metadata["parse_only"] = parse_only
        result.info.loader = loader.name

        container = FirmwareImage(data, file_path)
        with self._logger.timed(f"{loader.name} image initialisation"):
            image = loader.create(data, container, parse_only=parse_only)
            result.success = image.init()

        return self._build_result(result, image, container)

    # ------------------------------------------------------------------ #
    #  Result assembly
    # ------------------------------------------------------------------ #

    def _build_result(
        self,
        result: ImageAnalysisResult,
        image: VxWorksImage,
        container: FirmwareImage,
    ) -> ImageAnalysisResult:
        result.state = image.state.value
        result.image_base = image.image_base
        result.entry_point = image.entry_point
        result.header_adjusted = image.header_adjusted
        result.header_size = image.header_size
        result.bad_symbol_count = image.bad_symbol_count

        if image.platform is not None:
            result.info.platform = image.platform.name
            result.info.address_size = image.platform.address_size

        table = image.table
        if table is not None:
            result.determined_image_base = image.determined_image_base
            result.info.byte_order = table.byte_order.value
            result.symbol_table = SymbolTableSummary(
                version=table.version,
                byte_order=table.byte_order,
                start_offset=table.start_offset,
                end_offset=table.end_offset,
                entry_size=table.entry_size,
                entry_count=len(table),
                address=image.image_base + table.start_offset,
            )

        result.sections = SectionSynthesizer.with_entropy(
            sorted(container.sections, key=lambda s: s.start),
            image.data,
            image.image_base,
        )
        result.segments = list(container.segments)
        result.symbols = list(container.symbols)
        result.functions = list(container.functions)
        result.data_variables = list(container.data_variables)
        result.metadata["symbols_applied"] = image.symbols_applied
        result.metadata["sys_init_found"] = image.sys_init_found
        result.metadata["symbol_processing_aborted"] = image.symbol_processing_aborted
        result.metadata["entry_point_offset"] = self._config.loader.entry_point_offset
        if image.state is not LoaderState.FAILED:
            result.metadata["load_settings"] = image.load_settings().model_dump(mode="json")
        return result

    @staticmethod
    def _summarize(result: ImageAnalysisResult) -> str:
        parts = [f"Analysis complete: {result.state}"]
        if result.symbol_table is not None:
            parts.append(
                f"{result.symbol_table.version.label} table, "
                f"{result.symbol_table.entry_count} entries"
            )
        parts.append(f"Image base: 0x{result.image_base:x}")
        parts.append(f"Symbols: {len(result.symbols)}")
        parts.append(f"Sections: {len(result.sections)}")
        return " | ".join(parts)

    # ------------------------------------------------------------------ #
    #  Finding generation
    # ------------------------------------------------------------------ #

    def _generate_findings(self, result: ImageAnalysisResult) -> list[Finding]:
        """Translate the recovery outcome into findings."""
        findings: list[Finding] = []

        if not result.metadata.get("detected", False):
            findings.append(Finding(
                title="Not recognised as a VxWorks image",
                description=(
                    "The byte string 'VxWorks' does not occur anywhere in the "
                    "file, so no loader was run."
                ),
                severity=Severity.MEDIUM,
                evidence={"size": result.info.size, "sha256": result.info.sha256},
                recommendation="Re-run with --force to scan the image anyway.",
            ))
            return findings

        if result.state == LoaderState.FAILED.value:
            findings.append(Finding(
                title="Image initialisation failed",
                description="The loader could not initialise the image; see the log for details.",
                severity=Severity.CRITICAL,
                evidence={"state": result.state},
                recommendation="Check the configured platform and overrides.",
            ))
            return findings

        if result.symbol_table is None:
            findings.append(Finding(
                title="VxWorks symbol table not found",
                description=(
                    "No run of symbol entries passed the size and address "
                    "checks. A single .text section covers the whole image."
                ),
                severity=Severity.MEDIUM,
                evidence={"image_base": hex(result.image_base)},
                recommendation="Set the base address manually with --image-base.",
            ))
            return findings

        table = result.symbol_table
        findings.append(Finding(
            title="VxWorks symbol table recovered",
            description=(
                f"{table.version.label} symbol table ({table.byte_order.value}-endian) "
                f"with {table.entry_count} entries at file offset 0x{table.start_offset:x}; "
                f"{len(result.symbols)} symbols defined."
            ),
            severity=Severity.INFO,
            evidence={
                "start_offset": hex(table.start_offset),
                "end_offset": hex(table.end_offset),
                "image_base": hex(result.image_base),
                "symbol_counts": result.symbol_counts,
            },
        ))

        if result.header_adjusted:
            findings.append(Finding(
                title="Image header prefix detected",
                description=(
                    f"The image starts with a 0x{result.header_size:x}-byte header; "
                    "the image base was lowered accordingly."
                ),
                severity=Severity.INFO,
                evidence={"header_size": result.header_size},
            ))

        parse_only = result.metadata.get("parse_only", False)
        if not parse_only and not result.metadata.get("symbols_applied", False):
            findings.append(Finding(
                title="Image base overridden; symbols not applied",
                description=(
                    f"The configured image base 0x{result.image_base:x} differs from "
                    f"the recovered base 0x{(result.determined_image_base or 0):x}."
                ),
                severity=Severity.MEDIUM,
                evidence={
                    "image_base": hex(result.image_base),
                    "determined_image_base": hex(result.determined_image_base or 0),
                },
                recommendation="Drop the image base override to apply the recovered symbols.",
            ))

        if result.metadata.get("symbol_processing_aborted", False):
            findings.append(Finding(
                title="Symbol table may be a false positive",
                description=(
                    f"{result.bad_symbol_count} entries have empty or non-ASCII "
                    "names; symbol processing was aborted."
                ),
                severity=Severity.HIGH,
                evidence={"bad_symbol_count": result.bad_symbol_count},
                recommendation="Verify the detected table location and byte order manually.",
            ))

        if not result.metadata.get("sys_init_found", False):
            offset = result.metadata.get("entry_point_offset")
            if offset is None:
                description = "The entry point defaults to the image base."
            else:
                description = (
                    f"The entry point is set by the configured offset 0x{offset:x} "
                    "from the image base."
                )
            findings.append(Finding(
                title="sysInit not found",
                description=description,
                severity=Severity.LOW,
                evidence={"entry_point": hex(result.entry_point)},
            ))

        return findings
