"""
Sextant Report Generator
=========================

Writes recovery results to disk:

* a structured JSON report (image metadata, symbol table location,
  sections, symbols, findings) for machine consumption;
* a linker-style symbol map (``.map``) listing the section layout and
  every recovered symbol in address order, for loading into other tools.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from shared.models import ScanResult

from sextant.core.models import ImageAnalysisResult


class SextantReportGenerator:
    """Generates JSON reports and symbol maps.

    Usage::

        gen = SextantReportGenerator()
        gen.generate_json(scan, result, "out/report.json")
        gen.generate_map(result, "out/image.map")
    """

    def __init__(self, version: str = "1.0.0") -> None:
        self._version = version

    def generate(
        self,
        scan: ScanResult,
        result: ImageAnalysisResult,
        output_path: str | Path,
    ) -> str:
        """Write the report format implied by the file extension.

        ``.map`` and ``.txt`` produce a symbol map; anything else JSON.
        """
        if Path(output_path).suffix.lower() in (".map", ".txt"):
            return self.generate_map(result, output_path)
        return self.generate_json(scan, result, output_path)

    def generate_json(
        self,
        scan: ScanResult,
        result: ImageAnalysisResult,
        output_path: str | Path,
    ) -> str:
        """Generate a structured JSON report.

        Returns:
            The absolute path of the generated report.
        """
        report_data: dict[str, Any] = {
            "report_type": "sextant_image_recovery",
            "version": self._version,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "success": scan.success,
            "summary": scan.summary,
            "image_info": result.info.model_dump(mode="json"),
            "state": result.state,
            "image_base": result.image_base,
            "determined_image_base": result.determined_image_base,
            "header_adjusted": result.header_adjusted,
            "header_size": result.header_size,
            "entry_point": result.entry_point,
            "symbol_table": (
                result.symbol_table.model_dump(mode="json")
                if result.symbol_table is not None
                else None
            ),
            "sections": [
                {
                    "name": s.name,
                    "start": s.start,
                    "end": s.end,
                    "size": s.length,
                    "semantics": s.semantics.value,
                    "entropy": round(s.entropy, 4),
                    "type_guess": s.type_guess,
                }
                for s in result.sections
            ],
            "segments": [
                {
                    "start": seg.start,
                    "length": seg.length,
                    "data_offset": seg.data_offset,
                    "data_length": seg.data_length,
                    "permissions": seg.permissions,
                }
                for seg in result.segments
            ],
            "symbol_counts": result.symbol_counts,
            "symbols": [
                {"name": sym.name, "address": sym.address, "kind": sym.kind.value}
                for sym in result.symbols
            ],
            "data_variables": [
                dv.model_dump(mode="json") for dv in result.data_variables
            ],
            "bad_symbol_count": result.bad_symbol_count,
            "findings": [f.model_dump(mode="json") for f in scan.findings],
        }

        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(
            json.dumps(report_data, indent=2, default=str),
            encoding="utf-8",
        )
        return str(out.resolve())

    def generate_map(self, result: ImageAnalysisResult, output_path: str | Path) -> str:
        """Generate a plain-text symbol map.

        Returns:
            The absolute path of the generated map.
        """
        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(self.render_map(result), encoding="utf-8")
        return str(out.resolve())

    @staticmethod
    def render_map(result: ImageAnalysisResult) -> str:
        """Render the section layout and symbols as map-file text."""
        width = max(8, result.info.address_size * 2)
        lines: list[str] = [
            f"# {result.info.path}",
            f"# image base  0x{result.image_base:0{width}x}",
            f"# entry point 0x{result.entry_point:0{width}x}",
            "",
            "Sections:",
        ]
        for sec in result.sections:
            lines.append(
                f"  {sec.name:<8} 0x{sec.start:0{width}x} 0x{sec.end:0{width}x} "
                f"{sec.length:>10} {sec.semantics.value}"
            )
        lines.append("")
        lines.append("Symbols:")
        kind_tags = {"function": "T", "data": "D", "import_address": "U"}
        for sym in sorted(result.symbols, key=lambda s: (s.address, s.name)):
            lines.append(
                f"  0x{sym.address:0{width}x} {kind_tags[sym.kind.value]} {sym.name}"
            )
        return "\n".join(lines) + "\n"
