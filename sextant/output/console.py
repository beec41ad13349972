"""
Sextant Console Output
=======================

Rich-powered terminal display for recovered VxWorks images: image
metadata, the symbol table location, the synthesised section layout with
entropy bars, and a symbol summary.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from shared.console import SextantConsole
from shared.models import ScanResult

from sextant.core.models import (
    ImageAnalysisResult,
    RecoveredSymbol,
    SectionInfo,
    SectionSemantics,
    SymbolKind,
)


# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

_ENTROPY_COLOUR_THRESHOLDS: list[tuple[float, str]] = [
    (1.0, "bright_green"),
    (4.5, "green"),
    (6.5, "yellow"),
    (7.0, "bright_yellow"),
    (7.5, "red"),
    (8.1, "bright_red"),
]

_SEMANTICS_LABELS: dict[SectionSemantics, str] = {
    SectionSemantics.READ_ONLY_CODE: "[bright_green]code (r-x)[/bright_green]",
    SectionSemantics.READ_WRITE_DATA: "[bright_yellow]data (rw-)[/bright_yellow]",
    SectionSemantics.EXTERNAL: "[bright_magenta]external[/bright_magenta]",
    SectionSemantics.READ_ONLY_DATA: "[bright_cyan]data (r--)[/bright_cyan]",
}

_KIND_COLOURS: dict[str, str] = {
    SymbolKind.FUNCTION.value: "bright_green",
    SymbolKind.DATA.value: "bright_yellow",
    SymbolKind.IMPORT_ADDRESS.value: "bright_magenta",
}


def _entropy_colour(entropy: float) -> str:
    """Return a Rich colour name for the given entropy value."""
    for threshold, colour in _ENTROPY_COLOUR_THRESHOLDS:
        if entropy < threshold:
            return colour
    return "bright_red"


def _entropy_bar(entropy: float, width: int = 20) -> str:
    """Render a text-based entropy bar with Rich markup."""
    fraction = min(entropy / 8.0, 1.0)
    filled = int(fraction * width)
    colour = _entropy_colour(entropy)
    return f"[{colour}]{'#' * filled}[/{colour}][dim]{'.' * (width - filled)}[/dim]"


# ---------------------------------------------------------------------------
# SextantConsoleOutput
# ---------------------------------------------------------------------------

class SextantConsoleOutput:
    """Rich terminal display for :class:`ImageAnalysisResult`.

    Usage::

        output = SextantConsoleOutput()
        output.display(scan_result, analysis_result)
    """

    def __init__(self, console: SextantConsole | None = None) -> None:
        self._console: SextantConsole = console or SextantConsole()

    def display(self, scan: ScanResult, result: ImageAnalysisResult | None) -> None:
        """Display the complete recovery result and its findings."""
        self._console.section("Image Recovery Results")

        if result is not None:
            self.display_header(result)
            if result.sections:
                self.display_sections(result.sections)
            if result.symbols:
                self.display_symbols_summary(result.symbols)

        if scan.findings:
            self._console.findings_table(scan.findings)
            self._console.blank()

        if scan.success:
            self._console.success(scan.summary)
        else:
            self._console.error(scan.summary)
        self._console.divider()

    def display_header(self, result: ImageAnalysisResult) -> None:
        """Display image metadata and symbol table location."""
        info = result.info
        lines: list[str] = [
            f"[bold]File:[/bold]         {info.path}",
            f"[bold]Size:[/bold]         {info.size:,} bytes ({info.size / 1024:.1f} KiB)",
            f"[bold]Loader:[/bold]       {info.loader or '-'}",
            f"[bold]Platform:[/bold]     {info.platform or '-'} ({info.address_size * 8}-bit)",
            f"[bold]State:[/bold]        {result.state}",
            f"[bold]Image Base:[/bold]   0x{result.image_base:x}",
            f"[bold]Entry Point:[/bold]  0x{result.entry_point:x}",
        ]
        if result.header_adjusted:
            lines.append(f"[bold]Header:[/bold]       0x{result.header_size:x} bytes")

        table = result.symbol_table
        if table is not None:
            lines.append(
                f"[bold]Symbol Table:[/bold] {table.version.label}, "
                f"{table.byte_order.value}-endian, {table.entry_count:,} entries "
                f"@ 0x{table.start_offset:x}-0x{table.end_offset:x}"
            )
        else:
            lines.append("[bold]Symbol Table:[/bold] [yellow]not found[/yellow]")

        if info.md5:
            lines.append(f"[bold]MD5:[/bold]          {info.md5}")
        if info.sha256:
            lines.append(f"[bold]SHA-256:[/bold]      {info.sha256}")

        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Image Information[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)
        self._console.blank()

    def display_sections(self, sections: list[SectionInfo]) -> None:
        """Display the section layout with entropy visualisation."""
        self._console.section("Sections")

        tbl = Table(
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=True,
            padding=(0, 1),
        )
        tbl.add_column("#", style="dim", width=4, justify="right")
        tbl.add_column("Name", style="bold", min_width=10)
        tbl.add_column("Start", justify="right")
        tbl.add_column("End", justify="right")
        tbl.add_column("Size", justify="right")
        tbl.add_column("Semantics")
        tbl.add_column("Entropy", justify="right")
        tbl.add_column("Entropy Bar", min_width=22)
        tbl.add_column("Type")

        for i, sec in enumerate(sections, 1):
            ent_colour = _entropy_colour(sec.entropy)
            tbl.add_row(
                str(i),
                sec.name,
                f"0x{sec.start:x}",
                f"0x{sec.end:x}",
                f"{sec.length:,}",
                _SEMANTICS_LABELS.get(sec.semantics, sec.semantics.value),
                f"[{ent_colour}]{sec.entropy:.3f}[/{ent_colour}]",
                _entropy_bar(sec.entropy),
                sec.type_guess,
            )

        self._console.rich.print(tbl)
        self._console.blank()

    def display_symbols_summary(
        self,
        symbols: list[RecoveredSymbol],
        max_display: int = 20,
    ) -> None:
        """Display symbol counts by kind and the lowest-addressed symbols."""
        self._console.section("Symbols")

        counts: dict[str, int] = {}
        for sym in symbols:
            counts[sym.kind.value] = counts.get(sym.kind.value, 0) + 1

        parts: list[str] = [f"[bold]Total:[/bold] {len(symbols):,}"]
        for kind, count in sorted(counts.items(), key=lambda x: -x[1]):
            colour = _KIND_COLOURS.get(kind, "dim")
            parts.append(f"[{colour}]{kind}: {count:,}[/{colour}]")
        self._console.rich.print("  ".join(parts))
        self._console.blank()

        tbl = Table(
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        tbl.add_column("Address", style="dim", justify="right", width=12)
        tbl.add_column("Kind", width=16)
        tbl.add_column("Name", ratio=1, overflow="ellipsis", no_wrap=True)

        for sym in sorted(symbols, key=lambda s: (s.address, s.name))[:max_display]:
            colour = _KIND_COLOURS.get(sym.kind.value, "dim")
            tbl.add_row(
                f"0x{sym.address:08x}",
                f"[{colour}]{sym.kind.value}[/{colour}]",
                sym.name,
            )

        self._console.rich.print(tbl)
        if len(symbols) > max_display:
            self._console.print(
                f"[dim]... and {len(symbols) - max_display:,} more symbols[/dim]"
            )
        self._console.blank()
