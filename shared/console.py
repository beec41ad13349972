"""
Sextant Console Interface
==========================

Rich-powered console abstraction giving the CLI and the output renderers
one consistent presentation layer: banner, section rules, status
messages, findings tables and a spinner for the scan.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from rich.align import Align

_SEXTANT_THEME = Theme(
    {
        "sextant.banner": "bold bright_cyan",
        "sextant.section": "bold bright_magenta",
        "sextant.success": "bold green",
        "sextant.warning": "bold yellow",
        "sextant.error": "bold red",
        "sextant.info": "bold bright_blue",
        "sextant.dim": "dim white",
        "sextant.critical": "bold white on red",
        "sextant.high": "bold red",
        "sextant.medium": "bold yellow",
        "sextant.low": "bold bright_cyan",
        "sextant.informational": "bold bright_blue",
    }
)

_BANNER_ART = r"""[bright_cyan]
  ___  ___ __  __ _____  _    _  _  _____
 / __|| __|\ \/ /|_   _|/_\  | \| ||_   _|
 \__ \| _|  >  <   | | / _ \ | .` |  | |
 |___/|___|/_/\_\  |_|/_/ \_\|_|\_|  |_|
[/bright_cyan]"""

_TAGLINE = "VxWorks firmware symbol-table and image-base recovery"


class SextantConsole:
    """Unified console interface for Sextant output.

    Usage::

        con = SextantConsole()
        con.banner()
        con.section("Recovered Sections")
        con.success("Symbol table recovered")
    """

    def __init__(self, *, quiet: bool = False, record: bool = False) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output (useful in library / test mode).
            record: Enable Rich recording for text / HTML export.
        """
        self._console = Console(
            theme=_SEXTANT_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    # ------------------------------------------------------------------ #
    #  Banner / headers
    # ------------------------------------------------------------------ #

    def banner(self, version: str = "1.0.0") -> None:
        """Display the Sextant banner with *version* beneath the logo."""
        subtitle = (
            f"[sextant.dim]{_TAGLINE}[/sextant.dim]\n"
            f"[sextant.dim]Version: {version}[/sextant.dim]"
        )
        panel = Panel(
            Align.center(Text.from_markup(_BANNER_ART + "\n" + subtitle)),
            border_style="bright_cyan",
            padding=(0, 2),
        )
        self._console.print(panel)

    def section(self, title: str) -> None:
        """Print a section rule titled *title*."""
        self._console.rule(
            f"  {title}  ",
            style="sextant.section",
            characters="─",
        )
        self._console.print()

    # ------------------------------------------------------------------ #
    #  Message helpers (severity-coloured)
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        self._console.print(
            f"[sextant.success][✔] SUCCESS:[/sextant.success] {message}"
        )

    def warning(self, message: str) -> None:
        self._console.print(
            f"[sextant.warning][⚠] WARNING:[/sextant.warning] {message}"
        )

    def error(self, message: str) -> None:
        self._console.print(
            f"[sextant.error][✘] ERROR:[/sextant.error] {message}"
        )

    def info(self, message: str) -> None:
        self._console.print(
            f"[sextant.info][ℹ] INFO:[/sextant.info] {message}"
        )

    # ------------------------------------------------------------------ #
    #  Tables
    # ------------------------------------------------------------------ #

    def findings_table(self, findings: Sequence[Any]) -> None:
        """Render a findings table with automatic severity colouring.

        Expects objects with ``severity``, ``title``, and ``description``
        attributes (e.g. :class:`shared.models.Finding`).
        """
        severity_style_map: dict[str, str] = {
            "CRITICAL": "sextant.critical",
            "HIGH": "sextant.high",
            "MEDIUM": "sextant.medium",
            "LOW": "sextant.low",
            "INFO": "sextant.informational",
        }

        tbl = Table(
            title="Findings",
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=True,
            padding=(0, 1),
        )
        tbl.add_column("#", style="dim", width=4, justify="right")
        tbl.add_column("Severity", width=12)
        tbl.add_column("Title")
        tbl.add_column("Description", ratio=2)

        for idx, finding in enumerate(findings, start=1):
            sev = getattr(finding, "severity", "INFO")
            sev_name = sev.value if hasattr(sev, "value") else str(sev).upper()
            sev_style = severity_style_map.get(sev_name, "")
            sev_cell = (
                f"[{sev_style}]{sev_name}[/{sev_style}]"
                if sev_style
                else sev_name
            )
            tbl.add_row(
                str(idx),
                sev_cell,
                str(getattr(finding, "title", "")),
                str(getattr(finding, "description", "")),
            )

        self._console.print(tbl)

    # ------------------------------------------------------------------ #
    #  Status spinner
    # ------------------------------------------------------------------ #

    @contextmanager
    def status(self, message: str = "Working...") -> Generator[Any, None, None]:
        """Context-manager showing a spinner with a status message.

        Example::

            with con.status("Scanning for symbol table..."):
                result = engine.analyze(path)
        """
        with self._console.status(
            f"[sextant.info]{message}[/sextant.info]",
            spinner="dots",
            spinner_style="bright_cyan",
        ) as status_obj:
            yield status_obj

    # ------------------------------------------------------------------ #
    #  Utility
    # ------------------------------------------------------------------ #

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        """Print *count* blank lines."""
        for _ in range(count):
            self._console.print()

    def divider(self, style: str = "dim") -> None:
        """Print a thin horizontal rule."""
        self._console.rule(style=style)

    def export_text(self) -> str:
        """Export recorded console output as plain text (requires ``record=True``)."""
        return self._console.export_text()
