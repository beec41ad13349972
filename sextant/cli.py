"""
Sextant CLI -- VxWorks Image Recovery
======================================

Click-based command-line interface.  Recovers the symbol table, image
base and section layout of a raw VxWorks firmware image and prints or
exports the result.

Usage::

    # Recover and display
    sextant firmware.bin

    # Force a platform and dump a symbol map
    sextant firmware.bin --platform ppc32 --output firmware.map

    # Scan an image that lacks the "VxWorks" signature string
    sextant firmware.bin --force

    # Compute load settings only
    sextant firmware.bin --parse-only --json

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from shared.config import ConfigError, SextantConfig
from shared.console import SextantConsole
from shared.logger import SextantLogger

from sextant import __version__
from sextant.core.engine import SextantEngine
from sextant.core.models import ImageAnalysisResult, KNOWN_PLATFORMS, get_platform
from sextant.core.registry import build_default_registry
from sextant.output.console import SextantConsoleOutput
from sextant.output.report import SextantReportGenerator


def _parse_int(
    ctx: click.Context,
    param: click.Parameter,
    value: Optional[str],
) -> Optional[int]:
    """Accept decimal or ``0x``-prefixed integers."""
    if value is None:
        return None
    try:
        parsed = int(value, 0)
    except ValueError:
        raise click.BadParameter(f"not an integer: {value!r}") from None
    if parsed < 0:
        raise click.BadParameter("must not be negative")
    return parsed


def build_config(
    config_path: Optional[str],
    platform: Optional[str],
    image_base: Optional[int],
    entry_point_offset: Optional[int],
) -> SextantConfig:
    """Load the configuration file and apply command-line overrides.

    Raises:
        ConfigError: If the file is invalid or the platform is unknown.
    """
    try:
        config = SextantConfig.load(config_path)
    except FileNotFoundError as exc:
        raise ConfigError(str(exc)) from exc

    if platform is not None:
        config.loader.platform = platform
    if image_base is not None:
        config.loader.image_base = image_base
    if entry_point_offset is not None:
        config.loader.entry_point_offset = entry_point_offset

    if config.loader.platform is not None and get_platform(config.loader.platform) is None:
        known = ", ".join(sorted(KNOWN_PLATFORMS))
        raise ConfigError(
            f"Unknown platform '{config.loader.platform}' (known: {known})"
        )
    return config


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@click.command("sextant")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--platform", "-p",
    default=None,
    help="Platform override (ppc32, armv7, mips32, ...).",
)
@click.option(
    "--image-base", "-b",
    callback=_parse_int,
    default=None,
    help="Image base override.  Disables symbols if it differs from the recovered base.",
)
@click.option(
    "--entry-point-offset", "-e",
    callback=_parse_int,
    default=None,
    help="Entry point as an offset from the image base.",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a TOML configuration file.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a report (.json) or symbol map (.map).",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON to stdout.",
)
@click.option(
    "--parse-only",
    is_flag=True,
    default=False,
    help="Compute load settings without defining symbols or sections.",
)
@click.option(
    "--force", "-f",
    is_flag=True,
    default=False,
    help="Skip the 'VxWorks' signature check.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
def sextant_cli(
    path: str,
    platform: Optional[str],
    image_base: Optional[int],
    entry_point_offset: Optional[int],
    config_path: Optional[str],
    output_path: Optional[str],
    json_output: bool,
    parse_only: bool,
    force: bool,
    verbose: bool,
) -> None:
    """Sextant -- VxWorks symbol table and image base recovery.

    PATH is a raw VxWorks memory image.

    Examples:

    \b
        sextant firmware.bin
        sextant firmware.bin --image-base 0x10000 --output firmware.map
    """
    console = SextantConsole(quiet=json_output)

    try:
        config = build_config(config_path, platform, image_base, entry_point_offset)
    except ConfigError as exc:
        console.error(str(exc))
        sys.exit(1)

    settings = config.global_settings
    log_level = "DEBUG" if verbose or settings.debug else settings.log_level
    logger = SextantLogger(
        "cli",
        log_level=log_level,
        log_file=settings.log_file,
        json_logs=settings.log_json,
    )

    if not json_output:
        console.banner(__version__)

    registry = build_default_registry(config, logger.child("loader"))
    engine = SextantEngine(config=config, logger=logger, registry=registry)

    try:
        with console.status("Recovering VxWorks image..."):
            scan_result = engine.analyze(path, force=force, parse_only=parse_only)
    except KeyboardInterrupt:
        console.warning("Analysis interrupted by user.")
        sys.exit(130)

    raw = scan_result.metadata.get("image_analysis")
    analysis_result = ImageAnalysisResult.model_validate(raw) if raw else None

    if json_output:
        click.echo(json.dumps({"scan": scan_result.model_dump(mode="json")}, indent=2, default=str))
    else:
        SextantConsoleOutput(console=console).display(scan_result, analysis_result)
        if scan_result.duration_seconds is not None:
            console.info(f"Scan Duration: {scan_result.duration_seconds:.2f}s")

    if output_path:
        if analysis_result is None:
            console.error("No analysis result to write.")
            sys.exit(1)
        report_path = SextantReportGenerator(__version__).generate(
            scan_result, analysis_result, output_path
        )
        console.success(f"Report saved: {report_path}")

    if not scan_result.success:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``sextant`` console script."""
    sextant_cli()


if __name__ == "__main__":
    main()
