"""
Imphash CLI
============

Click-based command-line interface for import-hash fingerprinting.

Commands:
    imphash scan PATHS...      - Fingerprint files and directories
    imphash compare A B        - ssdeep similarity of two binaries' imports

Global Options:
    --config, -c    Path to a TOML configuration file
    --verbose, -v   Enable debug logging
    --quiet, -q     Suppress the banner

Usage::

    imphash scan sample.exe
    imphash scan ./corpus --recursive --output hashes.csv
    imphash scan libfoo.so --json --show-string
    imphash compare dropper_a.exe dropper_b.exe

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from shared.config import PhantomConfig
from shared.console import PhantomConsole
from shared.logger import PhantomLogger

from imphash import __version__
from imphash.core.engine import ImphashEngine, iter_targets
from imphash.core.errors import ImphashError
from imphash.output.console import ImphashConsoleOutput
from imphash.output.report import ImphashReportGenerator


# ===================================================================== #
#  CLI Group
# ===================================================================== #

@click.group()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to configuration file (TOML).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
@click.option(
    "--quiet", "-q",
    is_flag=True,
    default=False,
    help="Suppress banner and informational output.",
)
@click.version_option(__version__, prog_name="imphash")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[str],
    verbose: bool,
    quiet: bool,
) -> None:
    """PhantomCore imphash -- import-table fingerprinting.

    Computes ImpHash (MD5), ImpFuzzy (ssdeep) and ImpString for PE, ELF
    and Mach-O binaries.
    """
    ctx.ensure_object(dict)

    phantom_config = PhantomConfig.load(config)
    settings = phantom_config.global_settings
    log_level = "DEBUG" if verbose or settings.debug else settings.log_level
    logger = PhantomLogger(
        "imphash",
        log_level=log_level,
        log_file=settings.log_file or None,
        json_logs=settings.log_json,
    )

    ctx.obj["config"] = phantom_config
    ctx.obj["quiet"] = quiet
    ctx.obj["logger"] = logger
    ctx.obj["engine"] = ImphashEngine(phantom_config, logger)


# ===================================================================== #
#  Subcommands
# ===================================================================== #

@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--recursive", "-r",
    is_flag=True,
    default=False,
    help="Walk directories recursively (also enabled by config).",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Print results as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a report file (.json or .csv).",
)
@click.option(
    "--show-string", "-s",
    is_flag=True,
    default=False,
    help="Include the canonical import string in the output.",
)
@click.pass_context
def scan(
    ctx: click.Context,
    paths: tuple[str, ...],
    recursive: bool,
    json_output: bool,
    output_path: Optional[str],
    show_string: bool,
) -> None:
    """Fingerprint the import tables of PATHS (files or directories).

    Exits with status 1 if any file could not be fingerprinted.
    """
    engine: ImphashEngine = ctx.obj["engine"]
    config: PhantomConfig = ctx.obj["config"]
    walk = recursive or config.imphash.recursive

    console = PhantomConsole(quiet=json_output)
    if not ctx.obj["quiet"]:
        console.banner(version=__version__)

    targets = list(iter_targets(paths, recursive=walk))
    if not targets:
        console.warning("No files to fingerprint.")
        return
    console.info(f"Fingerprinting {len(targets)} file(s)")

    records = engine.hash_files(targets)
    reporter = ImphashReportGenerator(include_string=show_string)

    if json_output:
        click.echo(json.dumps(reporter.build_json(records), indent=2, default=str))
    else:
        ImphashConsoleOutput(console).display_batch(records, show_string=show_string)

    report_format = config.imphash.output_format
    if output_path is None and report_format in ("json", "csv"):
        output_path = _default_output_path(config.global_settings.output_dir, report_format)

    if output_path:
        report_path = reporter.generate(records, output_path)
        console.success(f"Report saved: {report_path}")

    if any(not r.ok for r in records):
        sys.exit(1)


@cli.command()
@click.argument("left", type=click.Path(exists=True, dir_okay=False))
@click.argument("right", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def compare(ctx: click.Context, left: str, right: str) -> None:
    """Compare the ImpFuzzy digests of LEFT and RIGHT (score 0-100)."""
    engine: ImphashEngine = ctx.obj["engine"]
    console = PhantomConsole()

    try:
        similarity = engine.compare_files(left, right)
    except (ImphashError, OSError) as exc:
        console.error(f"{type(exc).__name__}: {exc}")
        sys.exit(1)

    ImphashConsoleOutput(console).display_similarity(left, right, similarity)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _default_output_path(output_dir: str, ext: str) -> str:
    """Timestamped report path under the configured output directory."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return str(directory / f"imphash_report_{timestamp}.{ext}")


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``imphash`` console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
