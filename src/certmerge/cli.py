"""CLI entry point using Typer."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

from certmerge.engine import merge_bundle
from certmerge.exceptions import BundleIOError, InspectorError
from certmerge.models import InspectorKind, MergeOptions
from certmerge.reporter import generate_json_report, generate_text_report, set_color_output

app = typer.Typer(help="Merge PEM certificates into a deduplicated bundle file")

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
)

EXIT_OK = 0
EXIT_REWRITE_NEEDED = 1
EXIT_ERROR = 2


def _configure_logging(quiet: bool, verbose: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.getLogger().setLevel(level)
    logging.getLogger("certmerge").setLevel(level)


@app.command()
def merge(
    bundle: Path = typer.Argument(..., help="Bundle file to update in place"),
    certs: Optional[List[Path]] = typer.Argument(None, help="Files with certificates to add"),
    fingerprint: bool = typer.Option(False, "--fingerprint", "-f", help="Treat certificates with the same SHA1 fingerprint as duplicates"),
    sort: bool = typer.Option(False, "--sort", "-s", help="Sort certificates by subject (case-insensitive)"),
    title: bool = typer.Option(False, "--title", "-t", help="Write subject and issuer lines above each certificate"),
    text: bool = typer.Option(False, "--text", "-x", help="Write a text dump above each certificate"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Alternate filesystem root prepended to all paths"),
    check: bool = typer.Option(False, "--check", help="Only report whether a rewrite is needed (exit 1 if so)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="JSON output"),
    jobs: int = typer.Option(1, "--jobs", "-J", min=1, help="Number of certificates to inspect in parallel"),
    inspector: InspectorKind = typer.Option(InspectorKind.CRYPTOGRAPHY, "--inspector", help="Certificate inspection backend"),
    timeout: float = typer.Option(30.0, "--timeout", help="Timeout in seconds per openssl call"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print warnings and errors"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    color: bool = typer.Option(True, "--color/--no-color", help="Enable/disable colored output"),
):
    """
    Merge certificates into BUNDLE, removing duplicates.

    The bundle is only rewritten when something changes; the previous
    version is kept next to it with a UTC timestamp suffix.
    """
    logger = logging.getLogger(__name__)

    _configure_logging(quiet, verbose)
    set_color_output(color)

    options = MergeOptions(
        bundle=bundle,
        new_certs=list(certs or []),
        root=root,
        fingerprint=fingerprint,
        sort=sort,
        title=title,
        text=text,
        check_only=check,
        jobs=jobs,
        inspector=inspector,
        timeout=timeout,
    )

    try:
        result = merge_bundle(options)
    except (BundleIOError, InspectorError) as e:
        logger.error(str(e))
        sys.exit(EXIT_ERROR)

    if json_output:
        print(generate_json_report(result))
    elif not quiet:
        print(generate_text_report(result))

    if check and result.rewrite_needed:
        sys.exit(EXIT_REWRITE_NEEDED)
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    app()
