"""
Bad Redaction Inspector CLI

Analyzes a PDF for redaction marks that fail to remove the content beneath
them, and writes a structured report.

Usage:
    xray document.pdf --output report.json
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .errors import XRayError
from .models import InspectionParams
from .output_writer import FORMATS, finding_line, render, summarize, write_report
from .parallel import analyze


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def validate_fraction(ctx, param, value):
    if value is not None and not 0.0 <= value <= 1.0:
        raise click.BadParameter("must be between 0 and 1")
    return value


@click.command()
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option(
    "--output", "-o",
    "output_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the report here instead of stdout"
)
@click.option(
    "--format", "-f",
    "fmt",
    default="json",
    type=click.Choice(FORMATS),
    help="Report format. Default: json"
)
@click.option(
    "--password",
    default=None,
    envvar="XRAY_PDF_PASSWORD",
    help="Password for encrypted PDFs"
)
@click.option(
    "--timeout",
    default=None,
    type=float,
    envvar="XRAY_LOAD_TIMEOUT",
    help="Give up loading the PDF after this many seconds"
)
@click.option(
    "--workers", "-w",
    default=1,
    type=click.IntRange(min=1),
    envvar="XRAY_WORKERS",
    help="Number of parallel worker processes for page analysis. Default: 1"
)
@click.option(
    "--opacity-threshold",
    default=0.95,
    type=float,
    callback=validate_fraction,
    help="Minimum fill opacity for a redaction mark. Default: 0.95"
)
@click.option(
    "--dark-threshold",
    default=0.15,
    type=float,
    callback=validate_fraction,
    help="Maximum fill luminance (0-1) counted as dark. Default: 0.15"
)
@click.option(
    "--merge-overlap",
    default=0.5,
    type=float,
    callback=validate_fraction,
    help="Overlap share of the smaller region that merges two marks. Default: 0.5"
)
@click.option(
    "--full-coverage",
    default=0.98,
    type=float,
    callback=validate_fraction,
    help="Coverage at which content counts as fully covered. Default: 0.98"
)
@click.option(
    "--strict",
    is_flag=True,
    help="Report content hidden under a mark but still present in the file"
)
@click.option(
    "--no-pixel-check",
    is_flag=True,
    help="Skip verifying marks against the rendered page (faster)"
)
@click.option(
    "--dpi",
    default=72,
    type=click.IntRange(min=18),
    help="DPI for rendering pages during pixel checks. Default: 72"
)
@click.option(
    "--progress",
    is_flag=True,
    help="Show a progress bar"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output"
)
@click.version_option(__version__, prog_name="xray")
def main(
    input_path: Path,
    output_path: Optional[Path],
    fmt: str,
    password: Optional[str],
    timeout: Optional[float],
    workers: int,
    opacity_threshold: float,
    dark_threshold: float,
    merge_overlap: float,
    full_coverage: float,
    strict: bool,
    no_pixel_check: bool,
    dpi: int,
    progress: bool,
    verbose: bool,
):
    """
    Find bad redactions in a PDF document.

    Exits 0 whenever the analysis completes, whether or not leaks were
    found, and 1 when the document cannot be loaded or the report cannot
    be written.
    """
    configure_logging(verbose)

    params = InspectionParams(
        opacity_threshold=opacity_threshold,
        dark_threshold=dark_threshold,
        merge_overlap=merge_overlap,
        full_coverage=full_coverage,
        flag_hidden_content=strict,
        pixel_check=not no_pixel_check,
        dpi=dpi,
        load_timeout=timeout,
        password=password,
    )

    try:
        report = analyze(input_path, params, workers=workers, progress=progress)
    except XRayError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(EXIT_FAILURE)
    except KeyboardInterrupt:
        click.echo(click.style("Analysis interrupted by user", fg="yellow"), err=True)
        sys.exit(130)

    if output_path is not None:
        try:
            write_report(report, output_path, fmt, params)
        except OSError as e:
            click.echo(click.style(f"Error writing {output_path}: {e}", fg="red"), err=True)
            if verbose:
                traceback.print_exc()
            sys.exit(EXIT_FAILURE)
        click.echo(f"Report written to {output_path}", err=True)
    else:
        click.echo(render(report, fmt, params))

    # Human summary on stderr so stdout stays machine-readable
    stats = summarize(report)
    for finding in report.leaks:
        click.echo(click.style(finding_line(finding), fg="yellow"), err=True)
    for page in report.pages:
        if page.error:
            click.echo(click.style(
                f"page {page.page_index + 1} {page.outcome}: {page.error}", fg="red"
            ), err=True)
    click.echo(
        f"{stats['pages_analyzed']}/{stats['page_count']} page(s) analyzed, "
        f"{stats['total_candidates']} redaction(s), {stats['total_leaks']} suspected leak(s)",
        err=True,
    )

    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
