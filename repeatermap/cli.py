"""repeatermap CLI: build the repeater map files.

Usage:
    repeatermap run                         # Fetch everything, write all outputs
    repeatermap run --kml out/map.kml -v    # Custom output path, debug logging
    repeatermap lookup VK2RAG               # Resolve one callsign, print JSON
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import click
from typing_extensions import assert_never

from repeatermap import __version__
from repeatermap.common.data_models import (
    LookupStatus,
    StationListing,
    StationRecord,
)
from repeatermap.common.exceptions import (
    ScraperAssumptionException,
    TransientException,
)
from repeatermap.common.request_manager import RateLimitedRequestManager
from repeatermap.driver.pipeline import Pipeline
from repeatermap.exporters import write_outputs
from repeatermap.exporters.formatting import format_coordinate, format_mhz
from repeatermap.settings import Settings

DEFAULT_KML = "dmr_repeaters.kml"
DEFAULT_CSV = "dmr_repeaters.csv"
DEFAULT_GEOJSON = "site/data/dmr_repeaters.geojson"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_settings(
    base_url: str | None,
    status_url: str | None,
    timeout: float,
    rate_limit_ms: int,
) -> Settings:
    settings = (
        Settings.for_base_url(base_url) if base_url else Settings()
    )
    overrides: dict = {"timeout": timeout, "rate_limit_ms": rate_limit_ms}
    if status_url:
        overrides["status_url"] = status_url
    return dataclasses.replace(settings, **overrides)


def progress_line(index: int, total: int, record: StationRecord) -> str:
    """One line of per-station progress output."""
    prefix = f"  [{index}/{total}] Looking up {record.callsign} ... "

    match record.lookup_status:
        case LookupStatus.NOT_FOUND:
            return prefix + "not found on ACMA."
        case LookupStatus.ERROR:
            return prefix + f"ERROR: {record.error}"
        case LookupStatus.FOUND:
            parts = []
            if record.tx_mhz is not None:
                parts.append(f"TX={format_mhz(record.tx_mhz)}")
            if record.rx_mhz is not None:
                parts.append(f"RX={format_mhz(record.rx_mhz)}")
            if record.has_coordinates:
                parts.append(
                    f"pos={format_coordinate(record.latitude)},"
                    f"{format_coordinate(record.longitude)}"
                )
            if record.error:
                parts.append(f"site ERROR: {record.error}")
            return prefix + (" ".join(parts) or "partial data")
        case _:
            assert_never(record.lookup_status)


def _register_options(func):
    """Options shared by every command that talks to the register."""
    func = click.option(
        "-v", "--verbose", is_flag=True, help="Verbose logging."
    )(func)
    func = click.option(
        "--rate-limit-ms",
        type=click.IntRange(min=0),
        default=Settings.rate_limit_ms,
        show_default=True,
        help="Minimum milliseconds between requests. 0 disables throttling.",
    )(func)
    func = click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=Settings.timeout,
        show_default=True,
        help="Per-request timeout in seconds.",
    )(func)
    func = click.option(
        "--base-url",
        default=None,
        help="Fetch every page from this host instead, e.g. a local mirror.",
    )(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="repeatermap")
def cli() -> None:
    """Map VK DMR repeaters using ACMA licence data."""


@cli.command()
@click.option(
    "--status-url",
    default=None,
    help="Network status page listing the repeaters.",
)
@click.option(
    "--kml",
    "kml_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_KML,
    show_default=True,
    help="KML output path.",
)
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CSV,
    show_default=True,
    help="CSV output path.",
)
@click.option(
    "--geojson",
    "geojson_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_GEOJSON,
    show_default=True,
    help="GeoJSON output path.",
)
@_register_options
def run(
    status_url: str | None,
    kml_path: str,
    csv_path: str,
    geojson_path: str,
    base_url: str | None,
    timeout: float,
    rate_limit_ms: int,
    verbose: bool,
) -> None:
    """Fetch the repeater list, resolve every station, write the outputs.

    \b
    Examples:
        repeatermap run
        repeatermap run --rate-limit-ms 1000 --geojson public/repeaters.geojson
    """
    _configure_logging(verbose)
    settings = _build_settings(base_url, status_url, timeout, rate_limit_ms)

    click.echo("=== VK DMR Repeater Tool ===")

    def on_run_start(total: int) -> None:
        click.echo(f"Found {total} repeaters. Looking up licences...")

    def on_record(index: int, total: int, record: StationRecord) -> None:
        click.echo(progress_line(index, total, record))

    pipeline = Pipeline(
        settings, on_record=on_record, on_run_start=on_run_start
    )

    try:
        records = pipeline.run()
    except (TransientException, ScraperAssumptionException) as e:
        raise click.ClickException(
            f"Could not build the repeater list: {e}"
        ) from e
    except KeyboardInterrupt:
        # Interrupted mid-run: partial results are not written
        raise click.Abort() from None

    located = sum(1 for r in records if r.has_coordinates)
    click.echo(f"\n{located} of {len(records)} repeaters have coordinates.")

    for label, path in (
        ("KML", kml_path),
        ("CSV", csv_path),
        ("GeoJSON", geojson_path),
    ):
        click.echo(f"Generating {label}: {Path(path)}")
    write_outputs(records, kml_path, csv_path, geojson_path)
    click.echo("Done.")


@cli.command()
@click.argument("callsign")
@_register_options
def lookup(
    callsign: str,
    base_url: str | None,
    timeout: float,
    rate_limit_ms: int,
    verbose: bool,
) -> None:
    """Resolve a single CALLSIGN against the register and print the record.

    The repeater list is not fetched, so info and DMR ID are empty.
    """
    _configure_logging(verbose)
    settings = _build_settings(base_url, None, timeout, rate_limit_ms)

    with RateLimitedRequestManager(
        interval_ms=settings.rate_limit_ms,
        user_agent=settings.user_agent,
        timeout=settings.timeout,
    ) as request_manager:
        pipeline = Pipeline(settings, request_manager=request_manager)
        record = pipeline.process_station(
            StationListing(callsign=callsign.strip().upper())
        )

    click.echo(record.model_dump_json(indent=2))
    if record.lookup_status is LookupStatus.ERROR:
        raise click.ClickException(f"Lookup failed: {record.error}")


def main() -> None:
    """Entry point for the ``repeatermap`` console script."""
    cli()
