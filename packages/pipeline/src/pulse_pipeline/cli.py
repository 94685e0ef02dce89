"""
cli.py — Click entrypoint for the ingestion run.

Usage:
    pulse-ingest                       # all stages
    pulse-ingest --zillow --metrics    # selected stages, still in pipeline order
    pulse-ingest --redfin --dry-run
    pulse-ingest --census --census-vintage 2022 --census-vintage 2021

Exit status is 1 only when the database cannot be opened (or the runner
itself breaks); individual stage failures are reported in the summary.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime

import click
import duckdb

from pulse_shared.config import settings
from pulse_shared.db import connect, ensure_schema
from pulse_shared.geo import RegionFilter
from pulse_pipeline.runner import format_summary, run_stages
from pulse_pipeline.utils.logging import configure_logging, get_logger

log = get_logger(__name__)


@click.command()
@click.option("--zillow", "zillow_", is_flag=True, help="Zillow value/rent indices")
@click.option("--census", "census_", is_flag=True, help="Census ACS demographics")
@click.option("--redfin", "redfin_", is_flag=True, help="Redfin market tracker")
@click.option("--metrics", "metrics_", is_flag=True, help="Derived metrics")
@click.option("--all", "run_all", is_flag=True, help="Run every stage (default when no stage is given)")
@click.option("--dry-run", is_flag=True, help="Fetch and compute but do not write")
@click.option("--census-vintage", "vintages", type=int, multiple=True, help="ACS vintage to try (repeatable, newest first)")
@click.option("--as-of", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Run date for trailing windows and metrics")
@click.option("--database", default=None, help="DuckDB path or :memory: (default: PULSE_DATABASE)")
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level",
)
def main(
    zillow_: bool,
    census_: bool,
    redfin_: bool,
    metrics_: bool,
    run_all: bool,
    dry_run: bool,
    vintages: tuple[int, ...],
    as_of: datetime | None,
    database: str | None,
    log_level: str,
) -> None:
    """Ingest Zillow, Census and Redfin data and derive regional metrics."""
    configure_logging(log_level=log_level)
    flags = {"zillow": zillow_, "census": census_, "redfin": redfin_, "metrics": metrics_}
    selected = [] if run_all else [stage for stage, on in flags.items() if on]
    run_date = as_of.date() if as_of is not None else None

    try:
        conn = connect(database)
        ensure_schema(conn)
    except (duckdb.Error, OSError) as exc:
        log.error("database_unavailable", database=database or settings.pulse_database, error=str(exc))
        click.echo(f"Cannot open database: {exc}", err=True)
        sys.exit(1)

    stage_options = {"census": {"vintages": list(vintages) or None}}
    try:
        results = asyncio.run(
            run_stages(
                conn,
                selected,
                region_filter=RegionFilter.from_settings(),
                as_of=run_date,
                dry_run=dry_run,
                stage_options=stage_options,
            )
        )
    except Exception as exc:
        log.error("run_failed", error=str(exc), exc_info=True)
        click.echo(f"Run failed: {exc}", err=True)
        sys.exit(1)
    finally:
        conn.close()

    click.echo("Pulse ingest summary:")
    click.echo(format_summary(results))


if __name__ == "__main__":
    main()
