"""
pipelines/zillow.py — Zillow value/rent indices -> value_observations.

Usage:
    from pulse_pipeline.pipelines.zillow import run
    result = await run(conn)
    result = await run(conn, dry_run=True)      # fetch + transform, no writes
"""

from __future__ import annotations

from datetime import date

import duckdb

from pulse_shared.geo import RegionFilter
from pulse_shared.models.tables import VALUE_OBSERVATIONS
from pulse_pipeline.loaders.duckdb_loader import BatchUpserter, LoadResult
from pulse_pipeline.sources.zillow import ZillowSource
from pulse_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="zillow")


async def run(
    conn: duckdb.DuckDBPyConnection,
    *,
    region_filter: RegionFilter | None = None,
    as_of: date | None = None,
    variants: list[str] | None = None,
    dry_run: bool = False,
) -> LoadResult:
    """
    Fetch the Zillow variants, join them per (region, month) and upsert.

    Raises:
        SourceUnavailableError: every variant failed.
        UpsertError:            a batch write failed.
    """
    log.info("zillow_pipeline_start", dry_run=dry_run)
    source = ZillowSource(region_filter, as_of=as_of)
    df = await source.run(variants=variants)

    if dry_run:
        log.info("dry_run_skip_write", table=VALUE_OBSERVATIONS.name, rows=len(df))
        return LoadResult(table=VALUE_OBSERVATIONS.name, records_loaded=len(df))

    return BatchUpserter(conn).upsert(VALUE_OBSERVATIONS, df)
