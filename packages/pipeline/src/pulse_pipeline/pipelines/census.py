"""
pipelines/census.py — ACS 5-year demographics -> demographic_observations.

Usage:
    from pulse_pipeline.pipelines.census import run
    result = await run(conn)
    result = await run(conn, vintages=[2022, 2021])
"""

from __future__ import annotations

from datetime import date

import duckdb

from pulse_shared.geo import RegionFilter
from pulse_shared.models.tables import DEMOGRAPHIC_OBSERVATIONS
from pulse_pipeline.loaders.duckdb_loader import BatchUpserter, LoadResult
from pulse_pipeline.sources.census import CensusSource
from pulse_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="census")


async def run(
    conn: duckdb.DuckDBPyConnection,
    *,
    region_filter: RegionFilter | None = None,
    as_of: date | None = None,
    vintages: list[int] | None = None,
    dry_run: bool = False,
) -> LoadResult:
    """
    Load the most recent available ACS vintage.

    Raises:
        SourceUnavailableError: no candidate vintage answered.
        UpsertError:            a batch write failed.
    """
    log.info("census_pipeline_start", vintages=vintages, dry_run=dry_run)
    source = CensusSource(region_filter, as_of=as_of)
    df = await source.run(vintages=vintages)

    if dry_run:
        log.info("dry_run_skip_write", table=DEMOGRAPHIC_OBSERVATIONS.name, rows=len(df))
        return LoadResult(table=DEMOGRAPHIC_OBSERVATIONS.name, records_loaded=len(df))

    return BatchUpserter(conn).upsert(DEMOGRAPHIC_OBSERVATIONS, df)
