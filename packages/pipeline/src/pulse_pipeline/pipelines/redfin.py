"""
pipelines/redfin.py — Streaming Redfin market tracker -> market_observations.

Batches of matched rows are upserted while the download is still running, so
memory stays flat regardless of file size. A failed batch stops the stage;
batches written before it remain.

Usage:
    from pulse_pipeline.pipelines.redfin import run
    result = await run(conn)
"""

from __future__ import annotations

import contextlib
import time
from datetime import date

import duckdb

from pulse_shared.geo import RegionFilter
from pulse_shared.models.tables import MARKET_OBSERVATIONS
from pulse_pipeline.loaders.duckdb_loader import BatchUpserter, LoadResult
from pulse_pipeline.sources.redfin import RedfinSource
from pulse_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="redfin")


async def run(
    conn: duckdb.DuckDBPyConnection,
    *,
    region_filter: RegionFilter | None = None,
    as_of: date | None = None,
    url: str | None = None,
    dry_run: bool = False,
) -> LoadResult:
    log.info("redfin_pipeline_start", dry_run=dry_run)
    t0 = time.monotonic()
    source = RedfinSource(region_filter, as_of=as_of, url=url)
    upserter = BatchUpserter(conn)
    result = LoadResult(table=MARKET_OBSERVATIONS.name)

    # aclosing releases the download as soon as an upsert raises
    async with contextlib.aclosing(source.iter_batches(batch_size=upserter.batch_size)) as batches:
        async for batch in batches:
            if dry_run:
                result.records_loaded += len(batch)
                result.batches_total += 1
                continue
            result.merge(upserter.upsert(MARKET_OBSERVATIONS, batch))

    result.duration_ms = int((time.monotonic() - t0) * 1000)
    log.info(
        "redfin_pipeline_complete",
        rows_scanned=source.stats.rows_scanned,
        rows_matched=source.stats.rows_matched,
        records_loaded=result.records_loaded,
        duration_ms=result.duration_ms,
    )
    return result
