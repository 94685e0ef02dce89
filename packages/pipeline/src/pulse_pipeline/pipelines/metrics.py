"""
pipelines/metrics.py — Derive per-region metrics from the observation tables.

For each allow-listed region with at least one value observation:
  1. read the latest value, demographic and market rows
  2. read the home-value history
  3. compute the DerivedMetric (transforms.market_metrics)
  4. upsert it keyed by (region_id, run date)
A region whose computation or write fails is logged with its region_id and
skipped; the others continue. Re-running on the same day overwrites that
day's rows.

Usage:
    from pulse_pipeline.pipelines.metrics import run
    result = await run(conn)
    result = await run(conn, as_of=date(2025, 1, 1), dry_run=True)
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any

import duckdb
import polars as pl

from pulse_shared.geo import RegionFilter
from pulse_shared.models.metrics import DerivedMetric
from pulse_shared.models.tables import (
    DEMOGRAPHIC_OBSERVATIONS,
    DERIVED_METRICS,
    MARKET_OBSERVATIONS,
    VALUE_OBSERVATIONS,
    TableSpec,
)
from pulse_pipeline.loaders.duckdb_loader import BatchUpserter, LoadResult
from pulse_pipeline.transforms.market_metrics import (
    FORECAST_HORIZON_MONTHS,
    MetricAssumptions,
    compute_region_metrics,
)
from pulse_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="metrics")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _latest_row(
    conn: duckdb.DuckDBPyConnection,
    spec: TableSpec,
    order_col: str,
    region_id: str,
) -> dict[str, Any] | None:
    df = conn.execute(
        f"SELECT {', '.join(spec.columns)} FROM {spec.name} "
        f"WHERE region_id = ? ORDER BY {order_col} DESC LIMIT 1",
        [region_id],
    ).pl()
    return None if df.is_empty() else df.row(0, named=True)


def _value_history(conn: duckdb.DuckDBPyConnection, region_id: str) -> pl.DataFrame:
    return conn.execute(
        f"SELECT month, home_value FROM {VALUE_OBSERVATIONS.name} "
        "WHERE region_id = ? ORDER BY month",
        [region_id],
    ).pl()


def regions_with_values(conn: duckdb.DuckDBPyConnection, region_filter: RegionFilter) -> list[str]:
    rows = conn.execute(
        f"SELECT DISTINCT region_id FROM {VALUE_OBSERVATIONS.name} ORDER BY region_id"
    ).fetchall()
    return [r[0] for r in rows if region_filter.contains(r[0])]


def compute_for_region(
    conn: duckdb.DuckDBPyConnection,
    region_id: str,
    computed_on: date,
    assumptions: MetricAssumptions,
) -> DerivedMetric | None:
    latest_value = _latest_row(conn, VALUE_OBSERVATIONS, "month", region_id)
    if latest_value is None:
        return None
    history = _value_history(conn, region_id)
    trailing = (
        history.filter(pl.col("home_value").is_not_null())
        .tail(FORECAST_HORIZON_MONTHS)["home_value"]
        .to_list()
    )
    return compute_region_metrics(
        region_id,
        computed_on,
        latest_value=latest_value,
        latest_demographics=_latest_row(conn, DEMOGRAPHIC_OBSERVATIONS, "vintage_year", region_id),
        latest_market=_latest_row(conn, MARKET_OBSERVATIONS, "period_start", region_id),
        value_history=history["home_value"].to_list(),
        trailing_values=trailing,
        assumptions=assumptions,
    )


# ---------------------------------------------------------------------------
# Stage entrypoint
# ---------------------------------------------------------------------------

async def run(
    conn: duckdb.DuckDBPyConnection,
    *,
    region_filter: RegionFilter | None = None,
    as_of: date | None = None,
    assumptions: MetricAssumptions | None = None,
    dry_run: bool = False,
) -> LoadResult:
    """
    Compute and upsert derived_metrics for every region with value data.

    Returns:
        LoadResult where records_failed counts regions whose computation or
        write raised, and errors holds "<region_id>: <message>" entries.
    """
    region_filter = region_filter or RegionFilter.from_settings()
    computed_on = as_of or date.today()
    assumptions = assumptions or MetricAssumptions.from_settings()
    t0 = time.monotonic()

    regions = regions_with_values(conn, region_filter)
    log.info("metrics_pipeline_start", regions=len(regions), computed_on=computed_on.isoformat())

    upserter = BatchUpserter(conn)
    result = LoadResult(table=DERIVED_METRICS.name)
    failures: list[str] = []
    skipped = 0
    for region_id in regions:
        try:
            metric = compute_for_region(conn, region_id, computed_on, assumptions)
            if metric is None:
                skipped += 1
                log.debug("region_metrics_skipped", region_id=region_id, reason="no_home_value")
                continue
            if dry_run:
                result.records_loaded += 1
            else:
                result.merge(upserter.upsert_rows(DERIVED_METRICS, [metric.to_row()]))
        except Exception as exc:
            log.error("region_metrics_failed", region_id=region_id, error=str(exc), exc_info=True)
            failures.append(f"{region_id}: {exc}")

    result.records_failed += len(failures)
    result.errors.extend(failures)
    result.duration_ms = int((time.monotonic() - t0) * 1000)
    log.info(
        "metrics_pipeline_complete",
        computed=result.records_loaded,
        skipped=skipped,
        failed=len(failures),
        duration_ms=result.duration_ms,
    )
    return result
