"""
tests/test_pipelines/test_redfin_pipeline.py — Streaming Redfin stage against DuckDB.
"""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from pulse_shared.models.tables import MARKET_OBSERVATIONS
from pulse_pipeline.loaders.duckdb_loader import BatchUpserter, UpsertError
from pulse_pipeline.pipelines import redfin
from pulse_pipeline.sources.redfin import RedfinSource

TRACKER_URL = "https://redfin.example.test/zip_code_market_tracker.tsv000.gz"

HEADER = [
    "period_begin", "region_type", "region", "property_type", "property_type_id",
    "median_sale_price", "homes_sold", "median_dom", "inventory",
    "price_drops", "avg_sale_to_list", "new_listings",
]

ROWS = [
    ["2025-03-01", "zip code", "Zip Code: 78701", "All Residential", "-1",
     "550000", "40", "30", "100", "0.25", "0.98", "50"],
    ["2025-03-01", "zip code", "Zip Code: 78701", "Condo/Co-op", "3",
     "350000", "12", "45", "60", "0.30", "0.96", "20"],
    ["2025-03-01", "zip code", "Zip Code: 10001", "All Residential", "-1",
     "1250000", "80", "60", "400", "0.10", "0.99", "90"],
]


@pytest.fixture
def tracker_route(mock_http, gzip_tsv):
    return mock_http.get(TRACKER_URL).mock(
        return_value=httpx.Response(200, content=gzip_tsv([HEADER, *ROWS]))
    )


@pytest.mark.asyncio
async def test_persists_only_matching_rows(duck_conn, row_count, tracker_route, region_filter, as_of):
    result = await redfin.run(duck_conn, region_filter=region_filter, as_of=as_of, url=TRACKER_URL)

    assert result.success
    assert result.records_loaded == 1
    assert row_count("market_observations") == 1
    assert duck_conn.execute(
        "SELECT region_id, period_start, median_sale_price, homes_sold FROM market_observations"
    ).fetchall() == [("78701", date(2025, 3, 1), 550000.0, 40)]


@pytest.mark.asyncio
async def test_rerun_is_idempotent(duck_conn, row_count, tracker_route, region_filter, as_of):
    for _ in range(2):
        await redfin.run(duck_conn, region_filter=region_filter, as_of=as_of, url=TRACKER_URL)
    assert tracker_route.call_count == 2
    assert row_count("market_observations") == 1


@pytest.mark.asyncio
async def test_dry_run_counts_without_writing(duck_conn, row_count, tracker_route, region_filter, as_of):
    result = await redfin.run(
        duck_conn, region_filter=region_filter, as_of=as_of, url=TRACKER_URL, dry_run=True
    )
    assert result.records_loaded == 1
    assert row_count("market_observations") == 0


@pytest.mark.asyncio
async def test_failed_upsert_closes_stream(duck_conn, monkeypatch, region_filter, as_of):
    closed: list[bool] = []

    async def fake_batches(self, batch_size=None):
        try:
            for _ in range(3):
                yield MARKET_OBSERVATIONS.empty_frame()
        finally:
            closed.append(True)

    def failing_upsert(self, spec, df):
        raise UpsertError(spec.name, 1, RuntimeError("disk full"))

    monkeypatch.setattr(RedfinSource, "iter_batches", fake_batches)
    monkeypatch.setattr(BatchUpserter, "upsert", failing_upsert)

    with pytest.raises(UpsertError):
        await redfin.run(duck_conn, region_filter=region_filter, as_of=as_of, url=TRACKER_URL)
    assert closed == [True]
