"""
tests/test_pipelines/test_runner.py — Stage ordering and failure isolation.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from pulse_pipeline import runner
from pulse_pipeline.loaders.duckdb_loader import LoadResult
from pulse_pipeline.runner import StageResult, format_summary, order_stages, run_stages


def _stage_mocks(calls: list[str], fail: str | None = None) -> dict[str, AsyncMock]:
    def make(stage: str) -> AsyncMock:
        async def _run(conn, **kwargs):
            calls.append(stage)
            if stage == fail:
                raise RuntimeError(f"{stage} exploded")
            return LoadResult(table=stage, records_loaded=10)

        return AsyncMock(side_effect=_run)

    return {stage: make(stage) for stage in ("zillow", "census", "redfin", "metrics")}


class TestOrderStages:
    def test_empty_selection_is_all(self):
        assert order_stages([]) == ["zillow", "census", "redfin", "metrics"]

    def test_selection_follows_pipeline_order(self):
        assert order_stages(["metrics", "zillow"]) == ["zillow", "metrics"]

    def test_unknown_stage(self):
        with pytest.raises(ValueError, match="bogus"):
            order_stages(["zillow", "bogus"])


class TestRunStages:
    @pytest.mark.asyncio
    async def test_runs_selected_in_order(self, duck_conn, region_filter):
        calls: list[str] = []
        with patch.dict(runner.STAGES, _stage_mocks(calls)):
            results = await run_stages(duck_conn, ["metrics", "census"], region_filter=region_filter)
        assert calls == ["census", "metrics"]
        assert [r.stage for r in results] == ["census", "metrics"]
        assert all(r.ok and r.rows == 10 for r in results)

    @pytest.mark.asyncio
    async def test_failed_stage_does_not_stop_later_stages(self, duck_conn, region_filter):
        calls: list[str] = []
        with patch.dict(runner.STAGES, _stage_mocks(calls, fail="census")):
            results = await run_stages(duck_conn, [], region_filter=region_filter)
        assert calls == ["zillow", "census", "redfin", "metrics"]
        by_stage = {r.stage: r for r in results}
        assert by_stage["census"].status == "failed"
        assert by_stage["census"].errors == ["RuntimeError: census exploded"]
        assert by_stage["metrics"].ok

    @pytest.mark.asyncio
    async def test_passes_run_context_and_stage_options(self, duck_conn, region_filter, as_of):
        calls: list[str] = []
        mocks = _stage_mocks(calls)
        with patch.dict(runner.STAGES, mocks):
            await run_stages(
                duck_conn,
                ["census"],
                region_filter=region_filter,
                as_of=as_of,
                dry_run=True,
                stage_options={"census": {"vintages": [2022]}},
            )
        mocks["census"].assert_awaited_once_with(
            duck_conn, region_filter=region_filter, as_of=as_of, dry_run=True, vintages=[2022]
        )

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self, duck_conn, region_filter):
        partial = LoadResult(table="derived_metrics", records_loaded=3, records_failed=1, errors=["78702: boom"])
        with patch.dict(runner.STAGES, {"metrics": AsyncMock(return_value=partial)}):
            results = await run_stages(duck_conn, ["metrics"], region_filter=region_filter)
        assert results[0].status == "partial_failure"
        assert results[0].failed_entities == 1
        assert results[0].errors == ["78702: boom"]


class TestFormatSummary:
    def test_lists_each_stage_and_errors(self):
        text = format_summary([
            StageResult(stage="zillow", status="success", rows=1200, duration_s=1.5),
            StageResult(stage="census", status="failed", errors=["SourceUnavailableError: no ACS vintage"]),
        ])
        lines = text.splitlines()
        assert "zillow" in lines[1] and "1,200" in lines[1]
        assert "failed" in lines[2]
        assert "no ACS vintage" in lines[3]
        assert lines[-1].strip().startswith("total")
