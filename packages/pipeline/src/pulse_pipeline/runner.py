"""
runner.py — Runs the selected stages in order against one connection.

Stages always run in the order zillow -> census -> redfin -> metrics, one
at a time. A stage that raises is logged and recorded as failed; the stages
after it still run (metrics simply works with whatever is in the tables).

Usage:
    from pulse_pipeline.runner import run_stages, format_summary

    results = await run_stages(conn, ["zillow", "metrics"])
    print(format_summary(results))
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import duckdb

from pulse_shared.constants import STAGE_ORDER, StageName
from pulse_shared.geo import RegionFilter
from pulse_pipeline.loaders.duckdb_loader import LoadResult
from pulse_pipeline.pipelines import census, metrics, redfin, zillow
from pulse_pipeline.utils.logging import get_logger

log = get_logger(__name__)

StageFn = Callable[..., Awaitable[LoadResult]]

STAGES: dict[StageName, StageFn] = {
    "zillow": zillow.run,
    "census": census.run,
    "redfin": redfin.run,
    "metrics": metrics.run,
}


@dataclass
class StageResult:
    stage: str
    status: str = "pending"
    rows: int = 0
    failed_entities: int = 0
    duration_s: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "success"


def order_stages(selected: Iterable[str]) -> list[StageName]:
    """Return the selected stages in pipeline order; empty selection = all."""
    wanted = set(selected)
    unknown = wanted - set(STAGE_ORDER)
    if unknown:
        raise ValueError(f"Unknown stage(s): {', '.join(sorted(unknown))}")
    if not wanted:
        return list(STAGE_ORDER)
    return [s for s in STAGE_ORDER if s in wanted]


async def run_stages(
    conn: duckdb.DuckDBPyConnection,
    selected: Iterable[str],
    *,
    region_filter: RegionFilter | None = None,
    as_of: date | None = None,
    dry_run: bool = False,
    stage_options: dict[str, dict[str, Any]] | None = None,
) -> list[StageResult]:
    region_filter = region_filter or RegionFilter.from_settings()
    stage_options = stage_options or {}
    results: list[StageResult] = []

    for stage in order_stages(selected):
        stage_log = log.bind(stage=stage)
        stage_log.info("stage_start", dry_run=dry_run)
        outcome = StageResult(stage=stage)
        t0 = time.monotonic()
        try:
            load = await STAGES[stage](
                conn,
                region_filter=region_filter,
                as_of=as_of,
                dry_run=dry_run,
                **stage_options.get(stage, {}),
            )
        except Exception as exc:
            outcome.status = "failed"
            outcome.errors.append(f"{type(exc).__name__}: {exc}")
            stage_log.error("stage_failed", error=str(exc), exc_info=True)
        else:
            outcome.rows = load.records_loaded
            outcome.failed_entities = load.records_failed
            outcome.errors.extend(load.errors)
            outcome.status = "success" if load.success else "partial_failure"
        outcome.duration_s = round(time.monotonic() - t0, 2)
        stage_log.info(
            "stage_complete",
            status=outcome.status,
            rows=outcome.rows,
            duration_s=outcome.duration_s,
        )
        results.append(outcome)

    return results


def format_summary(results: list[StageResult]) -> str:
    lines = [f"  {'stage':10s} {'status':16s} {'rows':>10s} {'seconds':>9s}"]
    for r in results:
        marker = {"success": "✓", "failed": "✗", "partial_failure": "⚠"}.get(r.status, "?")
        lines.append(
            f"{marker} {r.stage:10s} {r.status:16s} {r.rows:>10,d} {r.duration_s:>9.2f}"
        )
        for err in r.errors[:5]:
            lines.append(f"      {err}")
        if len(r.errors) > 5:
            lines.append(f"      … {len(r.errors) - 5} more")
    total = sum(r.duration_s for r in results)
    lines.append(f"  {'total':10s} {'':16s} {sum(r.rows for r in results):>10,d} {total:>9.2f}")
    return "\n".join(lines)
