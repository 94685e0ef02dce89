"""
loaders/duckdb_loader.py — Idempotent batched upserts into DuckDB.

All stages funnel their normalized rows through BatchUpserter. It:
  - Accepts a polars DataFrame or any iterable of fixed-arity tuples
  - Splits rows into batches (default 200 rows)
  - Writes each batch as ONE multi-row parameterized
    INSERT … ON CONFLICT (key) DO UPDATE statement, so a batch is atomic
  - Collapses duplicate keys inside a batch (last row wins); a single
    upsert statement cannot touch the same row twice
  - Stops at the first failing batch and raises UpsertError; batches that
    already succeeded stay committed
  - Logs progress every N rows written by the upserter, across calls,
    and returns a LoadResult

Re-running a load with the same input leaves the table unchanged apart from
updated_at.

Usage:
    from pulse_pipeline.loaders.duckdb_loader import BatchUpserter

    upserter = BatchUpserter(conn)
    result = upserter.upsert(VALUE_OBSERVATIONS, df)
    print(result.records_loaded, result.batches_total)
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import islice
from typing import Any

import duckdb
import polars as pl
import structlog

from pulse_shared.config import settings
from pulse_shared.models.tables import TableSpec

log = structlog.get_logger(__name__)


class UpsertError(RuntimeError):
    """A batch upsert failed; the current stage must stop."""

    def __init__(self, table: str, batch: int, cause: Exception) -> None:
        super().__init__(f"{table}: batch {batch} failed: {cause}")
        self.table = table
        self.batch = batch
        self.cause = cause


@dataclass
class LoadResult:
    """Summary of one upsert run against one table."""

    table: str
    records_loaded: int = 0
    records_failed: int = 0
    batches_total: int = 0
    batches_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.records_failed == 0 and self.batches_failed == 0

    @property
    def status(self) -> str:
        if self.success:
            return "success"
        if self.records_loaded > 0:
            return "partial_failure"
        return "failure"

    def merge(self, other: LoadResult) -> LoadResult:
        self.records_loaded += other.records_loaded
        self.records_failed += other.records_failed
        self.batches_total += other.batches_total
        self.batches_failed += other.batches_failed
        self.errors.extend(other.errors)
        self.duration_ms += other.duration_ms
        return self


def build_upsert_sql(spec: TableSpec, n_rows: int) -> str:
    """Multi-row INSERT with an ON CONFLICT update of every non-key column."""
    placeholders = "(" + ", ".join("?" for _ in spec.columns) + ")"
    values = ",\n".join(placeholders for _ in range(n_rows))
    updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in spec.value_columns)
    return (
        f"INSERT INTO {spec.name} ({', '.join(spec.columns)})\n"
        f"VALUES {values}\n"
        f"ON CONFLICT ({', '.join(spec.key_columns)}) DO UPDATE SET "
        f"{updates}, updated_at = now()"
    )


class BatchUpserter:
    """Writes rows to one DuckDB connection; connection lifetime is the caller's."""

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        *,
        batch_size: int | None = None,
        progress_every: int | None = None,
    ) -> None:
        self._conn = conn
        self._batch_size = batch_size or settings.upsert_batch_size
        self._progress_every = progress_every or settings.upsert_progress_every
        self._rows_written = 0
        self._next_progress = self._progress_every

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # ------------------------------------------------------------------
    # Core upsert
    # ------------------------------------------------------------------

    def upsert(self, spec: TableSpec, df: pl.DataFrame) -> LoadResult:
        """Upsert a DataFrame that carries at least spec.columns."""
        if df.is_empty():
            log.warning("upsert_empty_dataframe", table=spec.name)
            return LoadResult(table=spec.name)
        return self.upsert_rows(spec, df.select(spec.columns).iter_rows())

    def upsert_rows(self, spec: TableSpec, rows: Iterable[Sequence[Any]]) -> LoadResult:
        """
        Upsert tuples whose values follow spec.columns order.

        Raises:
            ValueError:  A row has the wrong number of values.
            UpsertError: A batch statement failed.
        """
        result = LoadResult(table=spec.name)
        t0 = time.monotonic()
        loader_log = log.bind(table=spec.name)
        n_cols = len(spec.columns)
        key_idx = [spec.columns.index(k) for k in spec.key_columns]

        it = iter(rows)
        while True:
            batch = list(islice(it, self._batch_size))
            if not batch:
                break
            for row in batch:
                if len(row) != n_cols:
                    raise ValueError(
                        f"{spec.name}: expected {n_cols} values per row, got {len(row)}"
                    )
            deduped = _dedupe_by_key(batch, key_idx)
            result.batches_total += 1
            try:
                self._conn.execute(
                    build_upsert_sql(spec, len(deduped)),
                    [v for row in deduped for v in row],
                )
            except duckdb.Error as exc:
                result.batches_failed += 1
                result.records_failed += len(batch)
                result.errors.append(str(exc))
                result.duration_ms = int((time.monotonic() - t0) * 1000)
                loader_log.error(
                    "batch_failed",
                    batch=result.batches_total,
                    rows_committed=result.records_loaded,
                    error=str(exc),
                )
                raise UpsertError(spec.name, result.batches_total, exc) from exc

            result.records_loaded += len(deduped)
            self._rows_written += len(deduped)
            if self._rows_written >= self._next_progress:
                loader_log.info("upsert_progress", rows=self._rows_written)
                while self._next_progress <= self._rows_written:
                    self._next_progress += self._progress_every

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        loader_log.debug(
            "upsert_complete",
            records_loaded=result.records_loaded,
            batches=result.batches_total,
            duration_ms=result.duration_ms,
        )
        return result


def _dedupe_by_key(batch: list[Sequence[Any]], key_idx: list[int]) -> list[Sequence[Any]]:
    by_key: dict[tuple[Any, ...], Sequence[Any]] = {}
    for row in batch:
        by_key[tuple(row[i] for i in key_idx)] = row
    if len(by_key) == len(batch):
        return batch
    return list(by_key.values())
