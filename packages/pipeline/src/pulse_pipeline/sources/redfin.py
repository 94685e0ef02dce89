"""
sources/redfin.py — Redfin Data Center zip-code market tracker.

The tracker is a single gzip-compressed TSV covering every US zip, property
type and period since 2012: several GB decompressed. It is never held in
memory or on disk. Bytes are decompressed as they arrive, split into rows by
the incremental TSV parser and tested against four cheap filters before a
record is built:

  1. zip-level rows only (region_type "zip code", or region_type_id 2)
  2. All Residential (-1) or Single Family Residential (1)
  3. the 5-digit zip in the region label is on the allow-list
  4. period_begin within the trailing 5 years

Matches are handed out in batches (iter_batches) so the caller can upsert
while the stream continues; memory is bounded by one batch.

When both property types exist for the same zip and period they share the
(region_id, period_start) key and the row that appears later in the file wins.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import date
from typing import Any

import polars as pl

from pulse_shared.config import settings
from pulse_shared.constants import (
    REDFIN_LOOKBACK_YEARS,
    REDFIN_PROPERTY_TYPES,
    REDFIN_ZIP_REGION_TYPE_ID,
    REDFIN_ZIP_REGION_TYPES,
)
from pulse_shared.geo import extract_zip
from pulse_shared.models.tables import MARKET_OBSERVATIONS
from pulse_shared.time_utils import parse_iso_date, years_before
from pulse_pipeline.sources.base import BaseSource
from pulse_pipeline.transforms.normalize import coerce_int, coerce_number
from pulse_pipeline.utils.delimited import DelimitedStreamParser
from pulse_pipeline.utils.large_file import (
    check_available_memory,
    scan_progress,
    stream_gzip_chunks,
)

_PROPERTY_TYPE_LABELS = frozenset(label.lower() for label in REDFIN_PROPERTY_TYPES.values())


@dataclass(frozen=True)
class TrackerColumns:
    """Header positions, resolved case-insensitively once per stream."""

    region: int
    period_begin: int
    region_type: int | None
    region_type_id: int | None
    property_type: int | None
    property_type_id: int | None
    median_sale_price: int | None
    homes_sold: int | None
    median_dom: int | None
    inventory: int | None
    price_drops: int | None
    avg_sale_to_list: int | None
    new_listings: int | None

    @classmethod
    def from_header(cls, header: list[str]) -> TrackerColumns:
        index = {name.strip().lower(): i for i, name in enumerate(header)}
        missing = [c for c in ("region", "period_begin") if c not in index]
        if "region_type" not in index and "region_type_id" not in index:
            missing.append("region_type")
        if missing:
            raise ValueError(f"Redfin tracker header is missing: {', '.join(missing)}")
        return cls(**{f: index.get(f) for f in cls.__dataclass_fields__})


@dataclass
class ScanStats:
    rows_scanned: int = 0
    rows_matched: int = 0
    batches: int = 0


class RedfinSource(BaseSource):
    name = "Redfin"

    def __init__(self, *args: Any, url: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.url = url or settings.redfin_tracker_url
        self.stats = ScanStats()
        self._cols: TrackerColumns | None = None
        self._next_log = settings.redfin_progress_every

    # ------------------------------------------------------------------
    # Streaming interface
    # ------------------------------------------------------------------

    async def iter_batches(self, batch_size: int | None = None) -> AsyncIterator[pl.DataFrame]:
        """Yield market_observations frames of at most *batch_size* rows."""
        batch_size = batch_size or settings.upsert_batch_size
        check_available_memory()

        self.stats = ScanStats()
        self._cols = None
        self._next_log = settings.redfin_progress_every
        cutoff = years_before(self.as_of, REDFIN_LOOKBACK_YEARS)
        parser = DelimitedStreamParser(delimiter="\t")
        batch: list[tuple[Any, ...]] = []

        self._log.info("redfin_scan_start", url=self.url, cutoff=cutoff.isoformat())
        with scan_progress("redfin rows scanned") as bar:
            async with self._client() as client:
                async for chunk in stream_gzip_chunks(client, self.url):
                    self._scan(parser.feed(chunk), parser, cutoff, batch, bar)
                    while len(batch) >= batch_size:
                        yield self._flush(batch[:batch_size])
                        del batch[:batch_size]
            self._scan(parser.close(), parser, cutoff, batch, bar)

        while batch:
            yield self._flush(batch[:batch_size])
            del batch[:batch_size]

        self._log.info(
            "redfin_scan_complete",
            rows_scanned=self.stats.rows_scanned,
            rows_matched=self.stats.rows_matched,
            batches=self.stats.batches,
        )

    def _scan(
        self,
        rows: list[list[str]],
        parser: DelimitedStreamParser,
        cutoff: date,
        batch: list[tuple[Any, ...]],
        bar: Any,
    ) -> None:
        if not rows:
            return
        if self._cols is None:
            self._cols = TrackerColumns.from_header(parser.header or [])
        cols = self._cols

        for row in rows:
            record = self._match(row, cols, cutoff)
            if record is not None:
                batch.append(record)

        self.stats.rows_scanned += len(rows)
        bar.update(len(rows))
        if self.stats.rows_scanned >= self._next_log:
            self._log.info(
                "rows_scanned",
                rows=self.stats.rows_scanned,
                matched=self.stats.rows_matched + len(batch),
            )
            while self._next_log <= self.stats.rows_scanned:
                self._next_log += settings.redfin_progress_every

    def _flush(self, records: list[tuple[Any, ...]]) -> pl.DataFrame:
        self.stats.rows_matched += len(records)
        self.stats.batches += 1
        return pl.DataFrame(records, schema=MARKET_OBSERVATIONS.polars_schema, orient="row")

    def _match(self, row: list[str], cols: TrackerColumns, cutoff: date) -> tuple[Any, ...] | None:
        # 1. zip granularity
        zip_level = (
            cols.region_type is not None
            and row[cols.region_type].lower() in REDFIN_ZIP_REGION_TYPES
        ) or (
            cols.region_type_id is not None
            and row[cols.region_type_id] == REDFIN_ZIP_REGION_TYPE_ID
        )
        if not zip_level:
            return None

        # 2. property type, by id when present, else by label
        type_id = row[cols.property_type_id] if cols.property_type_id is not None else ""
        if type_id:
            if type_id not in REDFIN_PROPERTY_TYPES:
                return None
        elif cols.property_type is None or row[cols.property_type].lower() not in _PROPERTY_TYPE_LABELS:
            return None

        # 3. allow-list
        region_id = extract_zip(row[cols.region])
        if region_id is None or not self.region_filter.contains(region_id):
            return None

        # 4. trailing window
        period = parse_iso_date(row[cols.period_begin])
        if period is None or period < cutoff:
            return None

        def field(idx: int | None) -> str | None:
            return row[idx] if idx is not None else None

        return (
            region_id,
            period,
            coerce_number(field(cols.median_sale_price)),
            coerce_int(field(cols.homes_sold)),
            coerce_number(field(cols.median_dom)),
            coerce_int(field(cols.inventory)),
            coerce_number(field(cols.price_drops)),
            coerce_number(field(cols.avg_sale_to_list)),
            coerce_int(field(cols.new_listings)),
        )

    # ------------------------------------------------------------------
    # BaseSource interface (collects every batch; small inputs only)
    # ------------------------------------------------------------------

    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        frames = [df async for df in self.iter_batches(kwargs.get("batch_size"))]
        if not frames:
            return MARKET_OBSERVATIONS.empty_frame()
        return pl.concat(frames, how="vertical")

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        if raw.is_empty():
            return MARKET_OBSERVATIONS.empty_frame()
        deduped = raw.unique(subset=list(MARKET_OBSERVATIONS.key_columns), keep="last", maintain_order=True)
        return MARKET_OBSERVATIONS.conform(deduped)

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self.url,
            "lookback_years": REDFIN_LOOKBACK_YEARS,
            "property_types": REDFIN_PROPERTY_TYPES,
            "description": "Redfin weekly/monthly market tracker by zip code",
        }
