"""
sources/zillow.py — Zillow Research zip-level value and rent indices.

Four wide CSVs (one row per zip, one column per month) are fetched whole,
filtered to the region allow-list, restricted to the trailing 10 years and
unpivoted to long form:

  home_value           ZHVI all homes (SFR + condo), middle tier
  single_family_value  ZHVI single-family
  condo_value          ZHVI condo/co-op
  rent_value           ZORI observed rent index

The variants are joined on (region_id, month); a month missing from one
variant simply leaves that column null. A variant that cannot be fetched or
parsed is logged and skipped. If every variant fails the source raises
SourceUnavailableError.

Usage:
    source = ZillowSource()
    df = await source.run()          # value_observations schema
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

import httpx
import polars as pl

from pulse_shared.config import settings
from pulse_shared.constants import ZILLOW_LOOKBACK_YEARS, ZILLOW_VARIANTS
from pulse_shared.models.tables import VALUE_OBSERVATIONS
from pulse_shared.time_utils import years_before
from pulse_pipeline.sources.base import BaseSource, SourceUnavailableError
from pulse_pipeline.transforms.normalize import coerce_number, drop_all_null_rows
from pulse_pipeline.utils.delimited import read_delimited
from pulse_pipeline.utils.retry import TRANSIENT_HTTP_ERRORS, with_retry

REGION_COLUMN = "RegionName"
_DATE_COLUMN_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

RAW_SCHEMA: dict[str, type[pl.DataType]] = {
    "variant": pl.String,
    "region_id": pl.String,
    "month": pl.String,
    "raw_value": pl.String,
}


@with_retry(max_attempts=3, retry_on=TRANSIENT_HTTP_ERRORS)
async def _fetch_text(client: httpx.AsyncClient, url: str) -> str:
    resp = await client.get(url)
    resp.raise_for_status()
    return resp.text


class ZillowSource(BaseSource):
    name = "Zillow"

    def variant_url(self, variant: str) -> str:
        return f"{settings.zillow_base_url}/{ZILLOW_VARIANTS[variant]}"

    # ------------------------------------------------------------------
    # extract
    # ------------------------------------------------------------------

    async def extract(self, *, variants: list[str] | None = None, **kwargs: Any) -> pl.DataFrame:
        """
        Fetch each variant and return long-form string rows:
        (variant, region_id, month, raw_value).
        """
        wanted = variants or list(ZILLOW_VARIANTS)
        cutoff = years_before(self.as_of, ZILLOW_LOOKBACK_YEARS)
        frames: list[pl.DataFrame] = []
        failed: list[str] = []

        async with self._client() as client:
            for variant in wanted:
                url = self.variant_url(variant)
                try:
                    body = await _fetch_text(client, url)
                    frame = self._melt_variant(variant, body, cutoff)
                except (httpx.HTTPError, ValueError) as exc:
                    self._log.warning(
                        "zillow_variant_failed", variant=variant, url=url, error=str(exc)
                    )
                    failed.append(variant)
                    continue
                self._log.info("zillow_variant_loaded", variant=variant, rows=len(frame))
                frames.append(frame)

        if len(failed) == len(wanted):
            raise SourceUnavailableError(f"all Zillow variants failed: {', '.join(failed)}")
        if not frames:
            return pl.DataFrame(schema=RAW_SCHEMA)
        return pl.concat(frames, how="vertical")

    def _melt_variant(self, variant: str, body: str, cutoff: date) -> pl.DataFrame:
        df = read_delimited(body)
        if REGION_COLUMN not in df.columns:
            raise ValueError(f"{variant}: missing {REGION_COLUMN} column")
        date_columns = [
            c for c in df.columns
            if _DATE_COLUMN_RE.match(c) and date.fromisoformat(c) >= cutoff
        ]
        if not date_columns:
            return pl.DataFrame(schema=RAW_SCHEMA)

        # Mirrors normalize_region_code
        region = (
            pl.col(REGION_COLUMN)
            .str.strip_chars()
            .str.replace(r"\.0$", "")
            .str.zfill(5)
        )
        return (
            df.with_columns(region.alias("region_id"))
            .filter(pl.col("region_id").is_in(sorted(self.region_filter.codes)))
            .select(["region_id", *date_columns])
            .unpivot(
                index="region_id",
                on=date_columns,
                variable_name="month",
                value_name="raw_value",
            )
            .with_columns(pl.lit(variant).alias("variant"))
            .select(list(RAW_SCHEMA))
        )

    # ------------------------------------------------------------------
    # transform
    # ------------------------------------------------------------------

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """Pivot variants into columns and drop months with no values at all."""
        if raw.is_empty():
            return VALUE_OBSERVATIONS.empty_frame()

        long = raw.with_columns(
            pl.col("raw_value").map_elements(coerce_number, return_dtype=pl.Float64).alias("value"),
            pl.col("month").str.to_date("%Y-%m-%d"),
        )
        wide = long.pivot(
            on="variant",
            index=["region_id", "month"],
            values="value",
            aggregate_function="last",
        )
        missing = [c for c in ZILLOW_VARIANTS if c not in wide.columns]
        if missing:
            wide = wide.with_columns([pl.lit(None, dtype=pl.Float64).alias(c) for c in missing])

        wide = drop_all_null_rows(wide, list(ZILLOW_VARIANTS))
        return VALUE_OBSERVATIONS.conform(wide).sort(["region_id", "month"])

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "variants": {v: self.variant_url(v) for v in ZILLOW_VARIANTS},
            "lookback_years": ZILLOW_LOOKBACK_YEARS,
            "description": "Zillow ZHVI / ZORI zip-level monthly indices",
        }
