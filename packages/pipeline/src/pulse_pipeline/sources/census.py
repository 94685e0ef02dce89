"""
sources/census.py — Census ACS 5-year demographics by ZCTA.

The ACS API answers one request per vintage with a JSON array of arrays whose
first row is the header. Newer vintages are published late, so the source
walks candidate vintages most-recent-first and keeps the first one that
returns a non-empty table:

    try vintage N ── ok ──> parse, done
        │ non-2xx / transport error / empty body
        v
    try vintage N-1 ... ── exhausted ──> SourceUnavailableError

Raw counts are converted with coerce_number (ACS sentinels become None) and
shares are computed with safe_pct, so a suppressed count yields a null rate.

Usage:
    source = CensusSource()
    df = await source.run()                     # latest published vintage
    df = await source.run(vintages=[2022])      # pin a vintage
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import polars as pl

from pulse_shared.config import settings
from pulse_shared.constants import CENSUS_GEO_COLUMN, CENSUS_VARIABLES, CENSUS_VINTAGE_FALLBACKS
from pulse_shared.geo import normalize_region_code
from pulse_shared.models.tables import DEMOGRAPHIC_OBSERVATIONS
from pulse_pipeline.sources.base import BaseSource, SourceUnavailableError
from pulse_pipeline.transforms.normalize import (
    coerce_int,
    coerce_number,
    round_or_none,
    safe_pct,
    sum_all,
)
from pulse_pipeline.utils.retry import TRANSIENT_HTTP_ERRORS, with_retry


@with_retry(max_attempts=3, retry_on=TRANSIENT_HTTP_ERRORS)
async def _get(client: httpx.AsyncClient, url: str, params: dict[str, str]) -> httpx.Response:
    return await client.get(url, params=params)


class CensusSource(BaseSource):
    name = "CensusACS"

    def default_vintages(self) -> list[int]:
        """Configured vintages, else the years before as_of, newest first."""
        configured = settings.census_vintage_list
        if configured:
            return configured
        return [self.as_of.year - i for i in range(1, CENSUS_VINTAGE_FALLBACKS + 1)]

    def vintage_url(self, year: int) -> str:
        return f"{settings.census_api_url}/{year}/acs/acs5"

    def query_params(self) -> dict[str, str]:
        params = {
            "get": "NAME," + ",".join(CENSUS_VARIABLES.values()),
            "for": f"{CENSUS_GEO_COLUMN}:*",
        }
        if settings.census_api_key:
            params["key"] = settings.census_api_key
        return params

    # ------------------------------------------------------------------
    # extract
    # ------------------------------------------------------------------

    async def extract(self, *, vintages: list[int] | None = None, **kwargs: Any) -> pl.DataFrame:
        """
        Return one string row per allow-listed ZCTA for the first vintage
        that answers, with columns vintage_year, region_id and the
        CENSUS_VARIABLES field names.
        """
        candidates = vintages or self.default_vintages()
        async with self._client() as client:
            for year in candidates:
                table = await self._fetch_vintage(client, year)
                if table is None:
                    continue
                self._log.info("census_vintage_selected", vintage=year, rows=len(table) - 1)
                return self._filter_table(year, table)

        raise SourceUnavailableError(
            f"no ACS vintage available (tried {', '.join(map(str, candidates))})"
        )

    async def _fetch_vintage(self, client: httpx.AsyncClient, year: int) -> list[list[Any]] | None:
        url = self.vintage_url(year)
        try:
            resp = await _get(client, url, self.query_params())
        except httpx.HTTPError as exc:
            self._log.warning("census_vintage_unreachable", vintage=year, error=str(exc))
            return None
        if not resp.is_success:
            self._log.warning("census_vintage_unavailable", vintage=year, status=resp.status_code)
            return None
        try:
            table = resp.json()
        except json.JSONDecodeError:
            self._log.warning("census_vintage_invalid_json", vintage=year)
            return None
        if not isinstance(table, list) or len(table) < 2:
            self._log.warning("census_vintage_empty", vintage=year)
            return None
        return table

    def _filter_table(self, year: int, table: list[list[Any]]) -> pl.DataFrame:
        header = [str(h) for h in table[0]]
        if CENSUS_GEO_COLUMN not in header:
            raise ValueError(f"ACS {year}: response has no '{CENSUS_GEO_COLUMN}' column")
        geo_idx = header.index(CENSUS_GEO_COLUMN)
        var_idx = {field: header.index(code) for field, code in CENSUS_VARIABLES.items() if code in header}

        columns: dict[str, list[Any]] = {"vintage_year": [], "region_id": []}
        columns.update({field: [] for field in CENSUS_VARIABLES})
        for row in table[1:]:
            if len(row) <= geo_idx:
                continue
            region_id = normalize_region_code(row[geo_idx])
            if region_id is None or not self.region_filter.contains(region_id):
                continue
            columns["vintage_year"].append(year)
            columns["region_id"].append(region_id)
            for field in CENSUS_VARIABLES:
                idx = var_idx.get(field)
                value = row[idx] if idx is not None and idx < len(row) else None
                columns[field].append(None if value is None else str(value))

        schema = {"vintage_year": pl.Int32, "region_id": pl.String}
        schema.update({field: pl.String for field in CENSUS_VARIABLES})
        return pl.DataFrame(columns, schema=schema)

    # ------------------------------------------------------------------
    # transform
    # ------------------------------------------------------------------

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        if raw.is_empty():
            return DEMOGRAPHIC_OBSERVATIONS.empty_frame()
        rows = [demographics_from_counts(rec) for rec in raw.iter_rows(named=True)]
        return pl.DataFrame(rows, schema=DEMOGRAPHIC_OBSERVATIONS.polars_schema, orient="row")

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self.vintage_url(self.default_vintages()[0]),
            "vintages": self.default_vintages(),
            "variables": CENSUS_VARIABLES,
            "description": "ACS 5-year estimates by zip code tabulation area",
        }


def demographics_from_counts(rec: dict[str, Any]) -> tuple[Any, ...]:
    """One demographic_observations row (column order) from raw ACS strings."""
    n = {field: coerce_number(rec.get(field)) for field in CENSUS_VARIABLES}

    degrees = sum_all(n[f] for f in ("bachelors", "masters", "professional", "doctorate"))
    owners_25_44 = sum_all((n["owners_25_34"], n["owners_35_44"]))
    owners_75_plus = sum_all((n["owners_75_84"], n["owners_85_plus"]))

    return (
        rec["region_id"],
        rec["vintage_year"],
        coerce_int(rec.get("population")),
        n["median_income"],
        n["median_age"],
        round_or_none(safe_pct(n["owner_occupied"], n["tenure_total"])),
        round_or_none(safe_pct(n["below_poverty"], n["poverty_total"])),
        round_or_none(safe_pct(degrees, n["education_total"])),
        round_or_none(safe_pct(n["work_from_home"], n["commute_total"])),
        coerce_int(rec.get("housing_units")),
        round_or_none(safe_pct(n["family_households"], n["households_total"])),
        round_or_none(safe_pct(owners_25_44, n["owners_total"])),
        round_or_none(safe_pct(owners_75_plus, n["owners_total"])),
    )
