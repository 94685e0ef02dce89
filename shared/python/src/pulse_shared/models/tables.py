"""
Table definitions for the four persisted datasets.

A TableSpec carries everything the loader, the DDL and the source adapters
need to agree on: ordered columns, natural-key columns, DuckDB column types
and the matching polars schema.
"""

from __future__ import annotations

from dataclasses import dataclass

import polars as pl

_DUCK_TO_POLARS: dict[str, type[pl.DataType]] = {
    "VARCHAR": pl.String,
    "DATE": pl.Date,
    "INTEGER": pl.Int32,
    "BIGINT": pl.Int64,
    "DOUBLE": pl.Float64,
}


@dataclass(frozen=True)
class TableSpec:
    name: str
    key_columns: tuple[str, ...]
    column_types: tuple[tuple[str, str], ...]

    @property
    def columns(self) -> list[str]:
        return [c for c, _ in self.column_types]

    @property
    def value_columns(self) -> list[str]:
        return [c for c in self.columns if c not in self.key_columns]

    @property
    def polars_schema(self) -> dict[str, type[pl.DataType]]:
        return {c: _DUCK_TO_POLARS[t] for c, t in self.column_types}

    def empty_frame(self) -> pl.DataFrame:
        return pl.DataFrame(schema=self.polars_schema)

    def conform(self, df: pl.DataFrame) -> pl.DataFrame:
        """Select and cast *df* to this table's column order and types."""
        return df.select(
            [pl.col(c).cast(dtype, strict=False) for c, dtype in self.polars_schema.items()]
        )

    def create_sql(self) -> str:
        cols = ",\n    ".join(f"{c} {t}" for c, t in self.column_types)
        return (
            f"CREATE TABLE IF NOT EXISTS {self.name} (\n"
            f"    {cols},\n"
            f"    updated_at TIMESTAMP DEFAULT current_timestamp,\n"
            f"    PRIMARY KEY ({', '.join(self.key_columns)})\n"
            f")"
        )


VALUE_OBSERVATIONS = TableSpec(
    name="value_observations",
    key_columns=("region_id", "month"),
    column_types=(
        ("region_id", "VARCHAR"),
        ("month", "DATE"),
        ("home_value", "DOUBLE"),
        ("single_family_value", "DOUBLE"),
        ("condo_value", "DOUBLE"),
        ("rent_value", "DOUBLE"),
    ),
)

DEMOGRAPHIC_OBSERVATIONS = TableSpec(
    name="demographic_observations",
    key_columns=("region_id", "vintage_year"),
    column_types=(
        ("region_id", "VARCHAR"),
        ("vintage_year", "INTEGER"),
        ("population", "BIGINT"),
        ("median_income", "DOUBLE"),
        ("median_age", "DOUBLE"),
        ("homeownership_rate", "DOUBLE"),
        ("poverty_rate", "DOUBLE"),
        ("college_degree_rate", "DOUBLE"),
        ("remote_work_pct", "DOUBLE"),
        ("housing_units", "BIGINT"),
        ("family_households_pct", "DOUBLE"),
        ("homeowners_25_to_44_pct", "DOUBLE"),
        ("homeowners_75_plus_pct", "DOUBLE"),
    ),
)

MARKET_OBSERVATIONS = TableSpec(
    name="market_observations",
    key_columns=("region_id", "period_start"),
    column_types=(
        ("region_id", "VARCHAR"),
        ("period_start", "DATE"),
        ("median_sale_price", "DOUBLE"),
        ("homes_sold", "BIGINT"),
        ("median_dom", "DOUBLE"),
        ("inventory", "BIGINT"),
        ("price_drops_pct", "DOUBLE"),
        ("sale_to_list_ratio", "DOUBLE"),
        ("new_listings", "BIGINT"),
    ),
)

DERIVED_METRICS = TableSpec(
    name="derived_metrics",
    key_columns=("region_id", "computed_on"),
    column_types=(
        ("region_id", "VARCHAR"),
        ("computed_on", "DATE"),
        ("overvalued_pct", "DOUBLE"),
        ("value_income_ratio", "DOUBLE"),
        ("mortgage_payment", "DOUBLE"),
        ("mtg_pct_income", "DOUBLE"),
        ("salary_to_afford", "DOUBLE"),
        ("buy_vs_rent", "DOUBLE"),
        ("cap_rate", "DOUBLE"),
        ("price_forecast_pct", "DOUBLE"),
        ("investor_score", "INTEGER"),
        ("growth_score", "INTEGER"),
        ("market_health_score", "INTEGER"),
    ),
)

ALL_TABLES: tuple[TableSpec, ...] = (
    VALUE_OBSERVATIONS,
    DEMOGRAPHIC_OBSERVATIONS,
    MARKET_OBSERVATIONS,
    DERIVED_METRICS,
)
