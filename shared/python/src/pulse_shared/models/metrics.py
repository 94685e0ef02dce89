"""
DerivedMetric — one computed row per region per run date.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from pulse_shared.models.tables import DERIVED_METRICS


class DerivedMetric(BaseModel):
    region_id: str = Field(min_length=5, max_length=5)
    computed_on: date
    overvalued_pct: Optional[float] = None
    value_income_ratio: Optional[float] = None
    mortgage_payment: Optional[float] = None
    mtg_pct_income: Optional[float] = None
    salary_to_afford: Optional[float] = None
    buy_vs_rent: Optional[float] = None
    cap_rate: Optional[float] = None
    price_forecast_pct: Optional[float] = None
    investor_score: Optional[int] = Field(default=None, ge=0, le=100)
    growth_score: Optional[int] = Field(default=None, ge=0, le=100)
    market_health_score: Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator(
        "overvalued_pct",
        "value_income_ratio",
        "mortgage_payment",
        "mtg_pct_income",
        "salary_to_afford",
        "buy_vs_rent",
        "cap_rate",
        "price_forecast_pct",
    )
    @classmethod
    def round_2dp(cls, v: Optional[float]) -> Optional[float]:
        return None if v is None else round(v, 2)

    def to_row(self) -> tuple[Any, ...]:
        """Values in DERIVED_METRICS column order, ready for the upserter."""
        data = self.model_dump()
        return tuple(data[c] for c in DERIVED_METRICS.columns)
