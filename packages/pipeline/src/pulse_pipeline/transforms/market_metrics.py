"""
transforms/market_metrics.py — Affordability, valuation, forecast and score math.

Pure functions over plain floats; no I/O. Every function returns None when
an input it needs is None (or a denominator is not positive), and the
composite scores ignore null sub-indicators rather than treating them as 0.

Usage:
    from pulse_pipeline.transforms.market_metrics import (
        MetricAssumptions,
        compute_region_metrics,
        linear_forecast_pct,
    )

    linear_forecast_pct([300_000 + 1_000 * i for i in range(12)])   # ≈ 3.86
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from pulse_shared.config import Settings, settings as default_settings
from pulse_shared.models.metrics import DerivedMetric
from pulse_pipeline.transforms.normalize import round_half_up, safe_pct, safe_ratio

FORECAST_HORIZON_MONTHS = 12
FORECAST_MIN_POINTS = 6
GROWTH_MIN_POINTS = 12


@dataclass(frozen=True)
class MetricAssumptions:
    mortgage_rate: float = 0.0689
    term_months: int = 360
    down_payment_pct: float = 0.20
    expense_ratio: float = 0.60
    affordability_ratio: float = 0.28

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> MetricAssumptions:
        cfg = cfg or default_settings
        return cls(
            mortgage_rate=cfg.mortgage_rate,
            term_months=cfg.mortgage_term_months,
            down_payment_pct=cfg.down_payment_pct,
            expense_ratio=cfg.rental_expense_ratio,
            affordability_ratio=cfg.affordability_ratio,
        )


# ---------------------------------------------------------------------------
# Affordability and valuation
# ---------------------------------------------------------------------------

def monthly_mortgage(home_value: float | None, a: MetricAssumptions) -> float | None:
    """Standard amortized payment on the financed share of *home_value*."""
    if home_value is None:
        return None
    principal = home_value * (1 - a.down_payment_pct)
    r = a.mortgage_rate / 12
    n = a.term_months
    if r == 0:
        return principal / n
    growth = (1 + r) ** n
    return principal * (r * growth) / (growth - 1)


def value_income_ratio(home_value: float | None, income: float | None) -> float | None:
    return safe_ratio(home_value, income)


def overvalued_pct(
    current_ratio: float | None,
    history: Iterable[float | None],
    income: float | None,
) -> float | None:
    """
    Deviation of the current value-to-income ratio from its historical mean,
    in percent. Historical ratios divide each past home value by the
    current income.
    """
    if current_ratio is None or income is None or income <= 0:
        return None
    ratios = [v / income for v in history if v is not None]
    if not ratios:
        return None
    avg = sum(ratios) / len(ratios)
    if avg <= 0:
        return None
    return (current_ratio / avg - 1) * 100


def mortgage_pct_income(mortgage: float | None, income: float | None) -> float | None:
    if mortgage is None:
        return None
    return safe_pct(mortgage * 12, income)


def salary_to_afford(mortgage: float | None, a: MetricAssumptions) -> float | None:
    """Annual income at which the payment equals the affordability ratio."""
    if mortgage is None:
        return None
    return mortgage * 12 / a.affordability_ratio


def cap_rate(rent: float | None, home_value: float | None, a: MetricAssumptions) -> float | None:
    if rent is None:
        return None
    return safe_pct(rent * 12 * (1 - a.expense_ratio), home_value)


def buy_vs_rent(mortgage: float | None, rent: float | None) -> float | None:
    return safe_ratio(mortgage, rent)


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

def linear_forecast_pct(
    values: Sequence[float],
    horizon: int = FORECAST_HORIZON_MONTHS,
    min_points: int = FORECAST_MIN_POINTS,
) -> float | None:
    """
    Fit y = slope*x + intercept over x = 0..n-1 by least squares and return
    the percent change between the fitted value at the last point and the
    fitted value *horizon* steps later.
    """
    n = len(values)
    if n < min_points:
        return None
    sx = sy = sxy = sxx = 0.0
    for x, y in enumerate(values):
        sx += x
        sy += y
        sxy += x * y
        sxx += x * x
    den = n * sxx - sx * sx
    if den == 0:
        return None
    slope = (n * sxy - sx * sy) / den
    intercept = (sy - slope * sx) / n
    last_x = n - 1
    current = slope * last_x + intercept
    future = slope * (last_x + horizon) + intercept
    if current == 0:
        return None
    return (future - current) / current * 100


def trailing_growth_pct(values: Sequence[float], min_points: int = GROWTH_MIN_POINTS) -> float | None:
    if len(values) < min_points:
        return None
    first, last = values[0], values[-1]
    if first <= 0:
        return None
    return (last - first) / first * 100


# ---------------------------------------------------------------------------
# Composite scores
# ---------------------------------------------------------------------------

def _clip(value: float) -> float:
    return min(100.0, max(0.0, value))


def composite_score(parts: Iterable[float | None]) -> int | None:
    """Mean of the clipped non-null parts, rounded; None if every part is None."""
    clipped = [_clip(p) for p in parts if p is not None]
    if not clipped:
        return None
    return round_half_up(_clip(sum(clipped) / len(clipped)))


def investor_score(
    cap: float | None,
    buy_rent: float | None,
    median_dom: float | None,
) -> int | None:
    return composite_score((
        None if cap is None else cap * 15,
        None if buy_rent is None else (2.5 - buy_rent) * 50,
        None if median_dom is None else median_dom * 2,
    ))


def growth_score(forecast: float | None, growth: float | None) -> int | None:
    return composite_score((
        None if forecast is None else 50 + forecast * 5,
        None if growth is None else 50 + growth * 5,
    ))


def market_health_score(
    mtg_pct: float | None,
    overvalued: float | None,
    sale_to_list: float | None,
) -> int | None:
    return composite_score((
        None if mtg_pct is None else 100 - mtg_pct * 2,
        None if overvalued is None else 75 - overvalued,
        None if sale_to_list is None else 100 - abs(1 - sale_to_list) * 200,
    ))


# ---------------------------------------------------------------------------
# Per-region assembly
# ---------------------------------------------------------------------------

def compute_region_metrics(
    region_id: str,
    computed_on: date,
    *,
    latest_value: dict[str, Any],
    latest_demographics: dict[str, Any] | None,
    latest_market: dict[str, Any] | None,
    value_history: Sequence[float | None],
    trailing_values: Sequence[float],
    assumptions: MetricAssumptions | None = None,
) -> DerivedMetric | None:
    """
    Build the derived_metrics row for one region.

    Args:
        latest_value:        Most recent value_observations row.
        latest_demographics: Most recent demographic_observations row, if any.
        latest_market:       Most recent market_observations row, if any.
        value_history:       Every home_value on record (nulls allowed).
        trailing_values:     Last non-null home values in month order, used
                             for the forecast and trailing growth.

    Returns:
        DerivedMetric, or None when the latest row has no home value.
    """
    a = assumptions or MetricAssumptions()
    home_value = latest_value.get("home_value")
    if home_value is None:
        return None
    rent = latest_value.get("rent_value")
    income = (latest_demographics or {}).get("median_income")
    market = latest_market or {}

    vir = value_income_ratio(home_value, income)
    overvalued = overvalued_pct(vir, value_history, income)
    mortgage = monthly_mortgage(home_value, a)
    mtg_pct = mortgage_pct_income(mortgage, income)
    cap = cap_rate(rent, home_value, a)
    bvr = buy_vs_rent(mortgage, rent)
    forecast = linear_forecast_pct(trailing_values)
    growth = trailing_growth_pct(trailing_values)

    return DerivedMetric(
        region_id=region_id,
        computed_on=computed_on,
        overvalued_pct=overvalued,
        value_income_ratio=vir,
        mortgage_payment=mortgage,
        mtg_pct_income=mtg_pct,
        salary_to_afford=salary_to_afford(mortgage, a),
        buy_vs_rent=bvr,
        cap_rate=cap,
        price_forecast_pct=forecast,
        investor_score=investor_score(cap, bvr, market.get("median_dom")),
        growth_score=growth_score(forecast, growth),
        market_health_score=market_health_score(mtg_pct, overvalued, market.get("sale_to_list_ratio")),
    )
