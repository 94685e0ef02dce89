"""
tests/test_transforms/test_market_metrics.py — Affordability, forecast and score math.
"""

from __future__ import annotations

from datetime import date
from itertools import product

import pytest

from pulse_pipeline.transforms.market_metrics import (
    MetricAssumptions,
    buy_vs_rent,
    cap_rate,
    composite_score,
    compute_region_metrics,
    growth_score,
    investor_score,
    linear_forecast_pct,
    market_health_score,
    monthly_mortgage,
    mortgage_pct_income,
    overvalued_pct,
    salary_to_afford,
    trailing_growth_pct,
    value_income_ratio,
)

A = MetricAssumptions()
LINEAR_SERIES = [300_000.0 + 1_000.0 * i for i in range(12)]


# ---------------------------------------------------------------------------
# Affordability and valuation
# ---------------------------------------------------------------------------

class TestMortgage:
    def test_standard_payment(self):
        # 320k financed at 6.89% over 30 years
        assert monthly_mortgage(400_000, A) == pytest.approx(2105.4, rel=1e-3)

    def test_zero_rate_is_straight_line(self):
        a = MetricAssumptions(mortgage_rate=0.0)
        assert monthly_mortgage(360_000, a) == pytest.approx(288_000 / 360)

    def test_missing_value(self):
        assert monthly_mortgage(None, A) is None

    def test_pct_income(self):
        assert mortgage_pct_income(2_000, 80_000) == pytest.approx(30.0)
        assert mortgage_pct_income(2_000, None) is None
        assert mortgage_pct_income(None, 80_000) is None

    def test_salary_to_afford(self):
        assert salary_to_afford(2_000, A) == pytest.approx(24_000 / 0.28)
        assert salary_to_afford(None, A) is None


class TestValuation:
    def test_value_income_ratio(self):
        assert value_income_ratio(400_000, 80_000) == 5.0

    def test_value_income_ratio_null_or_zero_income(self):
        assert value_income_ratio(400_000, None) is None
        assert value_income_ratio(400_000, 0) is None

    def test_overvalued_against_historical_mean(self):
        # ratios 1, 2, 3 -> mean 2; current 3 is 50% above
        assert overvalued_pct(3.0, [100, 200, 300], 100) == pytest.approx(50.0)

    def test_overvalued_ignores_null_history(self):
        assert overvalued_pct(2.0, [None, 200, None], 100) == pytest.approx(0.0)

    def test_overvalued_null_cases(self):
        assert overvalued_pct(None, [100], 100) is None
        assert overvalued_pct(1.0, [], 100) is None
        assert overvalued_pct(1.0, [None], 100) is None
        assert overvalued_pct(1.0, [100], None) is None

    def test_cap_rate(self):
        # 2000 * 12 * 0.4 / 400000
        assert cap_rate(2_000, 400_000, A) == pytest.approx(2.4)
        assert cap_rate(None, 400_000, A) is None

    def test_buy_vs_rent(self):
        assert buy_vs_rent(2_100, 2_000) == pytest.approx(1.05)
        assert buy_vs_rent(2_100, 0) is None
        assert buy_vs_rent(2_100, None) is None


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

class TestForecast:
    def test_linear_series(self):
        # fitted 311000 at the last point, 323000 twelve months on
        assert linear_forecast_pct(LINEAR_SERIES) == pytest.approx(12_000 / 311_000 * 100)

    def test_deterministic(self):
        assert linear_forecast_pct(LINEAR_SERIES) == linear_forecast_pct(list(LINEAR_SERIES))

    def test_flat_series(self):
        assert linear_forecast_pct([250_000.0] * 8) == pytest.approx(0.0)

    def test_requires_six_points(self):
        assert linear_forecast_pct(LINEAR_SERIES[:5]) is None
        assert linear_forecast_pct(LINEAR_SERIES[:6]) is not None

    def test_zero_fitted_value(self):
        assert linear_forecast_pct([0.0] * 6) is None

    def test_trailing_growth(self):
        assert trailing_growth_pct(LINEAR_SERIES) == pytest.approx(11_000 / 300_000 * 100)
        assert trailing_growth_pct(LINEAR_SERIES[:11]) is None


# ---------------------------------------------------------------------------
# Composite scores
# ---------------------------------------------------------------------------

class TestScores:
    def test_all_null_is_null(self):
        assert composite_score([None, None]) is None
        assert investor_score(None, None, None) is None
        assert growth_score(None, None) is None
        assert market_health_score(None, None, None) is None

    def test_parts_are_clipped_before_averaging(self):
        assert composite_score([150.0, -20.0]) == 50

    def test_null_parts_are_ignored(self):
        assert composite_score([80.0, None]) == 80

    def test_investor_score(self):
        # 2.4*15=36, (2.5-1.05)*50=72.5, 30*2=60 -> 56.17
        assert investor_score(2.4, 1.05, 30) == 56

    def test_growth_score(self):
        # 50+3*5=65, 50+4*5=70 -> 67.5 rounds up
        assert growth_score(3.0, 4.0) == 68

    def test_market_health_score(self):
        # 100-30*2=40, 75-10=65, 100-0=100 -> 68.33
        assert market_health_score(30.0, 10.0, 1.0) == 68

    def test_scores_always_in_range(self):
        grid = [-1e6, -50.0, -1.0, 0.0, 0.5, 1.0, 2.5, 10.0, 99.0, 1e6, None]
        for x, y, z in product(grid, repeat=3):
            for score in (
                investor_score(x, y, z),
                growth_score(x, y),
                market_health_score(x, y, z),
            ):
                assert score is None or 0 <= score <= 100


# ---------------------------------------------------------------------------
# Per-region assembly
# ---------------------------------------------------------------------------

class TestComputeRegionMetrics:
    def test_value_income_scenario(self):
        metric = compute_region_metrics(
            "78701",
            date(2025, 6, 15),
            latest_value={"home_value": 400_000.0, "rent_value": None},
            latest_demographics={"median_income": 80_000.0},
            latest_market=None,
            value_history=[400_000.0],
            trailing_values=[400_000.0],
        )
        assert metric is not None
        assert metric.region_id == "78701"
        assert metric.value_income_ratio == 5.0
        assert metric.overvalued_pct == 0.0
        assert metric.cap_rate is None
        assert metric.buy_vs_rent is None
        assert metric.investor_score is None
        assert metric.price_forecast_pct is None
        # 100 - 31.58*2 = 36.84 and 75 - 0 = 75 -> 55.92
        assert metric.market_health_score == 56

    def test_no_home_value_is_skipped(self):
        metric = compute_region_metrics(
            "78701",
            date(2025, 6, 15),
            latest_value={"home_value": None, "rent_value": 2_000.0},
            latest_demographics={"median_income": 80_000.0},
            latest_market=None,
            value_history=[],
            trailing_values=[],
        )
        assert metric is None

    def test_missing_income_leaves_affordability_null(self):
        metric = compute_region_metrics(
            "78701",
            date(2025, 6, 15),
            latest_value={"home_value": 400_000.0, "rent_value": 2_000.0},
            latest_demographics=None,
            latest_market={"median_dom": 30.0, "sale_to_list_ratio": 0.98},
            value_history=LINEAR_SERIES,
            trailing_values=LINEAR_SERIES,
        )
        assert metric is not None
        assert metric.value_income_ratio is None
        assert metric.mtg_pct_income is None
        assert metric.overvalued_pct is None
        assert metric.salary_to_afford is not None
        assert metric.cap_rate == 2.4
        assert metric.investor_score is not None
        assert metric.growth_score is not None

    def test_values_rounded_to_cents(self):
        metric = compute_region_metrics(
            "78701",
            date(2025, 6, 15),
            latest_value={"home_value": 400_000.0, "rent_value": None},
            latest_demographics=None,
            latest_market=None,
            value_history=[],
            trailing_values=[],
        )
        assert metric is not None
        assert metric.mortgage_payment == round(metric.mortgage_payment, 2)
