"""
transforms/normalize.py — Text-to-number coercion and null-safe arithmetic.

Every numeric value that enters the pipeline passes through coerce_number(),
which is the one place where "no data" markers become None:
  - empty strings and tokens like "N/A", "nan", "null"
  - currency symbols, thousands separators and trailing percent signs
  - Census ACS annotation sentinels (-666666666 and friends)
  - NaN / infinity

Derived ratios use safe_pct() / safe_ratio(), which return None whenever an
operand is None or the denominator is not positive. Zero is never used as a
stand-in for missing data.

Usage:
    from pulse_pipeline.transforms.normalize import coerce_number, safe_pct

    coerce_number("$1,250,000")       # 1250000.0
    coerce_number("-666666666")       # None
    safe_pct(25, 200)                 # 12.5
    safe_pct(25, None)                # None
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

import polars as pl

from pulse_shared.constants import CENSUS_SENTINELS, NULL_TOKENS

_STRIP_CHARS = str.maketrans("", "", "$,%")


def coerce_number(value: Any) -> float | None:
    """Parse *value* as a float, returning None for anything that is not data."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if text.lower() in NULL_TOKENS:
            return None
        try:
            number = float(text.translate(_STRIP_CHARS))
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number) or number in CENSUS_SENTINELS:
        return None
    return number


def coerce_int(value: Any) -> int | None:
    """coerce_number() truncated toward zero ("12.0" -> 12)."""
    number = coerce_number(value)
    return None if number is None else int(number)


def safe_ratio(numerator: float | None, denominator: float | None) -> float | None:
    if numerator is None or denominator is None or denominator <= 0:
        return None
    return numerator / denominator


def safe_pct(numerator: float | None, denominator: float | None) -> float | None:
    ratio = safe_ratio(numerator, denominator)
    return None if ratio is None else ratio * 100


def sum_all(values: Iterable[float | None]) -> float | None:
    """Sum that is None if any part is None (a partial count is not a count)."""
    total = 0.0
    for v in values:
        if v is None:
            return None
        total += v
    return total


def round_or_none(value: float | None, ndigits: int = 2) -> float | None:
    return None if value is None else round(value, ndigits)


def round_half_up(value: float) -> int:
    """Integer rounding with .5 going up (Python's round() goes to even)."""
    return math.floor(value + 0.5)


def drop_all_null_rows(df: pl.DataFrame, subset: list[str]) -> pl.DataFrame:
    """Remove rows where every column in *subset* is null."""
    if df.is_empty():
        return df
    return df.filter(~pl.all_horizontal(pl.col(subset).is_null()))
