"""
pulse_shared.models — table definitions and typed rows.

  TableSpec     — column order, key columns and types for one table
  DerivedMetric — pydantic model for a derived_metrics row
"""

from pulse_shared.models.metrics import DerivedMetric
from pulse_shared.models.tables import (
    ALL_TABLES,
    DEMOGRAPHIC_OBSERVATIONS,
    DERIVED_METRICS,
    MARKET_OBSERVATIONS,
    VALUE_OBSERVATIONS,
    TableSpec,
)

__all__ = [
    "TableSpec",
    "ALL_TABLES",
    "VALUE_OBSERVATIONS",
    "DEMOGRAPHIC_OBSERVATIONS",
    "MARKET_OBSERVATIONS",
    "DERIVED_METRICS",
    "DerivedMetric",
]
