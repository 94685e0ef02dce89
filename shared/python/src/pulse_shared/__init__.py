"""
pulse_shared — shared configuration, constants and table definitions for the
Pulse regional market-data pipeline.

Usage:
    from pulse_shared.config import settings
    from pulse_shared.db import connect, ensure_schema
    from pulse_shared.geo import RegionFilter
    from pulse_shared.models.tables import VALUE_OBSERVATIONS, DERIVED_METRICS
    from pulse_shared.constants import AUSTIN_MSA_ZIPS
"""

__version__ = "0.1.0"
