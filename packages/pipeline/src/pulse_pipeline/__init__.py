"""
pulse_pipeline — batch ingestion workers for the Pulse regional market store.

Architecture:
  sources/     — one adapter per provider (Zillow CSV, Census ACS JSON, Redfin gzip TSV)
  transforms/  — value coercion / null handling and the derived-metric math
  loaders/     — idempotent batched DuckDB upserts
  pipelines/   — one stage per source plus the metrics stage
  runner.py    — runs selected stages in order and summarizes them
  utils/       — structlog setup, retry decorator, streaming parser, large-file helpers

CLI:
    pulse-ingest --all
    pulse-ingest --redfin --dry-run

Shared code from pulse_shared:
    from pulse_shared.config import settings
    from pulse_shared.db import connect, ensure_schema
    from pulse_shared.geo import RegionFilter
"""

__version__ = "0.1.0"
