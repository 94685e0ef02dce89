"""
sources/base.py — Abstract base class for all data source adapters.

Each concrete source must implement:
  extract()      — fetch raw data, return polars DataFrame
  transform()    — filter/normalize the raw frame into a target table schema
  get_metadata() — return dict with source info for logging

The run() method orchestrates extract → transform → return and handles
timing/logging automatically. Stage pipelines call run() rather than the
individual methods (the streaming Redfin stage uses iter_batches() instead).
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Any

import httpx
import polars as pl
import structlog

from pulse_shared.config import settings
from pulse_shared.geo import RegionFilter

log = structlog.get_logger(__name__)


class SourceUnavailableError(RuntimeError):
    """The only upstream resource for a source could not be retrieved."""


class BaseSource(ABC):
    """Abstract base for all Pulse source adapters."""

    # Override in subclass; used for logging
    name: str = "unknown"

    def __init__(
        self,
        region_filter: RegionFilter | None = None,
        *,
        as_of: date | None = None,
    ) -> None:
        self.region_filter = region_filter or RegionFilter.from_settings()
        self.as_of = as_of or date.today()
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface: subclasses implement extract, transform, get_metadata
    # ------------------------------------------------------------------

    @abstractmethod
    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Fetch raw data from the external source.

        Implementations should:
        - Make HTTP calls via httpx, retrying transport errors with @with_retry
        - Drop rows outside the region allow-list as early as possible
        - Return string columns; numeric coercion happens in transform()
        """
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Normalize a raw DataFrame into the target table's schema.

        Implementations should:
        - Convert every numeric value through transforms.normalize.coerce_number
        - Never substitute 0 for a missing value
        - Return exactly the target TableSpec columns
        """
        ...

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        """Return source-level metadata (source_name, url, description, ...)."""
        ...

    # ------------------------------------------------------------------
    # Orchestration: pipelines call this
    # ------------------------------------------------------------------

    async def run(self, **kwargs: Any) -> pl.DataFrame:
        """
        Extract + transform in sequence with timing and structured logging.

        Raises:
            Any exception from extract() or transform() after logging it.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        run_log.info("source_run_start", regions=len(self.region_filter))

        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            run_log.info(
                "extract_complete",
                raw_rows=len(raw),
                raw_cols=raw.width,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

            t1 = time.monotonic()
            result = self.transform(raw)
            run_log.info(
                "transform_complete",
                result_rows=len(result),
                duration_ms=int((time.monotonic() - t1) * 1000),
            )

            run_log.info(
                "source_run_complete",
                total_duration_ms=int((time.monotonic() - t0) * 1000),
                output_rows=len(result),
            )
            return result

        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
                exc_info=True,
            )
            raise

    # ------------------------------------------------------------------
    # Shared helpers available to all subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _client() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": "pulse-pipeline/0.1"},
        )
