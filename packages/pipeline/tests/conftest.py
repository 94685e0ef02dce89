"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  duck_conn      — in-memory DuckDB connection with all tables created
  region_filter  — small allow-list (78701, 78702) used across tests
  row_count      — row_count("table") counts rows in duck_conn
  as_of          — fixed run date so trailing windows are deterministic
  mock_http      — respx router for faking httpx requests
  gzip_tsv       — builds a gzip-compressed TSV body from rows
"""

from __future__ import annotations

import gzip
from datetime import date

import duckdb
import pytest
import respx

from pulse_shared.db import ensure_schema
from pulse_shared.geo import RegionFilter


# ---------------------------------------------------------------------------
# Datastore
# ---------------------------------------------------------------------------

@pytest.fixture
def duck_conn():
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def row_count(duck_conn):
    """row_count("table") -> number of rows in that table."""

    def _count(table: str) -> int:
        return duck_conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0]

    return _count


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------

@pytest.fixture
def region_filter() -> RegionFilter:
    return RegionFilter(["78701", "78702"])


@pytest.fixture
def as_of() -> date:
    return date(2025, 6, 15)


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

@pytest.fixture
def gzip_tsv():
    """gzip_tsv(rows) -> gzip-compressed, tab-separated body."""

    def _build(rows: list[list[str]]) -> bytes:
        body = "\n".join("\t".join(r) for r in rows) + "\n"
        return gzip.compress(body.encode("utf-8"))

    return _build


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
