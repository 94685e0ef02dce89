"""
db.py — DuckDB connection factory and schema bootstrap.

The connection is opened once by the caller (the CLI) and passed explicitly
to every stage; nothing here caches a process-wide connection.

Usage:
    from pulse_shared.db import connect, ensure_schema

    conn = connect()                 # settings.pulse_database
    conn = connect(":memory:")       # tests
    ensure_schema(conn)
"""

from __future__ import annotations

from pathlib import Path

import duckdb
import structlog

from pulse_shared.config import settings
from pulse_shared.models.tables import ALL_TABLES

logger = structlog.get_logger(__name__)


def connect(database: str | None = None) -> duckdb.DuckDBPyConnection:
    """
    Open a DuckDB connection and verify it answers a trivial query.

    Args:
        database: File path or ":memory:". Defaults to settings.pulse_database.

    Returns:
        duckdb.DuckDBPyConnection

    Raises:
        duckdb.Error if the database cannot be opened.
    """
    path = database or settings.pulse_database
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = duckdb.connect(path)
    conn.execute("SELECT 1").fetchone()
    logger.info("duckdb_connected", database=path)
    return conn


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create any missing tables. Existing tables are left untouched."""
    for spec in ALL_TABLES:
        conn.execute(spec.create_sql())
    logger.debug("schema_ensured", tables=[s.name for s in ALL_TABLES])
