"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
-- Admin decisions on intake markets (one row per Polymarket market)
CREATE TABLE IF NOT EXISTS polymarket_mappings (
    polymarket_id           VARCHAR PRIMARY KEY,
    polymarket_condition_id VARCHAR,
    polymarket_token_id     VARCHAR,
    internal_event_id       VARCHAR,
    market_type             VARCHAR,
    status                  VARCHAR NOT NULL,
    notes                   VARCHAR,
    outcome_mapping         JSON,
    event_data              JSON,
    updated_by              VARCHAR,
    decision_at             BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager."""
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
