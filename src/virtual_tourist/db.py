"""DuckDB connection that backs the pin and photo repository."""

import duckdb

from virtual_tourist.config import DB_PATH


def get_connection(db_path: str | None = None) -> duckdb.DuckDBPyConnection:
    """Open the pin/photo store and make sure its tables exist.

    ``db_path`` may be a file path or ":memory:"; it defaults to DB_PATH.
    """
    path = db_path or str(DB_PATH)
    conn = duckdb.connect(path)

    from virtual_tourist.manager.schema import ensure_schema

    ensure_schema(conn)
    return conn
