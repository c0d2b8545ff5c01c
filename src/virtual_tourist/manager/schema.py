"""DuckDB schema definition."""

import duckdb


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and indexes if they do not exist."""
    conn.execute("CREATE SEQUENCE IF NOT EXISTS pins_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS pins (
            id          INTEGER PRIMARY KEY DEFAULT nextval('pins_id_seq'),
            latitude    DOUBLE NOT NULL,
            longitude   DOUBLE NOT NULL,
            created_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_pins_coordinate ON pins(latitude, longitude)")

    # photos table (N:1 relationship with pins). pin_id references pins(id);
    # deletes cascade in PhotoRepository since DuckDB has no ON DELETE CASCADE.
    conn.execute("CREATE SEQUENCE IF NOT EXISTS photos_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id          INTEGER PRIMARY KEY DEFAULT nextval('photos_id_seq'),
            pin_id      INTEGER NOT NULL,
            image_url   VARCHAR NOT NULL,
            image_data  BLOB,
            created_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_photos_pin_id ON photos(pin_id)")
