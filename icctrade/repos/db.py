"""Database initialization and connection management.

Creates the schema on first boot, provides connection factory.
"""

import pathlib
import sqlite3


_SCHEMA = """
CREATE TABLE IF NOT EXISTS trades (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    mode          TEXT    NOT NULL,
    symbol        TEXT    NOT NULL,
    direction     TEXT    NOT NULL,
    entry_price   REAL    NOT NULL,
    exit_price    REAL    NOT NULL,
    quantity      REAL    NOT NULL,
    gross_pnl     REAL    NOT NULL,
    fees          REAL    NOT NULL,
    slippage      REAL    NOT NULL,
    net_pnl       REAL    NOT NULL,
    close_reason  TEXT    NOT NULL,
    opened_at     TEXT    NOT NULL,
    closed_at     TEXT    NOT NULL
);
"""


def init_db(db_path: str) -> None:
    """Initialize the database, creating tables that don't exist yet.

    Args:
        db_path: Path to the SQLite database file (or ``":memory:"``).
    """
    if db_path != ":memory:":
        pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(_SCHEMA)
    finally:
        conn.close()


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with row-factory enabled.

    Callers are responsible for closing the connection.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn
