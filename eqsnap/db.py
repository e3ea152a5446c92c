import sqlite3
from pathlib import Path

def get_conn(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, isolation_level=None)  # autocommit
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn

DDL = [
    # Every symbol ever captured; a cleared symbol keeps its row with no history.
    """
CREATE TABLE IF NOT EXISTS snapshot_symbols (
  symbol TEXT PRIMARY KEY,
  updated_at_utc TEXT NOT NULL
);
""",

    # One row per (symbol, capture date); replaced wholesale on upsert.
    """
CREATE TABLE IF NOT EXISTS snapshot_history (
  symbol TEXT NOT NULL,
  as_of TEXT NOT NULL,          -- ISO YYYY-MM-DD
  source TEXT NOT NULL,
  payload_json TEXT NOT NULL,
  payload_sha256 TEXT NOT NULL,
  updated_at_utc TEXT NOT NULL,
  PRIMARY KEY (symbol, as_of),
  FOREIGN KEY (symbol) REFERENCES snapshot_symbols(symbol) ON DELETE CASCADE
);
""",
    "CREATE INDEX IF NOT EXISTS ix_snapshot_history_symbol_date ON snapshot_history(symbol, as_of DESC);",
]

def migrate(conn: sqlite3.Connection):
    cur = conn.cursor()
    for stmt in DDL:
        cur.execute(stmt)
    cols = {row[1] for row in cur.execute("PRAGMA table_info(snapshot_history)").fetchall()}
    if cols and "source" not in cols:
        cur.execute("ALTER TABLE snapshot_history ADD COLUMN source TEXT NOT NULL DEFAULT 'unknown'")
