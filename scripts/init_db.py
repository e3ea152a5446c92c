from pathlib import Path
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from eqsnap.db import get_conn, migrate
from eqsnap.config import settings

if __name__ == '__main__':
    conn = get_conn(settings.db_path)
    migrate(conn)
    symbols = conn.execute("SELECT COUNT(*) FROM snapshot_symbols").fetchone()[0]
    rows = conn.execute("SELECT COUNT(*) FROM snapshot_history").fetchone()[0]
    print('DB ready at', settings.db_path, '| symbols:', symbols, '| snapshots:', rows)
