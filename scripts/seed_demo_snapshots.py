"""
Load the bundled demo histories (data/demo_snapshots.json) into the snapshot DB.

Usage:
  python scripts/seed_demo_snapshots.py [path_to_json]
"""
from pathlib import Path
import asyncio
import json
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from eqsnap.config import settings
from eqsnap.models import snapshot_from_wire
from eqsnap.persistence import SqlitePersistence
from eqsnap.pipeline.store import SnapshotStore


async def _seed(path: Path) -> SnapshotStore:
    persistence = SqlitePersistence(settings.db_path)
    store = await SnapshotStore.load(persistence)
    demo = json.loads(path.read_text(encoding="utf-8"))
    for symbol, items in demo.items():
        for item in items:
            store.upsert(symbol, snapshot_from_wire({**item, "symbol": symbol}))
    await store.save(persistence)
    return store


if __name__ == '__main__':
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else ROOT / "data" / "demo_snapshots.json"
    store = asyncio.run(_seed(path))
    for symbol in store.symbols():
        print(symbol, [s.as_of.isoformat() for s in store.history(symbol)])
