"""
Capture snapshots for one or more symbols and upsert them into the local history.

Usage:
  python scripts/capture_snapshot.py NVDA AVGO [--provider alpha-vantage-combo] [--benchmark SPY] [--no-save]
"""
from pathlib import Path
import argparse
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
from eqsnap.logging import setup_logging
from eqsnap.persistence import SqlitePersistence
from eqsnap.pipeline.orchestrator import run_capture
from eqsnap.providers.common import ProviderKind
from eqsnap.providers.factory import make_client


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Capture price/return snapshots")
    parser.add_argument("symbols", nargs="+")
    parser.add_argument(
        "--provider",
        default=settings.default_provider,
        choices=[k.value for k in ProviderKind],
    )
    parser.add_argument("--benchmark", default=None, help="benchmark symbol, e.g. SPY")
    parser.add_argument("--no-save", action="store_true", help="do not write the history back")
    return parser.parse_args(argv)


async def _main(args) -> int:
    result = await run_capture(
        args.symbols,
        client=make_client(args.provider),
        kind=args.provider,
        persistence=SqlitePersistence(settings.db_path),
        benchmark_symbol=args.benchmark,
        save=not args.no_save,
    )
    print(json.dumps(result, indent=2))
    return 1 if result["failed"] else 0


if __name__ == '__main__':
    setup_logging()
    sys.exit(asyncio.run(_main(_parse_args())))
