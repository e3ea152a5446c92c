from typing import Tuple, List

from ..models import WINDOW_KEYS, RelativeSnapshot, Snapshot
from ..utils import is_finite_number

CRITICAL_PATHS = [
    "asOf",
    "price",
    "source",
    "windows",
    "fundamentals",
]

RELATIVE_CRITICAL_PATHS = CRITICAL_PATHS + [
    "benchmark.symbol",
    "relative.vsBenchmark",
]

def _get(path: str, obj: dict):
    cur = obj
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur

def validate_snapshot(snap: Snapshot, critical_paths: List[str] | None = None) -> Tuple[bool, List[str]]:
    reasons = []
    wire = snap.to_wire()
    is_relative = isinstance(snap, RelativeSnapshot)
    paths = critical_paths or (RELATIVE_CRITICAL_PATHS if is_relative else CRITICAL_PATHS)
    for path in paths:
        if _get(path, wire) is None:
            reasons.append(f"missing {path}")
    if not is_finite_number(snap.price) or snap.price <= 0:
        reasons.append(f"price {snap.price!r} is not positive")
    for key in WINDOW_KEYS:
        val = getattr(snap.windows, key)
        if val is not None and not is_finite_number(val):
            reasons.append(f"windows.{key} is not finite")
    if is_relative:
        subject_y1 = snap.windows.y1
        bench_y1 = snap.benchmark.windows.y1
        rel_y1 = snap.relative.vs_benchmark.y1
        if (subject_y1 is None or bench_y1 is None) and rel_y1 is not None:
            reasons.append("relative.vsBenchmark.y1 set without both operands")
        if subject_y1 is not None and bench_y1 is not None and rel_y1 is None:
            reasons.append("relative.vsBenchmark.y1 missing with both operands")
    return (len(reasons) == 0), reasons
