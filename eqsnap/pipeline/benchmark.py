from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Union

from ..models import (
    BenchmarkRef,
    BenchmarkWindows,
    Relative,
    RelativeSnapshot,
    RelativeWindows,
    Snapshot,
)
from ..utils import is_finite_number, normalize_symbol, round_half_away

# Windows carried into the relative record. Adding one here must keep the
# null rule of relative_delta.
RELATIVE_WINDOWS = ("y1",)

FetchSnapshot = Callable[[str], Awaitable[Snapshot]]


def relative_delta(subject, benchmark):
    if not is_finite_number(subject) or not is_finite_number(benchmark):
        return None
    return round_half_away(subject - benchmark, 1)


def merge_relative(subject: Snapshot, bench: Snapshot, benchmark_symbol: str, symbol: str | None = None) -> RelativeSnapshot:
    bench_windows = {key: getattr(bench.windows, key) for key in RELATIVE_WINDOWS}
    deltas = {
        key: relative_delta(getattr(subject.windows, key), bench_windows[key])
        for key in RELATIVE_WINDOWS
    }
    base = subject.model_dump()
    base.pop("benchmark", None)
    base.pop("relative", None)
    base["symbol"] = symbol or subject.symbol
    return RelativeSnapshot(
        **base,
        benchmark=BenchmarkRef(symbol=benchmark_symbol, windows=BenchmarkWindows(**bench_windows)),
        relative=Relative(vs_benchmark=RelativeWindows(**deltas)),
    )


async def _resolved(snapshot: Snapshot) -> Snapshot:
    return snapshot


async def compose_relative(
    subject: Union[Snapshot, str],
    benchmark_symbol: str,
    fetch_snapshot: FetchSnapshot,
) -> RelativeSnapshot:
    """Subject vs. benchmark. Both fetches run concurrently; the first failure propagates."""
    benchmark_symbol = normalize_symbol(benchmark_symbol)
    if isinstance(subject, str):
        symbol = normalize_symbol(subject)
        subject_task = fetch_snapshot(symbol)
    else:
        symbol = subject.symbol
        subject_task = _resolved(subject)
    subject_snap, bench_snap = await asyncio.gather(subject_task, fetch_snapshot(benchmark_symbol))
    return merge_relative(subject_snap, bench_snap, benchmark_symbol, symbol=symbol)
