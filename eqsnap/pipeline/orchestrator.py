from __future__ import annotations

import asyncio
import time
import uuid
from functools import partial
from typing import Any

import structlog

from ..config import settings
from ..errors import SnapshotError
from ..logging import bind_run
from ..models import RelativeSnapshot, Snapshot
from ..providers.common import PARTS_BY_KIND, ProviderClient, coerce_kind
from ..utils import SystemClock, normalize_symbol
from .benchmark import compose_relative
from .fetcher import fetch_with_retry
from .snapshots import build_snapshot
from .store import SnapshotStore
from .validation import validate_snapshot

log = structlog.get_logger()


async def fetch_payload(client: ProviderClient, kind, symbol: str, **retry_opts) -> Any:
    """Fetch every part ``kind`` needs, concurrently, each with its own retry budget.

    All parts are awaited before failing; the first failure in part order is raised.
    """
    kind = coerce_kind(kind)
    parts = PARTS_BY_KIND[kind]

    async def _one(mode: str):
        return await fetch_with_retry(
            partial(client.fetch_series, symbol, mode),
            label=f"{kind.value}:{mode}:{symbol}",
            **retry_opts,
        )

    results = await asyncio.gather(*(_one(mode) for mode in parts), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    if len(parts) == 1:
        return results[0]
    return dict(zip(parts, results))


async def capture_snapshot(client: ProviderClient, kind, symbol: str, clock=None, **retry_opts) -> Snapshot:
    symbol = normalize_symbol(symbol)
    raw = await fetch_payload(client, kind, symbol, **retry_opts)
    return build_snapshot(raw, kind, clock=clock, symbol=symbol)


async def capture_relative(
    client: ProviderClient,
    kind,
    symbol: str,
    benchmark_symbol: str | None = None,
    clock=None,
    **retry_opts,
) -> RelativeSnapshot:
    fetch = partial(capture_snapshot, client, kind, clock=clock, **retry_opts)
    return await compose_relative(symbol, benchmark_symbol or settings.benchmark_symbol, fetch)


def _failure(kind: str, message: str, provider: str | None) -> dict:
    return {"kind": kind, "message": message, "provider": provider, "detail": None}


async def run_capture(
    symbols: list[str],
    *,
    client: ProviderClient,
    kind,
    persistence,
    clock=None,
    benchmark_symbol: str | None = None,
    save: bool = True,
    **retry_opts,
) -> dict:
    """Capture every symbol, upsert the good ones and save the store.

    A symbol that fails (provider error, deadline, invalid snapshot) lands in
    ``failed`` and never blocks the rest of the batch.
    """
    run_id = str(uuid.uuid4())
    kind = coerce_kind(kind)
    clock = clock or SystemClock()
    symbols = sorted({normalize_symbol(s) for s in symbols if s and normalize_symbol(s)})
    with bind_run(run_id, provider=kind.value):
        log.info("capture_started", symbols_count=len(symbols), benchmark=benchmark_symbol)
        out = await _run_steps(
            symbols,
            client=client,
            kind=kind,
            persistence=persistence,
            clock=clock,
            benchmark_symbol=benchmark_symbol,
            save=save,
            retry_opts=retry_opts,
        )
        log.info("capture_finished", captured=len(out["captured"]), failed=len(out["failed"]))
    return {"run_id": run_id, **out}


async def _run_steps(symbols, *, client, kind, persistence, clock, benchmark_symbol, save, retry_opts) -> dict:
    def _step_start(step: str):
        log.info("capture_step_start", step=step)
        return time.monotonic()

    def _step_done(step: str, started: float, **fields):
        log.info("capture_step_done", step=step, elapsed_sec=round(time.monotonic() - started, 2), **fields)

    started = _step_start("load_store")
    store = await SnapshotStore.load(persistence)
    _step_done("load_store", started, symbols_known=len(store))

    started = _step_start("fetch_and_build")

    # One fetch per symbol per run, so the benchmark is not re-fetched for every subject.
    pending: dict[str, asyncio.Future] = {}

    def _snapshot_once(sym: str) -> asyncio.Future:
        if sym not in pending:
            pending[sym] = asyncio.ensure_future(
                capture_snapshot(client, kind, sym, clock=clock, **retry_opts)
            )
        return pending[sym]

    async def _capture(sym: str) -> Snapshot:
        if benchmark_symbol:
            return await compose_relative(sym, benchmark_symbol, _snapshot_once)
        return await _snapshot_once(sym)

    results = await asyncio.gather(*(_capture(sym) for sym in symbols), return_exceptions=True)
    captured: dict[str, Snapshot] = {}
    failed: dict[str, dict] = {}
    for sym, result in zip(symbols, results):
        if isinstance(result, SnapshotError):
            log.warning("capture_failed", symbol=sym, kind=result.kind.value, err=result.message)
            failed[sym] = result.to_payload()
        elif isinstance(result, TimeoutError):
            # fetch_with_retry ran out of deadline for this symbol only
            log.warning("capture_failed", symbol=sym, kind="timeout", err=str(result))
            failed[sym] = _failure("timeout", str(result), kind.value)
        elif isinstance(result, BaseException):
            log.error("capture_failed", symbol=sym, err=str(result))
            raise result
        else:
            captured[sym] = result
    _step_done("fetch_and_build", started, captured=len(captured), failed=len(failed))

    started = _step_start("upsert")
    for sym, snap in captured.items():
        ok, reasons = validate_snapshot(snap)
        if not ok:
            log.error("snapshot_validation_failed", symbol=sym, reasons=reasons)
            failed[sym] = _failure("invalid_snapshot", "; ".join(reasons), snap.source)
            continue
        store.upsert(sym, snap)
    _step_done("upsert", started)

    if save:
        started = _step_start("save_store")
        await store.save(persistence)
        _step_done("save_store", started)

    return {
        "captured": {sym: snap.to_wire() for sym, snap in captured.items() if sym not in failed},
        "failed": failed,
    }
