"""Durable storage for snapshot histories.

Both implementations speak the same shape: ``load()`` returns
``{symbol: [Snapshot, ...]}`` newest first and ``save(mapping)`` replaces the
stored history of every symbol present in ``mapping``. The payload format is
the snapshot wire dict, so a load after a save yields equal models.
"""
from __future__ import annotations

import asyncio
import json
from typing import Mapping, Protocol, Sequence

import structlog

from .db import get_conn, migrate
from .models import Snapshot, snapshot_from_wire
from .utils import sha256_json, now_utc_iso

log = structlog.get_logger()


class Persistence(Protocol):
    async def load(self) -> dict[str, list[Snapshot]]: ...

    async def save(self, histories: Mapping[str, Sequence[Snapshot]]) -> None: ...


def _sorted_desc(items: list[Snapshot]) -> list[Snapshot]:
    return sorted(items, key=lambda s: s.as_of, reverse=True)


class MemoryPersistence:
    def __init__(self, initial: Mapping[str, Sequence[dict]] | None = None):
        self._data: dict[str, list[dict]] = {
            sym: [dict(item) for item in items] for sym, items in (initial or {}).items()
        }
        self.save_count = 0

    async def load(self) -> dict[str, list[Snapshot]]:
        return {
            sym: _sorted_desc([snapshot_from_wire(item) for item in items])
            for sym, items in self._data.items()
        }

    async def save(self, histories: Mapping[str, Sequence[Snapshot]]) -> None:
        for sym, items in histories.items():
            self._data[sym] = [snap.to_wire() for snap in items]
        self.save_count += 1


class SqlitePersistence:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _load_sync(self) -> dict[str, list[Snapshot]]:
        conn = get_conn(self.db_path)
        try:
            migrate(conn)
            out: dict[str, list[Snapshot]] = {
                row[0]: [] for row in conn.execute("SELECT symbol FROM snapshot_symbols").fetchall()
            }
            rows = conn.execute(
                "SELECT symbol, as_of, payload_json FROM snapshot_history ORDER BY symbol, as_of DESC"
            ).fetchall()
        finally:
            conn.close()
        for symbol, as_of, payload_json in rows:
            try:
                snap = snapshot_from_wire(json.loads(payload_json))
            except ValueError as exc:
                # pydantic.ValidationError and json.JSONDecodeError are both ValueErrors
                log.error("persistence_row_invalid", symbol=symbol, as_of=as_of, err=str(exc))
                raise
            out.setdefault(symbol, []).append(snap)
        return out

    def _save_sync(self, histories: Mapping[str, Sequence[Snapshot]]) -> None:
        conn = get_conn(self.db_path)
        try:
            migrate(conn)
            now = now_utc_iso()
            cur = conn.cursor()
            cur.execute("BEGIN")
            try:
                for symbol, items in histories.items():
                    cur.execute(
                        """
                        INSERT INTO snapshot_symbols(symbol, updated_at_utc) VALUES(?,?)
                        ON CONFLICT(symbol) DO UPDATE SET updated_at_utc=excluded.updated_at_utc
                        """,
                        (symbol, now),
                    )
                    cur.execute("DELETE FROM snapshot_history WHERE symbol=?", (symbol,))
                    for snap in items:
                        payload = snap.to_wire()
                        cur.execute(
                            """
                            INSERT INTO snapshot_history(symbol, as_of, source, payload_json, payload_sha256, updated_at_utc)
                            VALUES(?,?,?,?,?,?)
                            """,
                            (
                                symbol,
                                payload["asOf"],
                                snap.source,
                                json.dumps(payload, sort_keys=True),
                                sha256_json(payload),
                                now,
                            ),
                        )
                cur.execute("COMMIT")
            except Exception:
                cur.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    async def load(self) -> dict[str, list[Snapshot]]:
        return await asyncio.to_thread(self._load_sync)

    async def save(self, histories: Mapping[str, Sequence[Snapshot]]) -> None:
        await asyncio.to_thread(self._save_sync, histories)
        log.debug("persistence_saved", db_path=self.db_path, symbols=len(histories))
