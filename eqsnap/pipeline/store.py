"""Per-symbol snapshot history keyed by capture date.

Lifecycle: ``SnapshotStore.load(persistence)`` -> ``upsert``/``clear`` ->
``save(persistence)``. The store holds no lock; callers serialize writes to
the same symbol.
"""
from __future__ import annotations

from datetime import date
from typing import Mapping, Optional, Sequence, Union

from ..models import Snapshot
from ..utils import normalize_symbol, parse_iso_date

AsOf = Union[date, str]


class SnapshotStore:
    def __init__(self, histories: Mapping[str, Sequence[Snapshot]] | None = None):
        self._histories: dict[str, dict[date, Snapshot]] = {}
        for symbol, items in (histories or {}).items():
            self._histories.setdefault(normalize_symbol(symbol), {})
            for snap in items:
                self.upsert(symbol, snap)

    @classmethod
    async def load(cls, persistence) -> "SnapshotStore":
        return cls(await persistence.load())

    async def save(self, persistence) -> None:
        await persistence.save(self.to_mapping())

    def upsert(self, symbol: str, snapshot: Snapshot) -> "SnapshotStore":
        # Whole-record replacement: the previous entry for this date is discarded, not merged.
        self._histories.setdefault(normalize_symbol(symbol), {})[snapshot.as_of] = snapshot
        return self

    def clear(self, symbol: str) -> "SnapshotStore":
        self._histories[normalize_symbol(symbol)] = {}
        return self

    def symbols(self) -> list[str]:
        return sorted(self._histories)

    def history(self, symbol: str) -> list[Snapshot]:
        by_date = self._histories.get(normalize_symbol(symbol)) or {}
        return [by_date[d] for d in sorted(by_date, reverse=True)]

    def latest(self, symbol: str) -> Optional[Snapshot]:
        items = self.history(symbol)
        return items[0] if items else None

    def at(self, symbol: str, as_of: AsOf) -> Optional[Snapshot]:
        day = parse_iso_date(as_of)
        if day is None:
            return None
        return (self._histories.get(normalize_symbol(symbol)) or {}).get(day)

    def baseline(self, symbol: str, as_of: AsOf | None = None) -> Optional[Snapshot]:
        """The snapshot to compare against: the explicit date, else the one before latest."""
        if as_of is not None:
            return self.at(symbol, as_of)
        items = self.history(symbol)
        return items[1] if len(items) > 1 else None

    def to_mapping(self) -> dict[str, list[Snapshot]]:
        return {symbol: self.history(symbol) for symbol in self.symbols()}

    def __eq__(self, other) -> bool:
        if not isinstance(other, SnapshotStore):
            return NotImplemented
        return self.to_mapping() == other.to_mapping()

    def __len__(self) -> int:
        return len(self._histories)


def upsert_snapshot(store: SnapshotStore, symbol: str, snapshot: Snapshot) -> SnapshotStore:
    return store.upsert(symbol, snapshot)
