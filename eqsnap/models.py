from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Trailing trading-day offsets, newest close at index 0.
WINDOW_OFFSETS: tuple[tuple[str, int], ...] = (
    ("w1", 5),
    ("m1", 22),
    ("m3", 66),
    ("m6", 132),
    ("y1", 252),
)
WINDOW_KEYS = tuple(key for key, _ in WINDOW_OFFSETS)
MIN_HISTORY_POINTS = 6


@dataclass(frozen=True)
class PricePoint:
    date: date
    close: float


@dataclass(frozen=True)
class RawFundamentals:
    market_cap_usd: Optional[float] = None
    trailing_pe: Optional[float] = None
    beta: Optional[float] = None


@dataclass(frozen=True)
class RawSeries:
    points: tuple[PricePoint, ...] = ()
    live_price: Optional[float] = None
    fundamentals: RawFundamentals = field(default_factory=RawFundamentals)

    @property
    def closes(self) -> tuple[float, ...]:
        return tuple(p.close for p in self.points)

    @property
    def latest_close_date(self) -> Optional[date]:
        return self.points[0].date if self.points else None


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ReturnWindows(_WireModel):
    w1: Optional[float] = None
    m1: Optional[float] = None
    m3: Optional[float] = None
    m6: Optional[float] = None
    y1: Optional[float] = None


class Fundamentals(_WireModel):
    market_cap_b: Optional[float] = Field(default=None, alias="marketCapB")
    pe: Optional[float] = None
    beta: Optional[float] = None


class Snapshot(_WireModel):
    as_of: date = Field(alias="asOf")
    price: float = Field(gt=0)
    windows: ReturnWindows = Field(default_factory=ReturnWindows)
    fundamentals: Fundamentals = Field(default_factory=Fundamentals)
    source: str
    symbol: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class BenchmarkWindows(_WireModel):
    y1: Optional[float] = None


class BenchmarkRef(_WireModel):
    symbol: str
    windows: BenchmarkWindows = Field(default_factory=BenchmarkWindows)


class RelativeWindows(_WireModel):
    y1: Optional[float] = None


class Relative(_WireModel):
    vs_benchmark: RelativeWindows = Field(default_factory=RelativeWindows, alias="vsBenchmark")


class RelativeSnapshot(Snapshot):
    benchmark: BenchmarkRef
    relative: Relative = Field(default_factory=Relative)


def snapshot_from_wire(payload: dict[str, Any]) -> Snapshot:
    if isinstance(payload, dict) and payload.get("benchmark") is not None:
        return RelativeSnapshot.model_validate(payload)
    return Snapshot.model_validate(payload)
