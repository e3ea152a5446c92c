from __future__ import annotations

from typing import Any

from ..errors import InsufficientDataError
from ..models import Fundamentals, RawSeries, Snapshot
from ..providers.common import coerce_kind, payload_from_raw
from ..utils import SystemClock, normalize_symbol, round_half_away
from .normalize import normalize
from .windows import compute_windows

PRICE_PRECISION = 2
MARKET_CAP_PRECISION = 1
USD_PER_BILLION = 1_000_000_000


def _select_price(raw: RawSeries):
    # The live quote can be a session ahead of the newest close; it still wins.
    if raw.live_price is not None:
        return raw.live_price
    closes = raw.closes
    return closes[0] if closes else None


class SnapshotBuilder:
    def __init__(self, source: str, clock=None):
        self.source = source
        self.clock = clock or SystemClock()

    def build(self, raw: RawSeries, symbol: str | None = None) -> Snapshot:
        price = _select_price(raw)
        if price is None:
            raise InsufficientDataError("no live price and no closes", provider=self.source)
        price = round_half_away(price, PRICE_PRECISION)
        if price is None or price <= 0:
            raise InsufficientDataError(f"non-positive price {price!r}", provider=self.source)
        raw_fund = raw.fundamentals
        market_cap_b = None
        if raw_fund.market_cap_usd is not None:
            market_cap_b = round_half_away(raw_fund.market_cap_usd / USD_PER_BILLION, MARKET_CAP_PRECISION)
        return Snapshot(
            as_of=self.clock.today_utc(),
            price=price,
            windows=compute_windows(raw.closes, newest_first=True),
            fundamentals=Fundamentals(
                market_cap_b=market_cap_b,
                pe=raw_fund.trailing_pe,
                beta=raw_fund.beta,
            ),
            source=self.source,
            symbol=normalize_symbol(symbol) if symbol else None,
        )


def build_snapshot(raw_payload: Any, provider_kind, clock=None, symbol: str | None = None) -> Snapshot:
    """Raw provider JSON -> Snapshot. Raises NoDataError or InsufficientDataError."""
    kind = coerce_kind(provider_kind)
    raw = normalize(payload_from_raw(kind, raw_payload))
    return SnapshotBuilder(kind.value, clock=clock).build(raw, symbol=symbol)
