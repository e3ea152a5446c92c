"""Collapse provider payload shapes into a RawSeries.

Dates are ordered by sorting ISO-8601 keys as strings, which is exact for
``YYYY-MM-DD``. Keys that do not parse as ISO dates are dropped like any
other malformed row.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import numpy as np
import pandas as pd
import structlog

from ..errors import ErrorKind, NoDataError
from ..models import PricePoint, RawFundamentals, RawSeries
from ..providers.common import (
    CompactDailyPayload,
    DailyAdjustedPayload,
    ProviderKind,
    ProviderPayload,
    QuoteCandlesPayload,
    QuoteHistoryOverviewPayload,
    QuoteSummaryHistoricalPayload,
)
from ..utils import coerce_float, parse_iso_date

log = structlog.get_logger()

AV_SERIES_KEY = "Time Series (Daily)"
AV_ADJUSTED_CLOSE = "5. adjusted close"
AV_CLOSE = "4. close"
AV_QUOTE_KEY = "Global Quote"
AV_QUOTE_PRICE = "05. price"
AV_NOTICE_KEYS = ("Error Message", "Note", "Information")

YAHOO_CLOSE_FIELDS = ("adjclose", "close")


def _points_from_rows(rows: Mapping[str, Any], field: str | tuple[str, ...], provider: str) -> tuple[PricePoint, ...]:
    """Newest-first points from {date_key: {field: value}}; bad rows are dropped."""
    if not rows:
        return ()
    fields = (field,) if isinstance(field, str) else field

    def _pick(day):
        if not isinstance(day, Mapping):
            return None
        for name in fields:
            val = day.get(name)
            if val is not None and not (isinstance(val, float) and np.isnan(val)):
                return val
        return None

    raw = pd.Series({str(key): _pick(day) for key, day in rows.items()}, dtype=object)
    raw = raw.sort_index(ascending=False)
    closes = pd.to_numeric(raw, errors="coerce").astype(float)
    closes = closes[np.isfinite(closes.to_numpy())]
    points = []
    seen = set()
    for key, close in closes.items():
        # Daily series are keyed by bare dates; timestamped keys are intraday rows.
        day = parse_iso_date(key) if len(key) == 10 else None
        if day is None or day in seen:
            continue
        seen.add(day)
        points.append(PricePoint(date=day, close=float(close)))
    dropped = len(raw) - len(points)
    if dropped:
        log.debug(
            "normalize_dropped_rows",
            provider=provider,
            kind=ErrorKind.MALFORMED_FIELD.value,
            dropped=dropped,
            kept=len(points),
        )
    return tuple(points)


def _positive(val):
    price = coerce_float(val)
    return price if price is not None and price > 0 else None


def _av_notice(body: Any) -> str | None:
    if not isinstance(body, Mapping):
        return f"unexpected response type {type(body).__name__}"
    for key in AV_NOTICE_KEYS:
        if body.get(key):
            return str(body[key])
    return None


def _av_series(body: Any, field: str, provider: str) -> tuple[PricePoint, ...]:
    notice = _av_notice(body)
    if notice:
        raise NoDataError(provider, notice)
    series = body.get(AV_SERIES_KEY)
    if not isinstance(series, Mapping):
        raise NoDataError(provider, f"missing {AV_SERIES_KEY!r} in response")
    return _points_from_rows(series, field, provider)


def _normalize_daily_adjusted(payload: DailyAdjustedPayload) -> RawSeries:
    return RawSeries(points=_av_series(payload.body, AV_ADJUSTED_CLOSE, payload.kind.value))


def _normalize_compact_daily(payload: CompactDailyPayload) -> RawSeries:
    return RawSeries(points=_av_series(payload.body, AV_CLOSE, payload.kind.value))


def _normalize_av_combo(payload: QuoteHistoryOverviewPayload) -> RawSeries:
    provider = payload.kind.value
    notice = _av_notice(payload.quote)
    if notice:
        raise NoDataError(provider, notice)
    quote = payload.quote.get(AV_QUOTE_KEY)
    live_price = _positive(quote.get(AV_QUOTE_PRICE)) if isinstance(quote, Mapping) else None
    points = _av_series(payload.history, AV_CLOSE, provider)
    overview = payload.overview if isinstance(payload.overview, Mapping) else {}
    fundamentals = RawFundamentals(
        market_cap_usd=coerce_float(overview.get("MarketCapitalization")),
        trailing_pe=coerce_float(overview.get("PERatio")),
        beta=coerce_float(overview.get("Beta")),
    )
    return RawSeries(points=points, live_price=live_price, fundamentals=fundamentals)


def _yahoo_field(summary: Mapping[str, Any], name: str, modules: tuple[str, ...]):
    for module in modules:
        section = summary.get(module)
        if isinstance(section, Mapping):
            val = coerce_float(section.get(name))
            if val is not None:
                return val
    return None


def _normalize_yahoo(payload: QuoteSummaryHistoricalPayload) -> RawSeries:
    provider = payload.kind.value
    if isinstance(payload.summary, str):
        raise NoDataError(provider, payload.summary)
    if isinstance(payload.historical, str):
        raise NoDataError(provider, payload.historical)
    summary = payload.summary if isinstance(payload.summary, Mapping) else {}
    rows: dict[str, Any] = {}
    for row in payload.historical or []:
        if isinstance(row, Mapping) and row.get("date") is not None:
            rows[str(row["date"])[:10]] = row
    points = _points_from_rows(rows, YAHOO_CLOSE_FIELDS, provider)
    live_price = _positive(_yahoo_field(summary, "regularMarketPrice", ("price", "summaryDetail")))
    if live_price is None and not points:
        raise NoDataError(provider, "no quote and no historical closes")
    fundamentals = RawFundamentals(
        market_cap_usd=_yahoo_field(summary, "marketCap", ("price", "summaryDetail")),
        trailing_pe=_yahoo_field(summary, "trailingPE", ("summaryDetail", "defaultKeyStatistics")),
        beta=_yahoo_field(summary, "beta", ("summaryDetail", "defaultKeyStatistics")),
    )
    return RawSeries(points=points, live_price=live_price, fundamentals=fundamentals)


def _unix_to_iso(ts) -> str | None:
    val = coerce_float(ts)
    if val is None:
        return None
    try:
        return datetime.fromtimestamp(val, tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def _normalize_finnhub(payload: QuoteCandlesPayload) -> RawSeries:
    provider = payload.kind.value
    quote = payload.quote if isinstance(payload.quote, Mapping) else {}
    if quote.get("error"):
        raise NoDataError(provider, str(quote["error"]))
    live_price = _positive(quote.get("c"))
    candles = payload.candles if isinstance(payload.candles, Mapping) else {}
    points: tuple[PricePoint, ...] = ()
    if candles.get("s") == "ok":
        closes = candles.get("c") or []
        stamps = candles.get("t") or []
        rows = {}
        for ts, close in zip(stamps, closes):
            key = _unix_to_iso(ts)
            if key is not None:
                rows[key] = {"c": close}
        points = _points_from_rows(rows, "c", provider)
    else:
        log.info("finnhub_candles_unavailable", status=candles.get("s"), error=candles.get("error"))
    if live_price is None:
        raise NoDataError(provider, "missing quote price")
    return RawSeries(points=points, live_price=live_price)


_NORMALIZERS: dict[ProviderKind, Callable[[Any], RawSeries]] = {
    ProviderKind.ALPHA_VANTAGE_DAILY_ADJUSTED: _normalize_daily_adjusted,
    ProviderKind.ALPHA_VANTAGE_DAILY_COMPACT: _normalize_compact_daily,
    ProviderKind.ALPHA_VANTAGE_COMBO: _normalize_av_combo,
    ProviderKind.YAHOO: _normalize_yahoo,
    ProviderKind.FINNHUB: _normalize_finnhub,
}


def normalize(payload: ProviderPayload) -> RawSeries:
    return _NORMALIZERS[payload.kind](payload)
