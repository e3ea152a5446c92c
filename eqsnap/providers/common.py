from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol, Union

import httpx

from ..errors import NoDataError, RateLimitedError

RATE_LIMIT_MARKER = "too many requests"


class ProviderKind(str, Enum):
    ALPHA_VANTAGE_DAILY_ADJUSTED = "alpha-vantage"
    ALPHA_VANTAGE_DAILY_COMPACT = "alpha-vantage-compact"
    ALPHA_VANTAGE_COMBO = "alpha-vantage-combo"
    YAHOO = "yahoo"
    FINNHUB = "finnhub"


# Modes each kind needs from its client, in the order failures are reported.
PARTS_BY_KIND: dict[ProviderKind, tuple[str, ...]] = {
    ProviderKind.ALPHA_VANTAGE_DAILY_ADJUSTED: ("daily_adjusted",),
    ProviderKind.ALPHA_VANTAGE_DAILY_COMPACT: ("daily_compact",),
    ProviderKind.ALPHA_VANTAGE_COMBO: ("quote", "daily", "overview"),
    ProviderKind.YAHOO: ("summary", "historical"),
    ProviderKind.FINNHUB: ("quote", "candles"),
}


class ProviderClient(Protocol):
    name: str

    async def fetch_series(self, symbol: str, mode: str) -> Any: ...


@dataclass(frozen=True)
class DailyAdjustedPayload:
    body: Mapping[str, Any]
    kind = ProviderKind.ALPHA_VANTAGE_DAILY_ADJUSTED


@dataclass(frozen=True)
class CompactDailyPayload:
    body: Mapping[str, Any]
    kind = ProviderKind.ALPHA_VANTAGE_DAILY_COMPACT


@dataclass(frozen=True)
class QuoteHistoryOverviewPayload:
    quote: Mapping[str, Any]
    history: Mapping[str, Any]
    overview: Mapping[str, Any] = field(default_factory=dict)
    kind = ProviderKind.ALPHA_VANTAGE_COMBO


@dataclass(frozen=True)
class QuoteSummaryHistoricalPayload:
    # yahooquery answers with a plain string instead of a dict on errors
    summary: Union[Mapping[str, Any], str]
    historical: Union[list, str]
    kind = ProviderKind.YAHOO


@dataclass(frozen=True)
class QuoteCandlesPayload:
    quote: Mapping[str, Any]
    candles: Mapping[str, Any]
    kind = ProviderKind.FINNHUB


ProviderPayload = Union[
    DailyAdjustedPayload,
    CompactDailyPayload,
    QuoteHistoryOverviewPayload,
    QuoteSummaryHistoricalPayload,
    QuoteCandlesPayload,
]


def coerce_kind(kind) -> ProviderKind:
    if isinstance(kind, ProviderKind):
        return kind
    try:
        return ProviderKind(str(kind).strip().lower())
    except ValueError:
        raise ValueError(f"unknown provider kind: {kind!r}") from None


def _part(raw: Mapping[str, Any], name: str, kind: ProviderKind):
    if not isinstance(raw, Mapping) or name not in raw or raw[name] is None:
        raise NoDataError(kind.value, f"missing {name} response")
    return raw[name]


def payload_from_raw(kind, raw: Any) -> ProviderPayload:
    """Wrap raw provider JSON in its tagged variant.

    Single-part kinds take the provider body as-is; multi-part kinds take a
    mapping of part name (see PARTS_BY_KIND) to body.
    """
    kind = coerce_kind(kind)
    if kind is ProviderKind.ALPHA_VANTAGE_DAILY_ADJUSTED:
        return DailyAdjustedPayload(body=raw if isinstance(raw, Mapping) else {})
    if kind is ProviderKind.ALPHA_VANTAGE_DAILY_COMPACT:
        return CompactDailyPayload(body=raw if isinstance(raw, Mapping) else {})
    if kind is ProviderKind.ALPHA_VANTAGE_COMBO:
        return QuoteHistoryOverviewPayload(
            quote=_part(raw, "quote", kind),
            history=_part(raw, "daily", kind),
            overview=(raw.get("overview") or {}),
        )
    if kind is ProviderKind.YAHOO:
        return QuoteSummaryHistoricalPayload(
            summary=_part(raw, "summary", kind),
            historical=_part(raw, "historical", kind),
        )
    return QuoteCandlesPayload(
        quote=_part(raw, "quote", kind),
        candles=_part(raw, "candles", kind),
    )


def is_rate_limit_text(text) -> bool:
    return isinstance(text, str) and RATE_LIMIT_MARKER in text.lower()


def raise_for_status(provider: str, response: httpx.Response, tolerate: tuple[int, ...] = ()):
    status = response.status_code
    if status == 429:
        retry_after = response.headers.get("retry-after")
        raise RateLimitedError(provider, f"HTTP 429 retry-after={retry_after}" if retry_after else "HTTP 429", status)
    if 200 <= status < 300 or status in tolerate:
        return
    if is_rate_limit_text(response.text[:500]):
        raise RateLimitedError(provider, response.text[:200], status)
    raise NoDataError(provider, f"HTTP {status}")


def json_body(provider: str, response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        text = response.text[:200]
        if is_rate_limit_text(text):
            raise RateLimitedError(provider, text, response.status_code) from None
        raise NoDataError(provider, f"non-JSON response: {text!r}") from None
