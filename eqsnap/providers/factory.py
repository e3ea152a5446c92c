from __future__ import annotations

import httpx

from .alpha_vantage_adapter import AlphaVantageAdapter
from .common import ProviderKind, coerce_kind
from .finnhub_adapter import FinnhubAdapter
from .yahooquery_adapter import YahooQueryAdapter


def make_client(kind, http: httpx.AsyncClient | None = None):
    kind = coerce_kind(kind)
    if kind in (
        ProviderKind.ALPHA_VANTAGE_DAILY_ADJUSTED,
        ProviderKind.ALPHA_VANTAGE_DAILY_COMPACT,
        ProviderKind.ALPHA_VANTAGE_COMBO,
    ):
        return AlphaVantageAdapter(http=http)
    if kind is ProviderKind.FINNHUB:
        return FinnhubAdapter(http=http)
    return YahooQueryAdapter()
