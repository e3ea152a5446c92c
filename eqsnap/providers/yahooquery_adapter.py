from __future__ import annotations

import asyncio
from typing import Any, Callable

import pandas as pd

from ..config import settings
from ..errors import NoDataError, RateLimitedError
from .common import is_rate_limit_text

SUMMARY_MODULES = ["price", "summaryDetail", "defaultKeyStatistics"]


def _default_ticker_factory(symbol: str):
    import yahooquery as yq  # type: ignore
    return yq.Ticker(symbol)


def history_rows(df) -> list[dict]:
    """Flatten a yahooquery history frame into [{date, close, adjclose}] rows."""
    if not isinstance(df, pd.DataFrame) or df.empty:
        return []
    d = df.reset_index()
    if "date" not in d.columns:
        return []
    rows = []
    for rec in d.to_dict(orient="records"):
        day = rec.get("date")
        day = day.date() if hasattr(day, "date") and callable(day.date) else day
        rows.append({
            "date": str(day)[:10],
            "close": rec.get("close"),
            "adjclose": rec.get("adjclose"),
        })
    return rows


class YahooQueryAdapter:
    name = "yahoo"

    def __init__(self, ticker_factory: Callable[[str], Any] | None = None, history_period: str | None = None):
        self.ticker_factory = ticker_factory or _default_ticker_factory
        self.history_period = history_period or settings.yahoo_history_period

    def _check_text(self, symbol: str, out):
        # yahooquery reports errors as text, either bare or keyed by symbol
        text = out.get(symbol) if isinstance(out, dict) and isinstance(out.get(symbol), str) else out
        if isinstance(text, str):
            if is_rate_limit_text(text):
                raise RateLimitedError(self.name, text[:200])
            return text
        return None

    def _summary(self, symbol: str):
        out = self.ticker_factory(symbol).get_modules(SUMMARY_MODULES)
        text = self._check_text(symbol, out)
        if text is not None:
            return text
        if isinstance(out, dict) and isinstance(out.get(symbol), dict):
            return out[symbol]
        return out

    def _historical(self, symbol: str):
        out = self.ticker_factory(symbol).history(period=self.history_period, interval="1d")
        text = self._check_text(symbol, out)
        if text is not None:
            return text
        return history_rows(out)

    async def fetch_series(self, symbol: str, mode: str) -> Any:
        if mode == "summary":
            fn = self._summary
        elif mode == "historical":
            fn = self._historical
        else:
            raise ValueError(f"unsupported yahoo mode: {mode!r}")
        try:
            return await asyncio.to_thread(fn, symbol)
        except RateLimitedError:
            raise
        except Exception as exc:
            if is_rate_limit_text(str(exc)):
                raise RateLimitedError(self.name, str(exc)[:200]) from exc
            raise NoDataError(self.name, f"{type(exc).__name__}: {exc}") from exc
