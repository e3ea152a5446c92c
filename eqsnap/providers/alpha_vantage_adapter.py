from __future__ import annotations

from typing import Any

import httpx

from ..config import settings
from ..errors import NoDataError
from .common import json_body, raise_for_status

BASE_URL = "https://www.alphavantage.co/query"

_PARAMS_BY_MODE: dict[str, dict[str, str]] = {
    "daily_adjusted": {"function": "TIME_SERIES_DAILY_ADJUSTED", "outputsize": "full"},
    "daily_compact": {"function": "TIME_SERIES_DAILY", "outputsize": "compact"},
    "daily": {"function": "TIME_SERIES_DAILY", "outputsize": "full"},
    "quote": {"function": "GLOBAL_QUOTE"},
    "overview": {"function": "OVERVIEW"},
}


class AlphaVantageAdapter:
    name = "alpha-vantage"

    def __init__(self, api_key: str | None = None, http: httpx.AsyncClient | None = None, timeout: float | None = None):
        self.api_key = api_key if api_key is not None else settings.alpha_vantage_key
        self.timeout = timeout or settings.http_timeout_seconds
        self._http = http

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        if self._http is not None:
            return await self._http.get(BASE_URL, params=params)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(BASE_URL, params=params)

    async def fetch_series(self, symbol: str, mode: str) -> Any:
        if mode not in _PARAMS_BY_MODE:
            raise ValueError(f"unsupported alpha vantage mode: {mode!r}")
        if not self.api_key:
            raise NoDataError(self.name, "ALPHA_VANTAGE_KEY not set")
        params = {**_PARAMS_BY_MODE[mode], "symbol": symbol, "apikey": self.api_key}
        try:
            response = await self._get(params)
        except httpx.HTTPError as exc:
            raise NoDataError(self.name, f"{type(exc).__name__}: {exc}") from exc
        raise_for_status(self.name, response)
        # Rate-limit notices arrive as HTTP 200 with a "Note"/"Information" body;
        # the normalizer turns those into NoData.
        return json_body(self.name, response)
