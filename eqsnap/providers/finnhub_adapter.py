from __future__ import annotations

import time
from typing import Any

import httpx

from ..config import settings
from ..errors import NoDataError
from .common import json_body, raise_for_status

BASE_URL = "https://finnhub.io/api/v1"


class FinnhubAdapter:
    name = "finnhub"

    def __init__(
        self,
        api_key: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        days_back: int | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.finnhub_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.days_back = int(days_back or settings.finnhub_days_back)
        self._http = http

    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        url = f"{BASE_URL}{path}"
        if self._http is not None:
            return await self._http.get(url, params=params)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, params=params)

    async def fetch_series(self, symbol: str, mode: str) -> Any:
        if not self.api_key:
            raise NoDataError(self.name, "FINNHUB_API_KEY not set")
        if mode == "quote":
            path, params, tolerate = "/quote", {"symbol": symbol}, ()
        elif mode == "candles":
            now = int(time.time())
            path = "/stock/candle"
            params = {"symbol": symbol, "resolution": "D", "from": now - self.days_back * 86400, "to": now}
            # Candles are plan-restricted; a 401/403 body means "no history", not a failed capture.
            tolerate = (401, 403)
        else:
            raise ValueError(f"unsupported finnhub mode: {mode!r}")
        params["token"] = self.api_key
        try:
            response = await self._get(path, params)
        except httpx.HTTPError as exc:
            raise NoDataError(self.name, f"{type(exc).__name__}: {exc}") from exc
        raise_for_status(self.name, response, tolerate=tolerate)
        if response.status_code in tolerate:
            try:
                body = response.json()
            except ValueError:
                body = None
            return body if isinstance(body, dict) else {"s": "forbidden"}
        return json_body(self.name, response)
