from __future__ import annotations

import asyncio
import time as time_module
from typing import Awaitable, Callable, TypeVar

import structlog

from ..config import settings
from ..errors import RateLimitedError

log = structlog.get_logger()

T = TypeVar("T")


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Linear backoff before ``attempt`` (1-indexed): attempt 2 waits 1x, attempt 3 waits 2x."""
    if attempt <= 1:
        return 0.0
    return base_delay * (attempt - 1)


async def fetch_with_retry(
    op: Callable[[], Awaitable[T]],
    *,
    max_attempts: int | None = None,
    base_delay: float | None = None,
    deadline: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str | None = None,
) -> T:
    """Await ``op()``; retry only on RateLimitedError, re-raising the last one unchanged."""
    attempts = max(1, int(max_attempts if max_attempts is not None else settings.fetch_max_attempts))
    base = float(base_delay if base_delay is not None else settings.fetch_base_delay_seconds)
    for attempt in range(1, attempts + 1):
        if deadline is not None and time_module.monotonic() >= deadline:
            raise TimeoutError("time_budget_exceeded")
        try:
            return await op()
        except RateLimitedError as exc:
            if attempt >= attempts:
                log.warning("fetch_retries_exhausted", op=label, attempts=attempt, err=str(exc))
                raise
            delay = backoff_delay(base, attempt + 1)
            if deadline is not None and time_module.monotonic() + delay > deadline:
                raise TimeoutError("time_budget_exceeded") from exc
            log.warning(
                "fetch_rate_limited",
                op=label,
                provider=exc.provider,
                attempt=attempt,
                next_delay_sec=delay,
            )
            await sleep(delay)
    raise RuntimeError("unreachable: retry loop exited without result")
