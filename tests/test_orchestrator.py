import time
import unittest
from datetime import date, timedelta

from eqsnap.errors import NoDataError, RateLimitedError
from eqsnap.models import RelativeSnapshot
from eqsnap.persistence import MemoryPersistence
from eqsnap.pipeline.orchestrator import capture_relative, capture_snapshot, fetch_payload, run_capture
from eqsnap.pipeline.store import SnapshotStore
from eqsnap.utils import FixedClock

CLOCK = FixedClock("2026-02-14")


def _av_body(latest, past):
    """253 daily closes: ``latest`` today, ``past`` for every earlier day."""
    newest = date(2026, 2, 13)
    series = {}
    for i in range(253):
        close = latest if i == 0 else past
        series[(newest - timedelta(days=i)).isoformat()] = {"4. close": str(close), "5. adjusted close": str(close)}
    return {"Time Series (Daily)": series}


class _FakeClient:
    """Answers fetch_series from a {(symbol, mode): outcome} table; a list is consumed in order."""

    name = "fake"

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def fetch_series(self, symbol, mode):
        self.calls.append((symbol, mode))
        outcome = self.responses[(symbol, mode)]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class _SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


NO_SLEEP = {"sleep": _SleepRecorder(), "base_delay": 0.0}


class FetchPayloadTests(unittest.IsolatedAsyncioTestCase):
    async def test_single_part_returns_body(self):
        client = _FakeClient({("NVDA", "daily_adjusted"): {"Time Series (Daily)": {}}})
        body = await fetch_payload(client, "alpha-vantage", "NVDA", **NO_SLEEP)
        self.assertEqual(body, {"Time Series (Daily)": {}})

    async def test_multi_part_returns_mapping(self):
        client = _FakeClient({("NVDA", "quote"): {"c": 1.0}, ("NVDA", "candles"): {"s": "no_data"}})
        body = await fetch_payload(client, "finnhub", "NVDA", **NO_SLEEP)
        self.assertEqual(body, {"quote": {"c": 1.0}, "candles": {"s": "no_data"}})

    async def test_all_parts_awaited_and_first_failure_raised(self):
        quote_error = NoDataError("alpha-vantage", "quote")
        client = _FakeClient(
            {
                ("NVDA", "quote"): quote_error,
                ("NVDA", "daily"): _av_body(110, 100),
                ("NVDA", "overview"): RateLimitedError("alpha-vantage"),
            }
        )
        with self.assertRaises(NoDataError) as ctx:
            await fetch_payload(client, "alpha-vantage-combo", "NVDA", max_attempts=1, **NO_SLEEP)
        self.assertIs(ctx.exception, quote_error)
        self.assertEqual(sorted(mode for _, mode in client.calls), ["daily", "overview", "quote"])

    async def test_each_part_retries_independently(self):
        sleep = _SleepRecorder()
        client = _FakeClient(
            {
                ("NVDA", "summary"): [RateLimitedError("yahoo"), {"price": {"regularMarketPrice": 10.0}}],
                ("NVDA", "historical"): [[]],
            }
        )
        body = await fetch_payload(client, "yahoo", "NVDA", max_attempts=3, base_delay=0.5, sleep=sleep)
        self.assertEqual(body["summary"], {"price": {"regularMarketPrice": 10.0}})
        self.assertEqual(sleep.delays, [0.5])
        self.assertEqual(client.calls.count(("NVDA", "summary")), 2)
        self.assertEqual(client.calls.count(("NVDA", "historical")), 1)


class CaptureTests(unittest.IsolatedAsyncioTestCase):
    async def test_capture_snapshot(self):
        client = _FakeClient({("NVDA", "daily_adjusted"): _av_body(110, 100)})
        snap = await capture_snapshot(client, "alpha-vantage", "nvda", clock=CLOCK, **NO_SLEEP)
        self.assertEqual(snap.symbol, "NVDA")
        self.assertEqual(snap.price, 110.0)
        self.assertEqual(snap.windows.y1, 10.0)
        self.assertEqual(snap.as_of, date(2026, 2, 14))

    async def test_capture_relative(self):
        client = _FakeClient(
            {
                ("NVDA", "daily_adjusted"): _av_body(110, 100),
                ("QQQ", "daily_adjusted"): _av_body(104, 100),
            }
        )
        snap = await capture_relative(client, "alpha-vantage", "NVDA", "qqq", clock=CLOCK, **NO_SLEEP)
        self.assertIsInstance(snap, RelativeSnapshot)
        self.assertEqual(snap.benchmark.symbol, "QQQ")
        self.assertEqual(snap.benchmark.windows.y1, 4.0)
        self.assertEqual(snap.relative.vs_benchmark.y1, 6.0)


class RunCaptureTests(unittest.IsolatedAsyncioTestCase):
    def _client(self):
        return _FakeClient(
            {
                ("NVDA", "daily_adjusted"): _av_body(110, 100),
                ("AVGO", "daily_adjusted"): _av_body(120, 100),
                ("SPY", "daily_adjusted"): _av_body(104, 100),
                ("ZZZZ", "daily_adjusted"): {"Error Message": "Invalid API call."},
            }
        )

    async def test_captures_and_persists(self):
        persistence = MemoryPersistence()
        out = await run_capture(
            ["nvda", "AVGO", " nvda "],
            client=self._client(),
            kind="alpha-vantage",
            persistence=persistence,
            clock=CLOCK,
            **NO_SLEEP,
        )
        self.assertEqual(sorted(out["captured"]), ["AVGO", "NVDA"])
        self.assertEqual(out["failed"], {})
        self.assertEqual(out["captured"]["NVDA"]["asOf"], "2026-02-14")
        self.assertEqual(persistence.save_count, 1)

        store = await SnapshotStore.load(persistence)
        self.assertEqual(store.symbols(), ["AVGO", "NVDA"])
        self.assertEqual(store.latest("AVGO").windows.y1, 20.0)

    async def test_deadline_fails_only_the_slow_symbol(self):
        client = self._client()
        client.responses[("BAD", "daily_adjusted")] = RateLimitedError("alpha-vantage")
        persistence = MemoryPersistence()
        out = await run_capture(
            ["NVDA", "BAD"],
            client=client,
            kind="alpha-vantage",
            persistence=persistence,
            clock=CLOCK,
            max_attempts=3,
            base_delay=60.0,
            deadline=time.monotonic() + 5.0,
            sleep=_SleepRecorder(),
        )
        self.assertEqual(list(out["captured"]), ["NVDA"])
        self.assertEqual(out["failed"]["BAD"]["kind"], "timeout")
        self.assertEqual(out["failed"]["BAD"]["message"], "time_budget_exceeded")
        self.assertEqual(persistence.save_count, 1)
        store = await SnapshotStore.load(persistence)
        self.assertEqual(store.symbols(), ["NVDA"])

    async def test_failed_symbol_does_not_block_others(self):
        persistence = MemoryPersistence()
        out = await run_capture(
            ["NVDA", "ZZZZ"],
            client=self._client(),
            kind="alpha-vantage",
            persistence=persistence,
            clock=CLOCK,
            **NO_SLEEP,
        )
        self.assertEqual(list(out["captured"]), ["NVDA"])
        self.assertEqual(out["failed"]["ZZZZ"]["kind"], "no_data")
        store = await SnapshotStore.load(persistence)
        self.assertEqual(store.symbols(), ["NVDA"])

    async def test_benchmark_fetched_once(self):
        client = self._client()
        out = await run_capture(
            ["NVDA", "AVGO"],
            client=client,
            kind="alpha-vantage",
            persistence=MemoryPersistence(),
            clock=CLOCK,
            benchmark_symbol="SPY",
            **NO_SLEEP,
        )
        self.assertEqual(client.calls.count(("SPY", "daily_adjusted")), 1)
        self.assertEqual(out["captured"]["NVDA"]["relative"], {"vsBenchmark": {"y1": 6.0}})
        self.assertEqual(out["captured"]["AVGO"]["relative"], {"vsBenchmark": {"y1": 16.0}})

    async def test_benchmark_failure_fails_every_subject(self):
        client = self._client()
        client.responses[("SPY", "daily_adjusted")] = RateLimitedError("alpha-vantage")
        out = await run_capture(
            ["NVDA"],
            client=client,
            kind="alpha-vantage",
            persistence=MemoryPersistence(),
            clock=CLOCK,
            benchmark_symbol="SPY",
            max_attempts=2,
            **NO_SLEEP,
        )
        self.assertEqual(out["captured"], {})
        self.assertEqual(out["failed"]["NVDA"]["kind"], "rate_limited")
        self.assertEqual(client.calls.count(("SPY", "daily_adjusted")), 2)

    async def test_existing_history_is_kept_and_no_save_skips_persistence(self):
        old = _av_body(100, 100)
        persistence = MemoryPersistence()
        await run_capture(
            ["NVDA"],
            client=_FakeClient({("NVDA", "daily_adjusted"): old}),
            kind="alpha-vantage",
            persistence=persistence,
            clock=FixedClock("2026-02-07"),
            **NO_SLEEP,
        )
        await run_capture(
            ["NVDA"],
            client=self._client(),
            kind="alpha-vantage",
            persistence=persistence,
            clock=CLOCK,
            **NO_SLEEP,
        )
        store = await SnapshotStore.load(persistence)
        self.assertEqual([s.as_of.isoformat() for s in store.history("NVDA")], ["2026-02-14", "2026-02-07"])

        await run_capture(
            ["NVDA"],
            client=self._client(),
            kind="alpha-vantage",
            persistence=persistence,
            clock=FixedClock("2026-02-21"),
            save=False,
            **NO_SLEEP,
        )
        self.assertEqual(persistence.save_count, 2)


if __name__ == "__main__":
    unittest.main()
