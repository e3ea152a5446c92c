import time
import unittest

from eqsnap.errors import InsufficientDataError, NoDataError, RateLimitedError
from eqsnap.pipeline.fetcher import backoff_delay, fetch_with_retry


class _ScriptedOp:
    """Async op that raises/returns the scripted outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class _SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FetchWithRetryTests(unittest.IsolatedAsyncioTestCase):
    async def test_rate_limited_twice_then_success(self):
        op = _ScriptedOp(RateLimitedError("alpha-vantage"), RateLimitedError("alpha-vantage"), {"ok": True})
        sleep = _SleepRecorder()
        result = await fetch_with_retry(op, max_attempts=3, base_delay=1.5, sleep=sleep)
        self.assertEqual(result, {"ok": True})
        self.assertEqual(op.calls, 3)
        self.assertEqual(sleep.delays, [1.5, 3.0])

    async def test_no_data_is_not_retried(self):
        op = _ScriptedOp(NoDataError("alpha-vantage", "Invalid API call"))
        sleep = _SleepRecorder()
        with self.assertRaises(NoDataError):
            await fetch_with_retry(op, max_attempts=3, base_delay=1.5, sleep=sleep)
        self.assertEqual(op.calls, 1)
        self.assertEqual(sleep.delays, [])

    async def test_other_errors_propagate_immediately(self):
        for exc in (InsufficientDataError("no closes"), ValueError("boom")):
            op = _ScriptedOp(exc)
            with self.assertRaises(type(exc)):
                await fetch_with_retry(op, max_attempts=3, base_delay=0.0, sleep=_SleepRecorder())
            self.assertEqual(op.calls, 1)

    async def test_exhausted_attempts_raise_last_error_unwrapped(self):
        first = RateLimitedError("yahoo", "first")
        last = RateLimitedError("yahoo", "last")
        op = _ScriptedOp(first, RateLimitedError("yahoo", "second"), last)
        sleep = _SleepRecorder()
        with self.assertRaises(RateLimitedError) as ctx:
            await fetch_with_retry(op, max_attempts=3, base_delay=2.0, sleep=sleep)
        self.assertIs(ctx.exception, last)
        self.assertEqual(op.calls, 3)
        self.assertEqual(sleep.delays, [2.0, 4.0])

    async def test_single_attempt_never_sleeps(self):
        op = _ScriptedOp(RateLimitedError("finnhub"))
        sleep = _SleepRecorder()
        with self.assertRaises(RateLimitedError):
            await fetch_with_retry(op, max_attempts=1, base_delay=1.5, sleep=sleep)
        self.assertEqual(op.calls, 1)
        self.assertEqual(sleep.delays, [])

    async def test_expired_deadline_stops_before_calling(self):
        op = _ScriptedOp({"ok": True})
        with self.assertRaises(TimeoutError):
            await fetch_with_retry(op, deadline=time.monotonic() - 1.0, sleep=_SleepRecorder())
        self.assertEqual(op.calls, 0)

    async def test_deadline_too_close_for_backoff(self):
        op = _ScriptedOp(RateLimitedError("finnhub"), {"ok": True})
        with self.assertRaises(TimeoutError):
            await fetch_with_retry(
                op,
                max_attempts=3,
                base_delay=60.0,
                deadline=time.monotonic() + 5.0,
                sleep=_SleepRecorder(),
            )
        self.assertEqual(op.calls, 1)


class BackoffDelayTests(unittest.TestCase):
    def test_linear_schedule(self):
        self.assertEqual(backoff_delay(1.5, 1), 0.0)
        self.assertEqual(backoff_delay(1.5, 2), 1.5)
        self.assertEqual(backoff_delay(1.5, 3), 3.0)
        self.assertEqual(backoff_delay(1.5, 4), 4.5)


if __name__ == "__main__":
    unittest.main()
