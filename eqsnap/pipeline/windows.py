from __future__ import annotations

from typing import Sequence

from ..models import MIN_HISTORY_POINTS, WINDOW_OFFSETS, ReturnWindows
from ..utils import is_finite_number, round_half_away

WINDOW_PRECISION = 1


def pct_change(current, past):
    if not is_finite_number(current) or not is_finite_number(past) or past == 0:
        return None
    return round_half_away((current / past - 1.0) * 100.0, WINDOW_PRECISION)


def compute_windows(closes: Sequence[float], newest_first: bool = True) -> ReturnWindows:
    """Trailing close-to-close returns in percent, one decimal.

    Fewer than six closes yields all-null windows rather than returns from a
    handful of sessions. A window whose past close is missing, zero or
    non-finite is null.
    """
    series = list(closes or ())
    if not newest_first:
        series.reverse()
    if len(series) < MIN_HISTORY_POINTS:
        return ReturnWindows()
    last = series[0]
    values = {}
    for key, offset in WINDOW_OFFSETS:
        values[key] = pct_change(last, series[offset]) if offset < len(series) else None
    return ReturnWindows(**values)
