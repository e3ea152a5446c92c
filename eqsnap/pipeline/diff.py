from __future__ import annotations

from ..models import WINDOW_KEYS, Snapshot
from ..utils import is_finite_number, round_half_away

_DIFF_PRECISION_PRICE = 2
_DIFF_PRECISION_PCT = 1
_FUNDAMENTAL_KEYS = ("market_cap_b", "pe", "beta")


def _delta(left, right, precision=3):
    if not is_finite_number(left) or not is_finite_number(right):
        return None
    return round_half_away(float(right) - float(left), precision)


def _pct_change(left, right):
    if not is_finite_number(left) or not is_finite_number(right) or left == 0:
        return None
    return round_half_away((right / left - 1.0) * 100.0, _DIFF_PRECISION_PCT)


def _section_diff(left: dict, right: dict, keys, precision=3):
    out = {}
    for key in keys:
        lval = left.get(key) if left else None
        rval = right.get(key) if right else None
        out[key] = {"left": lval, "right": rval, "delta": _delta(lval, rval, precision)}
    return out


def diff_snapshots(baseline: Snapshot | None, current: Snapshot) -> dict:
    """Compare ``current`` against ``baseline``; deltas are None where either side is missing."""
    left = baseline.model_dump() if baseline is not None else {}
    right = current.model_dump()
    price_left = left.get("price")
    days_apart = (current.as_of - baseline.as_of).days if baseline is not None else None
    return {
        "symbol": current.symbol or (baseline.symbol if baseline is not None else None),
        "left_as_of": baseline.as_of.isoformat() if baseline is not None else None,
        "right_as_of": current.as_of.isoformat(),
        "days_apart": days_apart,
        "price": {
            "left": price_left,
            "right": current.price,
            "delta": _delta(price_left, current.price, _DIFF_PRECISION_PRICE),
            "pct": _pct_change(price_left, current.price),
        },
        "windows": _section_diff(left.get("windows"), right.get("windows"), WINDOW_KEYS, _DIFF_PRECISION_PCT),
        "fundamentals": _section_diff(left.get("fundamentals"), right.get("fundamentals"), _FUNDAMENTAL_KEYS),
    }


def diff_latest(store, symbol: str, as_of=None) -> dict | None:
    current = store.latest(symbol)
    if current is None:
        return None
    return diff_snapshots(store.baseline(symbol, as_of), current)
