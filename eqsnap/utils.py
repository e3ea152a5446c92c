import hashlib, json, math
from datetime import datetime, date, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

def sha256_json(obj) -> str:
    return hashlib.sha256(json.dumps(obj, sort_keys=True, default=str).encode()).hexdigest()

def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def round_half_away(value, places: int):
    """Round half away from zero. Python's round() is banker's rounding."""
    if value is None:
        return None
    try:
        # str() gives the shortest repr, so 0.15 rounds as written, not as 0.1499...
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError, TypeError):
        return None

def is_finite_number(val) -> bool:
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return False
    return math.isfinite(val)

def coerce_float(val):
    """Best-effort float coercion; anything unparseable or non-finite becomes None."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, dict):
        # Yahoo wraps numbers as {"raw": 1.23, "fmt": "1.23"}
        val = val.get("raw")
        if val is None:
            return None
    if isinstance(val, str):
        val = val.strip().replace(",", "")
        if not val:
            return None
    try:
        out = float(val)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None

def parse_iso_date(val):
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip()[:10]
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None

def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


class SystemClock:
    def today_utc(self) -> date:
        return datetime.now(timezone.utc).date()


class FixedClock:
    def __init__(self, today):
        self._today = parse_iso_date(today)
        if self._today is None:
            raise ValueError(f"not an ISO date: {today!r}")

    def today_utc(self) -> date:
        return self._today
