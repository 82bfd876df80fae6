# routes/timestamps.py
from datetime import datetime, timezone
from typing import Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_ms(value: Optional[str]) -> Optional[float]:
    """Epoch milliseconds for an ISO-8601 string, or None if it does not parse.

    Naive timestamps are treated as UTC.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() * 1000


def start_of_utc_day(value: Optional[str]) -> str:
    ms = get_ms(value)
    if ms is None:
        return "Unknown date"
    return datetime.fromtimestamp(ms / 1000, timezone.utc).strftime("%Y-%m-%d")
