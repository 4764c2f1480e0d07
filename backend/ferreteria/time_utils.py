from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    """
    Query-string timestamp to naive UTC.

    Accepts "2026-03-01", "2026-03-01T14:30", "...Z" and "...-03:00".
    A bare date means midnight, or the last microsecond of that day when
    end_of_day is set, so ?end_date=2026-03-01 includes all of March 1st.
    Raises ValueError on anything else.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()

    if len(raw) == 10:
        day = date.fromisoformat(raw)
        return datetime.combine(day, time.max if end_of_day else time.min)

    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: datetime | None) -> str | None:
    """ISO-8601 with a trailing Z, seconds precision. Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
