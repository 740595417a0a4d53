from datetime import UTC, date, datetime


def utcnow_naive():
    """Return current UTC timestamp as naive datetime for DB timestamp columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def isoformat_or_none(value):
    return value.isoformat() if value else None


def parse_session_date(raw_value):
    """Parse a YYYY-MM-DD (or full ISO) session date; today when missing or invalid."""
    raw = str(raw_value or '').strip()
    if not raw:
        return utcnow_naive().date()
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return utcnow_naive().date()
