"""Duration parsing and formatting for worklog times."""

from datetime import datetime

from patterns import Patterns


def parse_to_seconds(text: str) -> int:
    """Convert a duration like "2h30m", "2.5h" or "45m" to seconds.

    Unparseable input yields 0; callers validate with is_valid_format first.
    """
    normalized = (text or "").lower().strip()

    m = Patterns.DECIMAL_HOURS.match(normalized)
    if m:
        return round(float(m.group(1)) * 3600)

    hours = Patterns.HOURS_PART.search(normalized)
    minutes = Patterns.MINUTES_PART.search(normalized)
    h = int(hours.group(1)) if hours else 0
    mins = int(minutes.group(1)) if minutes else 0
    return h * 3600 + mins * 60


def seconds_to_display(seconds: int | float) -> str:
    """Format seconds as Jira-style "2h 30m"."""
    total = max(int(seconds or 0), 0)
    hours = total // 3600
    minutes = (total % 3600) // 60
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    if minutes:
        return f"{minutes}m"
    return "0m"


def is_valid_format(text: str) -> bool:
    normalized = (text or "").lower().strip()
    return any(
        p.match(normalized)
        for p in (
            Patterns.DECIMAL_HOURS,
            Patterns.HOURS_MINUTES,
            Patterns.HOURS_ONLY,
            Patterns.MINUTES_ONLY,
        )
    )


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def format_for_display(text: str) -> str:
    """Human-readable duration, e.g. "2 hours and 30 minutes"."""
    seconds = parse_to_seconds(text)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours and minutes:
        return f"{_plural(hours, 'hour')} and {_plural(minutes, 'minute')}"
    if hours:
        return _plural(hours, "hour")
    if minutes:
        return _plural(minutes, "minute")
    return "0 minutes"


def format_hours(seconds: int | float) -> str:
    """Decimal hours with two places: 9000 -> "2.50"."""
    return f"{(seconds or 0) / 3600:.2f}"


def format_jira_datetime(value: datetime) -> str:
    """Format an aware datetime the way Jira expects `started`.

    Example: 2024-01-15T09:30:00.000+0100
    """
    if value.tzinfo is None:
        value = value.astimezone()
    millis = value.microsecond // 1000
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}" + value.strftime("%z")
