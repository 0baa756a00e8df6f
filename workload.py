"""Sprint progress against the Tempo workload scheme."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from models import UnifiedWorklogView

DEFAULT_HOURS_PER_DAY = 8.0
WEEKDAYS = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")


@dataclass
class DayProgress:
    day: date
    hours_logged: float
    hours_required: float

    @property
    def day_name(self) -> str:
        return WEEKDAYS[self.day.weekday()].capitalize()

    @property
    def percentage(self) -> float:
        """Logged share of required hours; a day with nothing required counts as done."""
        if self.hours_required == 0:
            return 100.0
        return self.hours_logged / self.hours_required * 100

    @property
    def display_percentage(self) -> str:
        if self.hours_required == 0 and self.hours_logged > 0:
            return "100+%"
        return f"{self.percentage:.0f}%"


def working_days(start: date, end: date) -> list[date]:
    """Mon-Fri dates in [start, end]."""
    days = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days


def required_hours_by_weekday(scheme: dict | None) -> dict[str, float]:
    """Weekday name -> required hours from a workload scheme payload.

    Accepts either the scheme itself or the user wrapper {"workloadScheme": {...}}.
    Without usable data every weekday falls back to 8h and weekends to 0h.
    """
    scheme = scheme or {}
    if isinstance(scheme.get("workloadScheme"), dict):
        scheme = scheme["workloadScheme"]

    hours = {}
    for entry in scheme.get("days") or []:
        try:
            hours[str(entry["day"]).upper()] = float(entry.get("requiredSeconds") or 0) / 3600
        except (AttributeError, KeyError, TypeError, ValueError):
            continue
    if not hours:
        return {name: (DEFAULT_HOURS_PER_DAY if n < 5 else 0.0) for n, name in enumerate(WEEKDAYS)}
    return {name: hours.get(name, 0.0) for name in WEEKDAYS}


def daily_progress(
    view: UnifiedWorklogView,
    days: Iterable[date],
    required: dict[str, float],
) -> list[DayProgress]:
    logged = {g.day: g.total_seconds / 3600 for g in view.days}
    return [
        DayProgress(
            day=d,
            hours_logged=logged.get(d, 0.0),
            hours_required=required.get(WEEKDAYS[d.weekday()], 0.0),
        )
        for d in days
    ]


def total_percentage(rows: list[DayProgress]) -> float:
    """Mean of per-day percentages, each capped at 100."""
    if not rows:
        return 0.0
    return sum(min(r.percentage, 100.0) for r in rows) / len(rows)
