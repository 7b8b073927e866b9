from __future__ import annotations
import calendar
from dataclasses import dataclass
from datetime import date

from .errors import ValidationError

PERIODS = ("monthly", "yearly")


@dataclass(frozen=True)
class DateRange:
    start: date  # inclusive
    end: date    # inclusive

    def months(self) -> list[tuple[int, int]]:
        """(year, month) pairs covered by the range, oldest first."""
        y, m = self.start.year, self.start.month
        out = []
        while (y, m) <= (self.end.year, self.end.month):
            out.append((y, m))
            m += 1
            if m == 13:
                m = 1
                y += 1
        return out


def month_range(year: int, month: int) -> DateRange:
    if month < 1 or month > 12:
        raise ValidationError("month must be between 1 and 12")
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(date(year, month, 1), date(year, month, last_day))


def year_range(year: int) -> DateRange:
    return DateRange(date(year, 1, 1), date(year, 12, 31))


def resolve_period(period: str, year: int, month: int | None = None) -> DateRange:
    """
    monthly => first..last day of (year, month); month is required.
    yearly  => Jan 1..Dec 31 of year; month is ignored.
    """
    if period == "monthly":
        if month is None:
            raise ValidationError("month is required for monthly summaries")
        return month_range(year, month)
    if period == "yearly":
        return year_range(year)
    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


def current_period(period: str, today: date) -> DateRange:
    # budgets always track "this month" / "this year"
    return resolve_period(period, today.year, today.month)
