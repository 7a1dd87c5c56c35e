from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings


DateLike = Union[date, datetime]

EPOCH = date(1970, 1, 1)


class InvalidRangeError(ValueError):
    pass


class InvalidMonthError(ValueError):
    pass


class PeriodKind(str, Enum):
    week = "week"
    month = "month"
    three_months = "three_months"
    year = "year"
    custom = "custom"
    calendar_month = "calendar_month"
    all = "all"


RELATIVE_KINDS = (
    PeriodKind.week,
    PeriodKind.month,
    PeriodKind.three_months,
    PeriodKind.year,
)

_KIND_ALIASES = {
    "3months": PeriodKind.three_months,
    "threeMonths": PeriodKind.three_months,
    "calendarMonth": PeriodKind.calendar_month,
}


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class PeriodSpec:
    kind: PeriodKind
    start: Optional[date] = None
    end: Optional[date] = None
    year: Optional[int] = None
    month: Optional[int] = None

    @classmethod
    def relative(cls, kind: Union[PeriodKind, str]) -> "PeriodSpec":
        kind = PeriodKind(kind)
        if kind not in RELATIVE_KINDS:
            raise ValueError(f"{kind.value} is not a relative period")
        return cls(kind)

    @classmethod
    def custom(cls, start: date, end: date) -> "PeriodSpec":
        return cls(PeriodKind.custom, start=start, end=end)

    @classmethod
    def calendar_month(cls, year: int, month: int) -> "PeriodSpec":
        return cls(PeriodKind.calendar_month, year=year, month=month)

    @classmethod
    def everything(cls) -> "PeriodSpec":
        return cls(PeriodKind.all)


def local_date(value: DateLike) -> date:
    """Truncate a date or datetime to the configured local calendar day.

    Aware datetimes are converted to the application timezone first, naive
    datetimes are taken at face value.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(get_settings().timezone))
        return value.date()
    return value


def local_today() -> date:
    tz = ZoneInfo(get_settings().timezone)
    return datetime.now(tz).date()


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def check_year_month(year: int, month: int) -> None:
    if isinstance(year, bool) or not isinstance(year, int):
        raise InvalidMonthError(f"Year must be an integer, got {year!r}")
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidMonthError(f"Month must be between 1 and 12, got {month!r}")


def days_in_month(year: int, month: int) -> int:
    check_year_month(year, month)
    if month == 2:
        return 29 if is_leap_year(year) else 28
    if month in (4, 6, 9, 11):
        return 30
    return 31


def add_months(base: date, months: int, day: Optional[int] = None) -> date:
    """Shift by whole months, clamping the day to the target month's length.

    ``day`` overrides the day-of-month to aim for, so a schedule anchored on
    the 31st comes back to the 31st after passing through shorter months.
    """
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    desired = day or base.day
    return date(year, month, min(desired, days_in_month(year, month)))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last = days_in_month(year, month)
    return date(year, month, 1), date(year, month, last)


def resolve(spec: PeriodSpec, now: DateLike) -> Period:
    today = local_date(now)
    kind = spec.kind
    if kind == PeriodKind.week:
        return Period(kind.value, today - timedelta(days=7), today)
    if kind == PeriodKind.month:
        return Period(kind.value, add_months(today, -1), today)
    if kind == PeriodKind.three_months:
        return Period(kind.value, add_months(today, -3), today)
    if kind == PeriodKind.year:
        return Period(kind.value, add_months(today, -12), today)
    if kind == PeriodKind.custom:
        if spec.start is None or spec.end is None:
            raise InvalidRangeError("Custom period requires start and end dates")
        if spec.start > spec.end:
            raise InvalidRangeError(
                f"Start date {spec.start.isoformat()} is after end date {spec.end.isoformat()}"
            )
        return Period(kind.value, spec.start, spec.end)
    if kind == PeriodKind.calendar_month:
        start, end = month_bounds(spec.year, spec.month)
        return Period(kind.value, start, end)
    return Period(PeriodKind.all.value, EPOCH, today)


def parse_period(
    period: Optional[str],
    start: Optional[str] = None,
    end: Optional[str] = None,
    *,
    year: Optional[str] = None,
    month: Optional[str] = None,
) -> PeriodSpec:
    """Build a PeriodSpec from raw query-string values.

    No period defaults to the last month, the list view's default filter.
    """
    if not period:
        return PeriodSpec.relative(PeriodKind.month)
    try:
        kind = _KIND_ALIASES.get(period) or PeriodKind(period)
    except ValueError as exc:
        raise ValueError(f"Unknown period: {period}") from exc

    if kind == PeriodKind.custom:
        if not start or not end:
            raise InvalidRangeError("Custom period requires start and end dates")
        return PeriodSpec.custom(date.fromisoformat(start), date.fromisoformat(end))
    if kind == PeriodKind.calendar_month:
        if not year or not month:
            raise InvalidMonthError("Calendar month requires year and month")
        try:
            return PeriodSpec.calendar_month(int(year), int(month))
        except ValueError as exc:
            raise InvalidMonthError(f"Invalid year/month: {year}-{month}") from exc
    if kind == PeriodKind.all:
        return PeriodSpec.everything()
    return PeriodSpec.relative(kind)
