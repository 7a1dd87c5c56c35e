from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from config import get_settings
from periods import (
    InvalidMonthError,
    InvalidRangeError,
    PeriodKind,
    PeriodSpec,
    add_months,
    days_in_month,
    local_date,
    parse_period,
    resolve,
)


NOW = date(2024, 3, 31)


def test_week_goes_back_seven_days():
    period = resolve(PeriodSpec.relative("week"), NOW)
    assert period.start == date(2024, 3, 24)
    assert period.end == NOW


def test_month_clamps_to_shorter_month():
    period = resolve(PeriodSpec.relative(PeriodKind.month), NOW)
    assert period.start == date(2024, 2, 29)
    assert period.end == NOW


def test_three_months_and_year():
    assert resolve(PeriodSpec.relative("three_months"), NOW).start == date(2023, 12, 31)
    assert resolve(PeriodSpec.relative("year"), date(2024, 2, 29)).start == date(
        2023, 2, 28
    )


def test_relative_period_accepts_datetime_now():
    period = resolve(PeriodSpec.relative("week"), datetime(2024, 3, 31, 23, 30))
    assert period.end == date(2024, 3, 31)


def test_custom_range_passthrough():
    spec = PeriodSpec.custom(date(2024, 3, 1), date(2024, 3, 1))
    period = resolve(spec, NOW)
    assert (period.start, period.end) == (date(2024, 3, 1), date(2024, 3, 1))


def test_custom_range_start_after_end_fails():
    spec = PeriodSpec.custom(date(2024, 3, 10), date(2024, 3, 1))
    with pytest.raises(InvalidRangeError):
        resolve(spec, NOW)


def test_invalid_range_is_a_value_error():
    assert issubclass(InvalidRangeError, ValueError)
    assert issubclass(InvalidMonthError, ValueError)


def test_calendar_month_bounds():
    feb_leap = resolve(PeriodSpec.calendar_month(2024, 2), NOW)
    assert (feb_leap.start, feb_leap.end) == (date(2024, 2, 1), date(2024, 2, 29))

    dec = resolve(PeriodSpec.calendar_month(2023, 12), NOW)
    assert (dec.start, dec.end) == (date(2023, 12, 1), date(2023, 12, 31))


def test_calendar_month_rejects_bad_month():
    with pytest.raises(InvalidMonthError):
        resolve(PeriodSpec.calendar_month(2024, 13), NOW)


def test_everything_starts_at_epoch():
    period = resolve(PeriodSpec.everything(), NOW)
    assert period.start == date(1970, 1, 1)
    assert period.end == NOW


@pytest.mark.parametrize(
    "year,month,expected",
    [(2024, 2, 29), (2023, 2, 28), (1900, 2, 28), (2000, 2, 29), (2024, 4, 30), (2024, 1, 31)],
)
def test_days_in_month(year: int, month: int, expected: int):
    assert days_in_month(year, month) == expected


def test_add_months_with_anchor_day():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 2, 29), 1, 31) == date(2024, 3, 31)
    assert add_months(date(2024, 11, 15), 2) == date(2025, 1, 15)


def test_local_date_converts_aware_datetimes():
    moment = datetime(2024, 3, 31, 20, 0, tzinfo=timezone.utc)
    expected = moment.astimezone(ZoneInfo(get_settings().timezone)).date()
    assert local_date(moment) == expected
    assert local_date(datetime(2024, 3, 31, 23, 59)) == date(2024, 3, 31)


def test_parse_period_from_query_values():
    assert parse_period(None) == PeriodSpec.relative("month")
    assert parse_period("3months").kind == PeriodKind.three_months
    assert parse_period("custom", "2024-03-01", "2024-03-10") == PeriodSpec.custom(
        date(2024, 3, 1), date(2024, 3, 10)
    )
    assert parse_period("calendarMonth", year="2024", month="2") == (
        PeriodSpec.calendar_month(2024, 2)
    )


def test_parse_period_rejects_incomplete_values():
    with pytest.raises(InvalidRangeError):
        parse_period("custom", "2024-03-01", None)
    with pytest.raises(InvalidMonthError):
        parse_period("calendar_month", year="2024", month="feb")
    with pytest.raises(ValueError):
        parse_period("fortnight")
