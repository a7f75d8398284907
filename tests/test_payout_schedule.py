"""
Test the payout calendar: due dates and covered periods.
"""

from datetime import date, timedelta

import pytest

from marketplace_payouts.core.exceptions import ValidationError
from marketplace_payouts.models import PayoutFrequency
from marketplace_payouts.services.payout_schedule import (
    PayoutPeriod,
    calculate_payout_period,
    last_day_of_month,
    should_process_payout_today,
)


def _days(start: date, count: int):
    return [start + timedelta(days=n) for n in range(count)]


def test_weekly_due_only_on_mondays():
    for day in _days(date(2024, 1, 1), 400):
        assert should_process_payout_today(PayoutFrequency.WEEKLY, day) == (day.weekday() == 0)


def test_biweekly_due_on_first_and_fifteenth():
    for day in _days(date(2024, 1, 1), 400):
        assert should_process_payout_today(PayoutFrequency.BIWEEKLY, day) == (day.day in (1, 15))


def test_monthly_due_on_first():
    for day in _days(date(2024, 1, 1), 400):
        assert should_process_payout_today(PayoutFrequency.MONTHLY, day) == (day.day == 1)


def test_frequency_accepts_plain_strings():
    assert should_process_payout_today("monthly", date(2024, 3, 1))
    assert not should_process_payout_today("weekly", date(2024, 3, 1))


def test_unknown_frequency_rejected():
    with pytest.raises(ValidationError):
        should_process_payout_today("daily", date(2024, 3, 1))


def test_monthly_period_covers_previous_month():
    period = calculate_payout_period(PayoutFrequency.MONTHLY, date(2024, 3, 1))
    assert period == PayoutPeriod(date(2024, 2, 1), date(2024, 2, 29))
    assert period.days == 29


def test_monthly_period_wraps_year():
    period = calculate_payout_period(PayoutFrequency.MONTHLY, date(2024, 1, 1))
    assert period == PayoutPeriod(date(2023, 12, 1), date(2023, 12, 31))


def test_biweekly_period_on_first_covers_second_half_of_previous_month():
    period = calculate_payout_period(PayoutFrequency.BIWEEKLY, date(2023, 3, 1))
    assert period == PayoutPeriod(date(2023, 2, 15), date(2023, 2, 28))


def test_biweekly_period_on_fifteenth_covers_first_half():
    period = calculate_payout_period(PayoutFrequency.BIWEEKLY, date(2024, 3, 15))
    assert period == PayoutPeriod(date(2024, 3, 1), date(2024, 3, 14))


def test_weekly_period_is_previous_monday_to_sunday():
    # 2024-03-11 is a Monday
    period = calculate_payout_period(PayoutFrequency.WEEKLY, date(2024, 3, 11))
    assert period == PayoutPeriod(date(2024, 3, 4), date(2024, 3, 10))


def test_weekly_periods_are_whole_weeks_on_every_due_date():
    for day in _days(date(2024, 1, 1), 400):
        if not should_process_payout_today(PayoutFrequency.WEEKLY, day):
            continue
        period = calculate_payout_period(PayoutFrequency.WEEKLY, day)
        assert period.start.weekday() == 0
        assert period.end.weekday() == 6
        assert period.days == 7
        assert period.end < day


def test_periods_do_not_overlap_across_consecutive_due_dates():
    for frequency in PayoutFrequency:
        periods = [
            calculate_payout_period(frequency, day)
            for day in _days(date(2024, 1, 1), 400)
            if should_process_payout_today(frequency, day)
        ]
        for previous, current in zip(periods, periods[1:]):
            assert current.start == previous.end + timedelta(days=1)


def test_last_day_of_month_handles_leap_years():
    assert last_day_of_month(2024, 2) == date(2024, 2, 29)
    assert last_day_of_month(2023, 2) == date(2023, 2, 28)


def test_period_string():
    assert str(PayoutPeriod(date(2024, 2, 1), date(2024, 2, 29))) == "2024-02-01..2024-02-29"
