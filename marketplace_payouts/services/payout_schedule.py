"""
Payout calendar: which vendors are due today and for which period.

Pure functions of the date and the vendor's payout frequency. There is no
persisted "last run" cursor; a skipped trigger day is not caught up
automatically.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Union

from marketplace_payouts.core.exceptions import ValidationError
from marketplace_payouts.models.vendor import PayoutFrequency


FrequencyLike = Union[PayoutFrequency, str]


@dataclass(frozen=True)
class PayoutPeriod:
    """Inclusive range of calendar days covered by one payout."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


def _coerce_frequency(frequency: FrequencyLike) -> PayoutFrequency:
    try:
        return PayoutFrequency(frequency)
    except ValueError:
        raise ValidationError(
            f"Unknown payout frequency: {frequency}",
            {"frequency": str(frequency)}
        ) from None


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _previous_month(today: date) -> tuple:
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def should_process_payout_today(frequency: FrequencyLike, today: date) -> bool:
    """
    Check whether a vendor with ``frequency`` is due a payout on ``today``.

    weekly   -> Mondays
    biweekly -> the 1st and the 15th
    monthly  -> the 1st
    """
    frequency = _coerce_frequency(frequency)

    if frequency is PayoutFrequency.WEEKLY:
        return today.weekday() == 0
    if frequency is PayoutFrequency.BIWEEKLY:
        return today.day in (1, 15)
    return today.day == 1


def calculate_payout_period(frequency: FrequencyLike, today: date) -> PayoutPeriod:
    """
    Compute the period a payout on ``today`` covers.

    weekly   -> Monday..Sunday of the week containing today - 7 days
    biweekly -> on the 1st: 15th..last day of the previous month,
                otherwise: 1st..14th of the current month
    monthly  -> 1st..last day of the previous month
    """
    frequency = _coerce_frequency(frequency)

    if frequency is PayoutFrequency.WEEKLY:
        week_ago = today - timedelta(days=7)
        start = week_ago - timedelta(days=week_ago.weekday())
        return PayoutPeriod(start=start, end=start + timedelta(days=6))

    if frequency is PayoutFrequency.BIWEEKLY:
        if today.day == 1:
            year, month = _previous_month(today)
            return PayoutPeriod(
                start=date(year, month, 15),
                end=last_day_of_month(year, month)
            )
        return PayoutPeriod(
            start=date(today.year, today.month, 1),
            end=date(today.year, today.month, 14)
        )

    year, month = _previous_month(today)
    return PayoutPeriod(start=date(year, month, 1), end=last_day_of_month(year, month))
