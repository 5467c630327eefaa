"""Billing-period rules for fixed-expense payments"""

from datetime import date, timedelta
from typing import Callable, Dict, Optional, Sequence

from zurcher_ledger.domain.exceptions import ValidationError
from zurcher_ledger.domain.models import Frequency, PaymentSnapshot, Period, PeriodCheck
from zurcher_ledger.utils.date_utils import (
    half_index,
    last_day_of_month,
    quarter_index,
    shift_month,
    week_start,
)

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def _same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def _same_half_month(a: date, b: date) -> bool:
    return _same_month(a, b) and (a.day <= 15) == (b.day <= 15)


def _same_week(a: date, b: date) -> bool:
    return week_start(a) == week_start(b)


def _same_quarter(a: date, b: date) -> bool:
    return a.year == b.year and quarter_index(a) == quarter_index(b)


def _same_half_year(a: date, b: date) -> bool:
    return a.year == b.year and half_index(a) == half_index(b)


def _same_year(a: date, b: date) -> bool:
    return a.year == b.year


def _always(a: date, b: date) -> bool:
    return True


# Date heuristics used when a payment does not carry explicit period bounds
_SAME_PERIOD: Dict[Frequency, Callable[[date, date], bool]] = {
    Frequency.MONTHLY: _same_month,
    Frequency.BIWEEKLY: _same_half_month,
    Frequency.WEEKLY: _same_week,
    Frequency.QUARTERLY: _same_quarter,
    Frequency.SEMIANNUAL: _same_half_year,
    Frequency.ANNUAL: _same_year,
    Frequency.ONE_TIME: _always,
}


def _coerce_frequency(frequency: Optional[str]) -> Optional[Frequency]:
    try:
        return Frequency(frequency) if frequency is not None else None
    except ValueError:
        return None


def validate_no_duplicate_period(
    history: Sequence[PaymentSnapshot],
    frequency: Optional[str],
    payment_date: date,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> PeriodCheck:
    """
    Reject a second payment for a billing period that is already paid.

    With explicit bounds the match is exact: same start AND same end.
    Overlapping but different periods are allowed.

    Without bounds, fall back to comparing the new payment date with each
    prior payment date using the frequency's notion of "same period".
    Unknown frequencies are treated as monthly.

    Returns the first conflict found.
    """
    if not history:
        return PeriodCheck(is_valid=True)

    if period_start is not None and period_end is not None:
        for payment in history:
            if payment.period_start == period_start and payment.period_end == period_end:
                return _conflict(payment)
        return PeriodCheck(is_valid=True)

    same_period = _SAME_PERIOD.get(_coerce_frequency(frequency), _same_month)
    for payment in history:
        if same_period(payment_date, payment.payment_date):
            return _conflict(payment)

    return PeriodCheck(is_valid=True)


def _conflict(payment: PaymentSnapshot) -> PeriodCheck:
    return PeriodCheck(
        is_valid=False,
        message=f"A payment is already recorded for this period ({payment.payment_date.isoformat()})",
        conflicting_payment=payment,
    )


def validate_payment_period(period_start: Optional[date], period_end: Optional[date]) -> None:
    """Period bounds come in pairs and must not run backwards"""
    if period_start is None and period_end is None:
        return
    if period_start is None or period_end is None:
        raise ValidationError("periodStart and periodEnd must be provided together")
    if period_end < period_start:
        raise ValidationError("Period end date cannot be before its start date")


def calculate_suggested_period(payment_date: date, frequency: Optional[str]) -> Period:
    """
    Suggest the billing period a payment made on payment_date settles.

    Fixed expenses are billed in arrears, so most frequencies point at the
    period that just closed:
    - monthly: the whole previous month
    - biweekly: paid on days 1-15 -> 16th to end of previous month,
      paid on days 16-31 -> 1st to 15th of the current month
    - weekly: Monday-Sunday week containing the payment
    - quarterly / semiannual / annual: the preceding quarter / half / year
    - one_time and anything else: the current month
    """
    year, month = payment_date.year, payment_date.month
    freq = _coerce_frequency(frequency)

    if freq is Frequency.MONTHLY:
        prev_year, prev_month = shift_month(year, month, -1)
        start = date(prev_year, prev_month, 1)
        end = last_day_of_month(prev_year, prev_month)

    elif freq is Frequency.BIWEEKLY:
        if payment_date.day <= 15:
            prev_year, prev_month = shift_month(year, month, -1)
            start = date(prev_year, prev_month, 16)
            end = last_day_of_month(prev_year, prev_month)
        else:
            start = date(year, month, 1)
            end = date(year, month, 15)

    elif freq is Frequency.WEEKLY:
        start = week_start(payment_date)
        end = start + timedelta(days=6)

    elif freq is Frequency.QUARTERLY:
        first_month_of_quarter = quarter_index(payment_date) * 3 + 1
        start_year, start_month = shift_month(year, first_month_of_quarter, -3)
        end_year, end_month = shift_month(start_year, start_month, 2)
        start = date(start_year, start_month, 1)
        end = last_day_of_month(end_year, end_month)

    elif freq is Frequency.SEMIANNUAL:
        if month <= 6:
            start = date(year - 1, 7, 1)
            end = date(year - 1, 12, 31)
        else:
            start = date(year, 1, 1)
            end = date(year, 6, 30)

    elif freq is Frequency.ANNUAL:
        start = date(year - 1, 1, 1)
        end = date(year - 1, 12, 31)

    else:
        start = date(year, month, 1)
        end = last_day_of_month(year, month)

    return Period(start=start, end=end, due_date=end)


def describe_period(period_start: Optional[date], period_end: Optional[date]) -> str:
    """Human-readable label, e.g. '1 to 31 January 2025'"""
    if period_start is None or period_end is None:
        return ""

    start_month = MONTH_NAMES[period_start.month - 1]
    end_month = MONTH_NAMES[period_end.month - 1]

    if period_start.year == period_end.year and period_start.month == period_end.month:
        return f"{period_start.day} to {period_end.day} {start_month} {period_start.year}"

    if period_start.year == period_end.year:
        return f"{period_start.day} {start_month} to {period_end.day} {end_month} {period_start.year}"

    return (
        f"{period_start.day} {start_month} {period_start.year} "
        f"to {period_end.day} {end_month} {period_end.year}"
    )
