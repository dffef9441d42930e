"""
Payment Frequency Module

Converts amounts and rates between weekly, biweekly and monthly cadences
using fixed calendar multipliers (52 weeks and 26 fortnights per 12 months),
and advances due dates by one period.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Tuple, Union


class PaymentFrequency(Enum):
    """Payment cadence"""
    WEEKLY = "weekly"        # 52 periods per year
    BIWEEKLY = "biweekly"    # 26 periods per year
    MONTHLY = "monthly"      # 12 periods per year


# (periods per year, months per year): amount_per_period * periods / 12 == monthly amount
_PERIODS_PER_YEAR: Dict[PaymentFrequency, Tuple[Decimal, Decimal]] = {
    PaymentFrequency.WEEKLY: (Decimal('52'), Decimal('12')),
    PaymentFrequency.BIWEEKLY: (Decimal('26'), Decimal('12')),
    PaymentFrequency.MONTHLY: (Decimal('1'), Decimal('1')),
}

# Overdue math uses a flat 30-day month, not calendar months
_PERIOD_LENGTH_DAYS: Dict[PaymentFrequency, int] = {
    PaymentFrequency.WEEKLY: 7,
    PaymentFrequency.BIWEEKLY: 14,
    PaymentFrequency.MONTHLY: 30,
}


def as_frequency(value: Union[PaymentFrequency, str]) -> PaymentFrequency:
    """Coerce a frequency name; unknown values raise ValueError"""
    if isinstance(value, PaymentFrequency):
        return value
    return PaymentFrequency(value)


def to_monthly(amount: Decimal, frequency: PaymentFrequency) -> Decimal:
    """Monthly-equivalent of a per-period amount"""
    periods, months = _PERIODS_PER_YEAR[as_frequency(frequency)]
    if periods == months:
        return amount
    return amount * periods / months


def from_monthly(amount: Decimal, frequency: PaymentFrequency) -> Decimal:
    """Per-period amount for a monthly-equivalent amount"""
    periods, months = _PERIODS_PER_YEAR[as_frequency(frequency)]
    if periods == months:
        return amount
    return amount * months / periods


def convert(amount: Decimal, from_frequency: PaymentFrequency,
            to_frequency: PaymentFrequency) -> Decimal:
    """
    Convert an amount (or a per-period rate) between cadences.
    
    Same-frequency conversion returns the input untouched.
    """
    from_frequency = as_frequency(from_frequency)
    to_frequency = as_frequency(to_frequency)
    if from_frequency == to_frequency:
        return amount
    return from_monthly(to_monthly(amount, from_frequency), to_frequency)


def period_length_days(frequency: PaymentFrequency) -> int:
    """Approximate period length used for elapsed-period counting"""
    return _PERIOD_LENGTH_DAYS[as_frequency(frequency)]


def add_months(base: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length"""
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_due_date(base: date, frequency: PaymentFrequency) -> date:
    """Next due date one period after base"""
    frequency = as_frequency(frequency)
    if frequency == PaymentFrequency.WEEKLY:
        return base + timedelta(days=7)
    if frequency == PaymentFrequency.BIWEEKLY:
        return base + timedelta(days=14)
    return add_months(base, 1)
