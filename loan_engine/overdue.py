"""
Overdue Module

Overdue detection and the catch-up minimum payment. Missed periods are
counted with flat period lengths (7, 14 and 30 days); a "month" here is
always 30 days, not a calendar month. No late fees or penalty interest
are modeled: the minimum is the regular payment times the periods elapsed.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

from .charges import charge_for_period
from .clock import as_date
from .frequency import PaymentFrequency, convert, period_length_days
from .loans import Loan
from .money import ZERO


def is_overdue(loan: Loan, now) -> bool:
    """True once the calendar date is past the next due date"""
    return as_date(now) > loan.next_due_date


def days_overdue(loan: Loan, now) -> int:
    """Whole days past the due date, 0 when not overdue"""
    return max(0, (as_date(now) - loan.next_due_date).days)


def regular_payment(loan: Loan) -> Decimal:
    """Stored monthly installment expressed at the loan's payment frequency"""
    return convert(loan.installment_amount, PaymentFrequency.MONTHLY, loan.payment_frequency)


def elapsed_periods(loan: Loan, now) -> int:
    """Periods owed: the one that fell due plus every full period since"""
    if not is_overdue(loan, now):
        return 1
    return days_overdue(loan, now) // period_length_days(loan.payment_frequency) + 1


def minimum_payment(loan: Loan, now) -> Decimal:
    """Regular payment times periods owed, capped at the remaining balance"""
    return min(regular_payment(loan) * elapsed_periods(loan, now), loan.remaining_amount)


@dataclass(frozen=True)
class PaymentOptions:
    """Quick-pick amounts offered when making a payment"""
    minimum: Decimal
    regular: Decimal
    payoff: Decimal
    is_overdue: bool
    
    def to_dict(self) -> Dict[str, object]:
        return {
            "minimum": str(self.minimum),
            "regular": str(self.regular),
            "payoff": str(self.payoff),
            "is_overdue": self.is_overdue,
        }


def payment_options(loan: Loan, now) -> PaymentOptions:
    """Minimum, regular and full-payoff amounts for the current period"""
    return PaymentOptions(
        minimum=minimum_payment(loan, now),
        regular=regular_payment(loan),
        payoff=loan.remaining_amount + charge_for_period(loan) if loan.is_active else ZERO,
        is_overdue=is_overdue(loan, now),
    )
