"""
Periodic Charge Module

Interest or fixed charge due for one payment period of a loan.
"""

from decimal import Decimal
from typing import Optional

from .errors import InvalidLoanConfiguration
from .frequency import PaymentFrequency, convert
from .loans import Loan, PaymentType
from .money import ZERO

_HUNDRED = Decimal('100')
_MONTHS_PER_YEAR = Decimal('12')


def require_payment_type(loan: Loan) -> PaymentType:
    if not isinstance(loan.payment_type, PaymentType):
        raise InvalidLoanConfiguration(
            f"Loan {loan.id} has missing or unrecognized payment type {loan.payment_type!r}"
        )
    return loan.payment_type


def period_interest_rate(loan: Loan) -> Decimal:
    """Nominal monthly rate scaled to the loan's payment frequency"""
    if loan.interest_rate_annual_percent is None:
        return ZERO
    monthly_rate = loan.interest_rate_annual_percent / _HUNDRED / _MONTHS_PER_YEAR
    return convert(monthly_rate, PaymentFrequency.MONTHLY, loan.payment_frequency)


def charge_for_period(loan: Optional[Loan]) -> Decimal:
    """
    Interest or fixed charge for one period at the loan's payment frequency.
    
    Interest is simple interest on the balance outstanding right now.
    A fixed charge already quoted at the payment frequency is returned as is.
    Absent optional fields yield zero; only a missing payment type raises.
    
    Raises:
        InvalidLoanConfiguration: payment type missing or unrecognized
    """
    if loan is None:
        return ZERO
    
    if require_payment_type(loan) == PaymentType.INTEREST:
        return loan.remaining_amount * period_interest_rate(loan)
    
    if loan.fixed_charge is None or loan.fixed_charge_frequency is None:
        return ZERO
    if loan.fixed_charge_frequency == loan.payment_frequency:
        return loan.fixed_charge
    return convert(loan.fixed_charge, loan.fixed_charge_frequency, loan.payment_frequency)


def validate_configuration(loan: Loan) -> None:
    """
    Strict check that the active accrual model has its fields.
    
    Raises:
        InvalidLoanConfiguration
    """
    payment_type = require_payment_type(loan)
    if payment_type == PaymentType.INTEREST:
        if loan.interest_rate_annual_percent is None:
            raise InvalidLoanConfiguration(
                f"Interest loan {loan.id} has no annual interest rate"
            )
        if loan.interest_rate_annual_percent < ZERO:
            raise InvalidLoanConfiguration(
                f"Interest loan {loan.id} has a negative interest rate"
            )
    else:
        if loan.fixed_charge is None or loan.fixed_charge_frequency is None:
            raise InvalidLoanConfiguration(
                f"Fixed-charge loan {loan.id} needs both a fixed charge and its frequency"
            )
        if loan.fixed_charge < ZERO:
            raise InvalidLoanConfiguration(
                f"Fixed-charge loan {loan.id} has a negative fixed charge"
            )
