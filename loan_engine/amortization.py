"""
Amortization Module

Level installment (annuity) math, total-to-pay over a loan's life, and the
split of a submitted payment into principal and interest/charge.
"""

from decimal import Decimal
from typing import Optional

from .charges import charge_for_period, require_payment_type
from .frequency import PaymentFrequency, to_monthly
from .loans import Loan, PaymentBreakdown, PaymentType
from .money import ZERO, to_decimal

_ONE = Decimal('1')


def level_installment(principal, annual_rate_percent, term_months) -> Decimal:
    """
    Monthly installment that amortizes principal over term_months.
    
    Standard formula: P * r(1+r)^n / ((1+r)^n - 1) with r the monthly rate.
    Zero or negative inputs describe no schedule and give 0.
    """
    principal = to_decimal(principal)
    annual_rate_percent = to_decimal(annual_rate_percent)
    term_months = int(term_months)
    if principal <= ZERO or annual_rate_percent <= ZERO or term_months <= 0:
        return ZERO
    
    monthly_rate = annual_rate_percent / Decimal('100') / Decimal('12')
    factor = (_ONE + monthly_rate) ** term_months
    return principal * monthly_rate * factor / (factor - _ONE)


def monthly_fixed_charge(fixed_charge: Decimal,
                         fixed_charge_frequency: Optional[PaymentFrequency]) -> Decimal:
    """Monthly-equivalent of a fixed charge (monthly when frequency is unset)"""
    return to_monthly(fixed_charge, fixed_charge_frequency or PaymentFrequency.MONTHLY)


def derive_installment(payment_type: PaymentType, principal, term_months,
                       annual_rate_percent=None, fixed_charge=None,
                       fixed_charge_frequency=None) -> Decimal:
    """Monthly installment stored on a new loan"""
    if payment_type == PaymentType.INTEREST:
        if annual_rate_percent is None:
            return ZERO
        return level_installment(principal, annual_rate_percent, term_months)
    if fixed_charge is None:
        return ZERO
    return monthly_fixed_charge(to_decimal(fixed_charge), fixed_charge_frequency)


def total_to_pay(loan: Loan) -> Decimal:
    """
    Amount repaid over the loan's life.
    
    A manually supplied total wins. Fixed-charge loans pay principal plus the
    monthly-equivalent charge for every month of the term; interest loans pay
    the level installment for every month. Without the needed terms the total
    is just the principal.
    """
    if loan.manual_total_to_pay and loan.total_to_pay is not None:
        return loan.total_to_pay
    
    if require_payment_type(loan) == PaymentType.FIXED:
        if loan.fixed_charge is None or loan.term_months <= 0:
            return loan.principal
        charge = monthly_fixed_charge(loan.fixed_charge, loan.fixed_charge_frequency)
        return loan.principal + charge * loan.term_months
    
    if not loan.interest_rate_annual_percent or loan.term_months <= 0:
        return loan.principal
    installment = level_installment(
        loan.principal, loan.interest_rate_annual_percent, loan.term_months
    )
    return installment * loan.term_months


def split(loan: Loan, payment_amount: Decimal) -> PaymentBreakdown:
    """
    Allocate a payment: the period's interest/charge first, the rest to principal.
    
    The charge accrues on the current balance whatever the payment size;
    principal never exceeds the remaining balance and is never negative.
    """
    charge = charge_for_period(loan)
    principal = max(ZERO, min(payment_amount - charge, loan.remaining_amount))
    is_interest = loan.payment_type == PaymentType.INTEREST
    return PaymentBreakdown(
        principal=principal,
        interest=charge if is_interest else ZERO,
        charge=ZERO if is_interest else charge,
        submitted_amount=payment_amount,
    )
