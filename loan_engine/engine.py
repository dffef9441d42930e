"""
Loan Engine Facade

The operations the surrounding application calls. Pure and synchronous:
nothing here blocks, awaits I/O or retries. split_payment and apply_payment
report caller-recoverable problems as PaymentResult errors.
"""

from decimal import Decimal

from . import amortization, overdue
from .assets import AssetLedger
from .charges import validate_configuration
from .errors import PaymentError, PaymentResult
from .loans import Loan, PaymentBreakdown
from .overdue import PaymentOptions
from .payments import PaymentOutcome, PaymentProcessor, parse_payment_amount

_processor = PaymentProcessor()


def compute_installment(principal, annual_rate_percent, term_months) -> Decimal:
    """Level monthly installment; 0 when no schedule can be computed"""
    return amortization.level_installment(principal, annual_rate_percent, term_months)


def compute_total_to_pay(loan: Loan) -> Decimal:
    """Total repaid over the loan's life (manual override wins)"""
    return amortization.total_to_pay(loan)


def minimum_payment(loan: Loan, now) -> Decimal:
    """Catch-up minimum due at now"""
    return overdue.minimum_payment(loan, now)


def payment_options(loan: Loan, now) -> PaymentOptions:
    """Minimum, regular and payoff amounts"""
    return overdue.payment_options(loan, now)


def split_payment(loan: Loan, amount) -> PaymentResult[PaymentBreakdown]:
    """Preview how a payment would be allocated, without applying it"""
    try:
        payment_amount = parse_payment_amount(amount)
        validate_configuration(loan)
        return PaymentResult.success(amortization.split(loan, payment_amount))
    except PaymentError as e:
        return PaymentResult.failure(e)


def apply_payment(loan: Loan, asset: AssetLedger, amount, account_id: str,
                  now) -> PaymentResult[PaymentOutcome]:
    """Apply a payment; see PaymentProcessor.apply_payment"""
    return _processor.apply_payment(loan, asset, amount, account_id, now)
