"""
Payment Processing Module

Applies one payment to a loan: validates it, splits it into principal and
interest/charge, reduces the balance, moves the due date forward, debits the
paying asset account and completes the loan when it is paid off.

The result is all-or-nothing. The input loan is never mutated and the asset
ledger is written once, only after every check has passed.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from .amortization import split
from .assets import AssetLedger
from .charges import validate_configuration
from .clock import as_date, as_datetime
from .errors import (
    ExceedsRemainingBalance, InsufficientFunds, InvalidAmount,
    PaymentError, PaymentResult
)
from .frequency import advance_due_date
from .lifecycle import LoanLifecycle
from .loans import Loan, PaymentBreakdown
from .logging_config import get_logger, log_action
from .money import ZERO, round_money, to_decimal
from .overdue import is_overdue


@dataclass(frozen=True)
class AssetBalance:
    """Balance of one asset account after a payment"""
    account_id: str
    balance: Decimal


@dataclass(frozen=True)
class PaymentOutcome:
    """Everything a successful payment produces, committed together"""
    loan: Loan
    asset: AssetBalance
    breakdown: PaymentBreakdown
    amount: Decimal
    was_overdue: bool
    
    @property
    def paid_off(self) -> bool:
        return self.loan.is_completed
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "loan": self.loan.to_dict(),
            "asset": {"account_id": self.asset.account_id, "balance": str(self.asset.balance)},
            "breakdown": self.breakdown.to_dict(),
            "amount": str(self.amount),
            "was_overdue": self.was_overdue,
            "paid_off": self.paid_off,
        }


def parse_payment_amount(amount) -> Decimal:
    """
    Raises:
        InvalidAmount: non-numeric or not strictly positive
    """
    try:
        value = to_decimal(amount)
    except ValueError:
        raise InvalidAmount(f"Payment amount {amount!r} is not a number")
    if value <= ZERO:
        raise InvalidAmount("Payment amount must be greater than zero")
    return value


class PaymentProcessor:
    """Drives a loan through one payment transaction"""
    
    def __init__(self, lifecycle: LoanLifecycle = None):
        self.lifecycle = lifecycle or LoanLifecycle()
        self.logger = get_logger("loan_engine.payments")
    
    def apply_payment(
        self,
        loan: Loan,
        ledger: AssetLedger,
        amount,
        account_id: str,
        now
    ) -> PaymentResult[PaymentOutcome]:
        """
        Apply a payment from an asset account to a loan.
        
        Args:
            loan: Loan being paid (not mutated)
            ledger: Asset ledger holding the paying account
            amount: Submitted payment amount
            account_id: Paying asset account
            now: Moment of the payment (date or datetime)
            
        Returns:
            PaymentResult with a PaymentOutcome, or the first failing check's
            error: LoanAlreadyCompleted, InvalidAmount, InsufficientFunds,
            InvalidLoanConfiguration, ExceedsRemainingBalance
        """
        try:
            self.lifecycle.ensure_payable(loan)
            payment_amount = parse_payment_amount(amount)
            
            available = ledger.get_balance(account_id)
            if available < payment_amount:
                raise InsufficientFunds(account_id, available, payment_amount)
            
            validate_configuration(loan)
            breakdown = split(loan, payment_amount)
            self._check_not_overpaying(loan, payment_amount, breakdown)
            
            outcome = self._build_outcome(loan, payment_amount, breakdown, account_id, available, now)
        except PaymentError as e:
            log_action(
                self.logger, "warning", f"Payment rejected: {e.message}",
                action="loan.payment_rejected", resource=loan.id,
                extra={"code": e.code, "account_id": account_id, "amount": str(amount)}
            )
            return PaymentResult.failure(e)
        
        # Commit point: nothing below can fail a check
        ledger.set_balance(account_id, outcome.asset.balance)
        
        if breakdown.charge_shortfall > ZERO:
            log_action(
                self.logger, "warning",
                f"Payment on loan {loan.id} does not cover the period charge",
                action="loan.charge_shortfall", resource=loan.id,
                extra={"shortfall": str(breakdown.charge_shortfall), "amount": str(payment_amount)}
            )
        log_action(
            self.logger, "info", f"Payment of {payment_amount} applied to loan {loan.id}",
            action="loan.payment", resource=loan.id,
            extra={
                "principal": str(breakdown.principal),
                "interest": str(breakdown.interest),
                "charge": str(breakdown.charge),
                "remaining_amount": str(outcome.loan.remaining_amount),
                "next_due_date": outcome.loan.next_due_date.isoformat(),
                "paid_off": outcome.paid_off,
            }
        )
        if outcome.paid_off:
            log_action(
                self.logger, "info", f"Loan {loan.id} paid off",
                action="loan.completed", resource=loan.id,
                extra={"completed_date": outcome.loan.completed_date.isoformat()}
            )
        return PaymentResult.success(outcome)
    
    def _check_not_overpaying(self, loan: Loan, amount: Decimal,
                              breakdown: PaymentBreakdown) -> None:
        """Reject amounts beyond remaining balance plus the period charge, compared in cents"""
        payoff = loan.remaining_amount + breakdown.interest + breakdown.charge
        unclamped_principal = amount - breakdown.interest - breakdown.charge
        if round_money(amount) > round_money(payoff):
            raise ExceedsRemainingBalance(loan.remaining_amount, unclamped_principal)
        if breakdown.principal > loan.remaining_amount:
            raise ExceedsRemainingBalance(loan.remaining_amount, breakdown.principal)
    
    def _build_outcome(self, loan: Loan, amount: Decimal, breakdown: PaymentBreakdown,
                       account_id: str, available: Decimal, now) -> PaymentOutcome:
        overdue = is_overdue(loan, now)
        base_date = as_date(now) if overdue else loan.next_due_date
        
        updated = loan.copy(
            next_due_date=advance_due_date(base_date, loan.payment_frequency),
            updated_at=as_datetime(now),
        )
        updated = self.lifecycle.settle(updated, loan.remaining_amount - breakdown.principal, now)
        
        return PaymentOutcome(
            loan=updated,
            asset=AssetBalance(account_id, max(ZERO, available - amount)),
            breakdown=breakdown,
            amount=amount,
            was_overdue=overdue,
        )
