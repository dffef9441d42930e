"""
Loan Lifecycle Module

active -> completed is the only transition. A completed loan is frozen:
its balance is exactly zero, its completion date is set and never cleared,
and no payment is accepted against it.

A balance that rounds to zero cents is settled as paid off; the sub-cent
residue is written off.
"""

from decimal import Decimal

from .clock import as_datetime
from .errors import LoanAlreadyCompleted
from .loans import Loan, LoanStatus
from .money import ZERO, round_money


class LoanLifecycle:
    """Guards payments on terminal loans and performs the payoff transition"""
    
    def ensure_payable(self, loan: Loan) -> None:
        """
        Raises:
            LoanAlreadyCompleted: if the loan is terminal
        """
        if loan.status == LoanStatus.COMPLETED:
            raise LoanAlreadyCompleted(loan.id)
    
    def settle(self, loan: Loan, remaining_amount: Decimal, now) -> Loan:
        """
        Return the loan carrying its new balance, completed if nothing is owed.
        
        Args:
            loan: Loan after due-date changes, before the balance update
            remaining_amount: Balance after the principal portion was applied
            now: Moment of the payment; becomes the completion date
        """
        self.ensure_payable(loan)
        if round_money(remaining_amount) > ZERO:
            return loan.copy(remaining_amount=remaining_amount)
        
        return loan.copy(
            remaining_amount=ZERO,
            status=LoanStatus.COMPLETED,
            completed_date=as_datetime(now),
        )
